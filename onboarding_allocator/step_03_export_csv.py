import json
import pathlib
import sys

import pandas as pd

# Add project root to sys.path to allow running as script
root_dir = str(pathlib.Path(__file__).parent.parent)
if root_dir not in sys.path:
    sys.path.append(root_dir)

from onboarding_allocator.step_01_load_candidates import load_candidates_json

ROSTER_COLUMNS = [
    "candidate_id", "status", "group_id", "seat", "excluded_by",
    "focus", "age_bucket", "background", "document_status", "gender", "experience",
]


def build_roster(solution, candidates):
    """
    One row per candidate of the pool.

    solution: a Solution or its to_dict() payload.
    Candidates the solution never saw (joined the pool later) get status "new".
    """
    if hasattr(solution, "to_dict"):
        solution = solution.to_dict()

    placement = {}
    for group_id, members in solution["assignments"].items():
        for seat, candidate_id in enumerate(members, start=1):
            placement[candidate_id] = (group_id, seat)
    unassigned = set(solution["unassigned"])
    excluded = solution.get("excluded", {})

    rows = []
    for candidate in sorted(candidates, key=lambda c: c.id):
        group_id, seat = placement.get(candidate.id, (None, None))
        if group_id is not None:
            status = "assigned"
        elif candidate.id in unassigned:
            status = "unassigned"
        elif candidate.id in excluded:
            status = "excluded"
        else:
            status = "new"

        rows.append({
            "candidate_id": candidate.id,
            "status": status,
            "group_id": group_id,
            "seat": seat,
            "excluded_by": ", ".join(excluded.get(candidate.id, [])) or None,
            "focus": candidate.focus,
            "age_bucket": candidate.age_bucket,
            "background": candidate.background,
            "document_status": candidate.document_status,
            "gender": candidate.gender,
            "experience": candidate.experience,
        })

    df = pd.DataFrame(rows, columns=ROSTER_COLUMNS)
    # Keep seat numbers integral next to empty cells
    df["seat"] = df["seat"].astype("Int64")
    return df


def export_solution_csv(solution_path, candidates_path, output_path=None):
    solution_path = pathlib.Path(solution_path)
    with open(solution_path, 'r', encoding='utf-8') as f:
        payload = json.load(f)
    solution = payload.get("solution", payload)

    candidates = load_candidates_json(candidates_path)
    df = build_roster(solution, candidates)

    # Remove newlines that break simple parsers
    for col in df.columns:
        if df[col].dtype == 'object':
            df[col] = df[col].replace(r'[\r\n]+', ' ', regex=True)

    if output_path is None:
        output_path = solution_path.with_name(f"{solution['id']}_roster.csv")
    df.to_csv(output_path, index=False, encoding='utf-8-sig')
    print(f"Exported roster CSV to {output_path}")
    return output_path


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: step_03_export_csv.py <solution.json> <candidates.json> [output.csv]")
        sys.exit(1)
    export_solution_csv(*sys.argv[1:4])
