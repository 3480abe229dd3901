import json
import pathlib
import sys

# Add project root to sys.path to allow running as script
root_dir = str(pathlib.Path(__file__).parent.parent)
if root_dir not in sys.path:
    sys.path.append(root_dir)

from onboarding_allocator.solver.service import OnboardingSolver
from onboarding_allocator.step_01_load_candidates import load_candidates_json


def load_json(path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data, path):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=4, ensure_ascii=False)


def build_group_report(solution, candidates):
    # group -> seated people with the attributes fairness was balanced on
    by_id = {c.id: c for c in candidates}
    metrics = solution.to_dict()["metrics"]
    report = {}

    for group_id, members in solution.assignments.items():
        group_metrics = metrics["groups"][group_id]
        report[group_id] = {
            "capacity": group_metrics["capacity"],
            "fill_rate": group_metrics["fillRate"],
            "members": [
                {
                    "seat": seat,
                    "candidate_id": candidate_id,
                    "focus": by_id[candidate_id].focus,
                    "gender": by_id[candidate_id].gender,
                    "experience": by_id[candidate_id].experience,
                }
                for seat, candidate_id in enumerate(members, start=1)
            ],
            "fairness": group_metrics["fairness"],
        }

    return report


def run_solver(request_path=None, candidates_path=None, results_dir=None, solver=None):
    base_dir = pathlib.Path(__file__).parent.parent
    data_dir = base_dir / "data"

    request_path = pathlib.Path(request_path) if request_path else data_dir / "solve_request.json"
    results_dir = pathlib.Path(results_dir) if results_dir else data_dir / "results"
    results_dir.mkdir(parents=True, exist_ok=True)

    if solver is None:
        print("Initializing Solver...")
        solver = OnboardingSolver()

    if not candidates_path:
        candidates_path = base_dir / solver.config["candidates_path"]

    print(f"Loading candidates from {candidates_path}...")
    candidates = load_candidates_json(candidates_path)
    request = load_json(request_path)

    print("Solving...")
    solution = solver.solve_request(candidates, request)
    metrics = solution.metrics
    print(f"Solution {solution.id}: {metrics['totalAssigned']}/{metrics['totalCapacity']} seats filled, "
          f"{metrics['unassignedCount']} unassigned, {metrics['excludedCount']} excluded", flush=True)

    output_path = results_dir / f"{solution.id}_solution.json"
    save_json({"solution": solution.to_dict()}, output_path)
    print(f"Solution saved to {output_path}")

    report_path = results_dir / f"{solution.id}_groups.json"
    save_json(build_group_report(solution, candidates), report_path)
    print(f"Group report saved to {report_path}")

    return solution


if __name__ == "__main__":
    run_solver(*sys.argv[1:3])
