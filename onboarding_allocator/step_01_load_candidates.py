import json
import pathlib
import sys

import pandas as pd

# Add project root to sys.path to allow running as script
root_dir = str(pathlib.Path(__file__).parent.parent)
if root_dir not in sys.path:
    sys.path.append(root_dir)

from onboarding_allocator.solver.constraints import Candidate, coerce_candidates

AGE_BUCKETS = [
    # (id, min, max) inclusive, None = open end
    ("under18", None, 17),
    ("18_25", 18, 25),
    ("26_40", 26, 40),
    ("over40", 41, None),
]

DOCUMENT_STATUS_MAP = {
    "genehmigt": "complete",
    "approved": "complete",
    "complete": "complete",
    "ausstehend": "pending",
    "pending": "pending",
    "hochgeladen": "pending",
    "uploaded": "pending",
    "abgelehnt": "rejected",
    "rejected": "rejected",
    "fehlend": "missing",
    "kein upload": "missing",
    "missing": "missing",
}


def _blank(value):
    return value is None or (not isinstance(value, str) and pd.isna(value)) or str(value).strip() == ""


def resolve_age_bucket(age):
    if _blank(age):
        return None
    age = int(float(age))
    for bucket_id, low, high in AGE_BUCKETS:
        if (low is None or age >= low) and (high is None or age <= high):
            return bucket_id
    return AGE_BUCKETS[-1][0]


def resolve_gender_key(value):
    if _blank(value):
        return "unknown"
    normalized = str(value).strip().lower()
    if normalized in ("f", "female", "w") or normalized.startswith("weib"):
        return "female"
    if normalized in ("m", "male") or normalized.startswith("män") or normalized.startswith("man"):
        return "male"
    if normalized.startswith("div"):
        return "diverse"
    if normalized.startswith("keine") or normalized in ("no answer", "no_answer"):
        return "no_answer"
    # Anything else was typed in by the person themselves
    return "custom"


def resolve_document_status(value):
    if _blank(value):
        return "missing"
    normalized = str(value).strip().lower()
    return DOCUMENT_STATUS_MAP.get(normalized, normalized)


def resolve_experience(row):
    explicit = row.get('experience')
    if not _blank(explicit):
        return str(explicit).strip().lower()
    # Anyone with a member-since year has been on a production before
    return "newcomer" if _blank(row.get('member_since_year')) else "experienced"


def process_candidates(df):
    """
    Turn a roster DataFrame into candidate dicts.

    Expected columns: id, focus, age or age_bucket, background,
    document_status, gender, member_since_year or experience.
    """
    candidates = []
    seen = set()

    for _, row in df.iterrows():
        candidate_id = row.get('id')
        if _blank(candidate_id):
            continue
        candidate_id = str(candidate_id).strip()
        if candidate_id in seen:
            print(f"Warning: duplicate candidate id {candidate_id}, keeping the first row.")
            continue
        seen.add(candidate_id)

        age_bucket = row.get('age_bucket')
        if _blank(age_bucket):
            age_bucket = resolve_age_bucket(row.get('age'))

        background = row.get('background')
        candidates.append({
            "id": candidate_id,
            "focus": str(row.get('focus', '')).strip().lower(),
            "age_bucket": age_bucket,
            "background": None if _blank(background) else str(background).strip(),
            "document_status": resolve_document_status(row.get('document_status')),
            "gender": resolve_gender_key(row.get('gender')),
            "experience": resolve_experience(row),
        })

    return candidates


def load_candidates_json(path):
    with open(path, 'r', encoding='utf-8') as f:
        return coerce_candidates(json.load(f))


def save_candidates_json(candidates, path):
    payload = [c.to_dict() if isinstance(c, Candidate) else c for c in candidates]
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=4, ensure_ascii=False)


def load_candidates(input_csv=None, output_json=None):
    base_dir = pathlib.Path(__file__).parent.parent
    raw_dir = base_dir / "data" / "raw"
    processed_dir = base_dir / "data" / "processed"

    input_csv = pathlib.Path(input_csv) if input_csv else raw_dir / "candidates.csv"
    output_json = pathlib.Path(output_json) if output_json else processed_dir / "candidates.json"
    output_json.parent.mkdir(parents=True, exist_ok=True)

    print(f"Reading roster from {input_csv}...")
    df = pd.read_csv(input_csv, encoding='utf-8')
    records = process_candidates(df)

    # Validate through the solver's model before writing
    candidates = coerce_candidates(records)
    save_candidates_json(candidates, output_json)
    print(f"Saved {len(candidates)} candidates to {output_json}")
    return candidates


if __name__ == "__main__":
    load_candidates(*sys.argv[1:3])
