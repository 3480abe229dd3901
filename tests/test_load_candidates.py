import json

import pandas as pd
import pytest

from onboarding_allocator.step_01_load_candidates import (
    load_candidates,
    load_candidates_json,
    process_candidates,
    resolve_age_bucket,
    resolve_document_status,
    resolve_gender_key,
)


@pytest.mark.parametrize("age, bucket", [
    (15, "under18"), (17, "under18"), (18, "18_25"), (25, "18_25"),
    (26, "26_40"), (40, "26_40"), (41, "over40"), ("63", "over40"),
    (None, None), (float("nan"), None), ("", None),
])
def test_age_buckets(age, bucket):
    assert resolve_age_bucket(age) == bucket


@pytest.mark.parametrize("raw, key", [
    ("weiblich", "female"), ("Female", "female"), ("männlich", "male"), ("M", "male"),
    ("divers", "diverse"), ("Keine Angabe", "no_answer"), ("Pirate", "custom"), (None, "unknown"),
])
def test_gender_keys(raw, key):
    assert resolve_gender_key(raw) == key


def test_document_status_labels():
    assert resolve_document_status("Genehmigt") == "complete"
    assert resolve_document_status(" hochgeladen ") == "pending"
    assert resolve_document_status("abgelehnt") == "rejected"
    assert resolve_document_status(None) == "missing"
    # Unknown labels pass through, lowercased
    assert resolve_document_status("In Review") == "in review"


def test_process_candidates(sample_candidates_csv):
    df = pd.read_csv(sample_candidates_csv, encoding='utf-8')
    records = {r["id"]: r for r in process_candidates(df)}

    # Blank id skipped, duplicate c02 keeps the first row
    assert list(records) == ["c01", "c02", "c03", "c04", "c05"]

    assert records["c01"] == {
        "id": "c01", "focus": "acting", "age_bucket": "under18", "background": "School",
        "document_status": "complete", "gender": "female", "experience": "newcomer",
    }
    assert records["c02"]["focus"] == "tech"
    assert records["c02"]["experience"] == "experienced"
    assert records["c02"]["age_bucket"] == "26_40"
    assert records["c03"]["age_bucket"] is None
    assert records["c03"]["document_status"] == "missing"
    assert records["c04"]["background"] is None
    assert records["c04"]["gender"] == "no_answer"
    assert records["c05"]["gender"] == "custom"


def test_explicit_columns_win():
    df = pd.DataFrame([{"id": "x", "focus": "both", "age_bucket": "26_40", "age": 12, "experience": "Experienced"}])
    record = process_candidates(df)[0]

    assert record["age_bucket"] == "26_40"
    assert record["experience"] == "experienced"


def test_load_candidates_writes_json(sample_candidates_csv, tmp_path):
    output = tmp_path / "processed.json"
    candidates = load_candidates(sample_candidates_csv, output)

    assert len(candidates) == 5
    with open(output, 'r', encoding='utf-8') as f:
        data = json.load(f)
    assert data[0]["id"] == "c01"
    assert data[0]["ageBucket"] == "under18"

    assert load_candidates_json(output) == candidates
