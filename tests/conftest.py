import json

import pytest

from onboarding_allocator.solver.service import OnboardingSolver
from onboarding_allocator.solver.store import InMemorySolutionStore


@pytest.fixture
def sample_candidates():
    return [
        {"id": "c01", "focus": "acting", "ageBucket": "18_25", "background": "School", "documentStatus": "complete", "gender": "female", "experience": "newcomer"},
        {"id": "c02", "focus": "tech", "ageBucket": "26_40", "background": "Work", "documentStatus": "pending", "gender": "male", "experience": "experienced"},
        {"id": "c03", "focus": "both", "ageBucket": "under18", "background": "school", "documentStatus": "missing", "gender": "diverse", "experience": "newcomer"},
        {"id": "c04", "focus": "acting", "ageBucket": "over40", "background": None, "documentStatus": "complete", "gender": "male", "experience": "experienced"},
    ]


@pytest.fixture
def balanced_pool():
    # 5 x gender A, 5 x gender B, interleaved ids
    return [
        {"id": f"p{i:02d}", "focus": "acting", "gender": "A" if i % 2 else "B"}
        for i in range(1, 11)
    ]


@pytest.fixture
def solver():
    return OnboardingSolver(store=InMemorySolutionStore(), config={})


@pytest.fixture
def sample_candidates_csv(tmp_path):
    p = tmp_path / "candidates.csv"
    data = """id,focus,age,background,document_status,gender,member_since_year
c01,Acting,17,School,Genehmigt,weiblich,
c02,tech,30,Work,Ausstehend,männlich,2019
c03,both,,Study,,divers,
,acting,22,School,approved,f,
c02,acting,44,Work,approved,m,
c04,acting,41, ,abgelehnt,Keine Angabe,2021
c05,tech,25,Work,kein upload,Pirate,
"""
    p.write_text(data, encoding='utf-8')
    return p


@pytest.fixture
def candidates_json(tmp_path, sample_candidates):
    p = tmp_path / "candidates.json"
    p.write_text(json.dumps(sample_candidates), encoding='utf-8')
    return p
