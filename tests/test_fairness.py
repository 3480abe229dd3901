import pytest

from onboarding_allocator.solver.constraints import Candidate, FairnessTargets
from onboarding_allocator.solver.fairness import FairnessBalancer, GroupComposition, summarize_fairness


def _people(*genders, experience="newcomer"):
    return [Candidate(id=f"c{i}", focus="acting", gender=g, experience=experience) for i, g in enumerate(genders)]


def test_composition_shares():
    composition = GroupComposition()
    assert composition.share("gender", "female") == 0.0

    for c in _people("female", "female", "male"):
        composition.add(c)
    assert composition.total == 3
    assert composition.share("gender", "female") == pytest.approx(2 / 3)
    assert composition.share("experience", "newcomer") == 1.0


def test_score_is_zero_without_targets():
    balancer = FairnessBalancer(FairnessTargets())
    assert not balancer.active
    assert balancer.score(_people("female")[0], GroupComposition()) == 0.0


def test_score_favours_under_represented_category():
    targets = FairnessTargets.from_payload({"gender": {"female": 1, "male": 1}})
    balancer = FairnessBalancer(targets)
    composition = GroupComposition()
    composition.add(_people("male")[0])

    female, male, other = _people("female", "male", "diverse")
    assert balancer.score(female, composition) == 0.5
    assert balancer.score(male, composition) == -0.5
    # Untargeted category has target share 0
    assert balancer.score(other, composition) == 0.0


def test_score_adds_weighted_facets():
    targets = FairnessTargets.from_payload({
        "gender": {"female": 1, "male": 1},
        "experience": {"experienced": 1, "newcomer": 1},
    })
    balancer = FairnessBalancer(targets, gender_weight=2.0, experience_weight=1.0)
    candidate = Candidate(id="a", focus="tech", gender="female", experience="experienced")

    assert balancer.score(candidate, GroupComposition()) == pytest.approx(2 * 0.5 + 0.5)


def test_summary_statuses():
    targets = FairnessTargets.from_payload({"gender": {"female": 1, "male": 1}})

    balanced = summarize_fairness(_people("female", "male"), targets)
    assert balanced["gender"]["status"] == "good"
    assert balanced["gender"]["maxDeviation"] == 0.0
    assert balanced["experience"]["status"] is None

    # 0.5 off target
    skewed = summarize_fairness(_people("female", "female"), targets)
    assert skewed["gender"]["status"] == "critical"
    assert skewed["gender"]["shares"] == {"female": 1.0}

    # 2/3 female lands between the two thresholds
    mild = summarize_fairness(_people("female", "female", "male"), targets)
    assert mild["gender"]["status"] == "warning"


def test_summary_custom_thresholds():
    targets = FairnessTargets.from_payload({"gender": {"female": 1, "male": 1}})
    summary = summarize_fairness(_people("female", "female"), targets, {"gender": (0.6, 0.8)})
    assert summary["gender"]["status"] == "good"


def test_summary_of_empty_group():
    targets = FairnessTargets.from_payload({"gender": {"female": 1}})
    summary = summarize_fairness([], targets)
    assert summary["gender"] == {"shares": {}, "targets": None, "maxDeviation": None, "status": None}
