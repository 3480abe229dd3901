from collections import Counter

DEFAULT_STATUS_THRESHOLDS = {
    "gender": (0.10, 0.20),
    "experience": (0.15, 0.25),
}

SCORE_DIGITS = 9

# group domain -> candidate focus -> score penalty
FOCUS_PENALTIES = {
    "acting": {"acting": 0.0, "both": 0.02, "tech": 0.4},
    "tech": {"tech": 0.0, "both": 0.04, "acting": 0.25},
}


def focus_penalty(domain, focus):
    if domain is None:
        return 0.0
    return FOCUS_PENALTIES[domain].get(focus, 0.0)


class GroupComposition:
    """Running category counts of one group's assigned candidates."""

    def __init__(self):
        self.total = 0
        self.gender = Counter()
        self.experience = Counter()

    def add(self, candidate):
        self.total += 1
        self.gender[candidate.gender] += 1
        self.experience[candidate.experience] += 1

    def share(self, facet, key):
        if self.total == 0:
            return 0.0
        return getattr(self, facet)[key] / self.total


class FairnessBalancer:
    def __init__(self, targets, gender_weight=1.0, experience_weight=1.0):
        """
        targets: FairnessTargets with normalized shares (or None per facet).
        gender_weight / experience_weight: additive weights of the two deficits.

        score = gender_weight * (target_share - current_share)
              + experience_weight * (target_share - current_share)

        A category missing from a target has target share 0, so it only wins
        seats once every targeted category has caught up.
        """
        self.targets = targets
        self.gender_weight = float(gender_weight)
        self.experience_weight = float(experience_weight)

    @property
    def active(self):
        return self.targets is not None and self.targets.has_targets

    def deficit(self, facet, key, composition):
        target = getattr(self.targets, facet)
        if target is None:
            return 0.0
        return target.get(key, 0.0) - composition.share(facet, key)

    def score(self, candidate, composition):
        if not self.active:
            return 0.0
        total = 0.0
        if self.targets.gender is not None:
            total += self.gender_weight * self.deficit("gender", candidate.gender, composition)
        if self.targets.experience is not None:
            total += self.experience_weight * self.deficit("experience", candidate.experience, composition)
        return round(total, SCORE_DIGITS)


def _status(deviation, thresholds):
    good, warning = thresholds
    if deviation < good:
        return "good"
    if deviation < warning:
        return "warning"
    return "critical"


def _facet_summary(counts, total, target, thresholds):
    shares = {key: round(count / total, 3) for key, count in sorted(counts.items())} if total else {}
    summary = {"shares": shares, "targets": None, "maxDeviation": None, "status": None}
    if target is None or total == 0:
        return summary

    keys = sorted(set(shares) | set(target))
    deviation = max(abs((counts.get(k, 0) / total) - target.get(k, 0.0)) for k in keys)
    summary["targets"] = {k: round(v, 3) for k, v in sorted(target.items())}
    summary["maxDeviation"] = round(deviation, 3)
    summary["status"] = _status(deviation, thresholds)
    return summary


def summarize_fairness(candidates, targets, thresholds=None):
    """Achieved vs. target shares for a list of assigned candidates."""
    thresholds = thresholds or DEFAULT_STATUS_THRESHOLDS
    candidates = list(candidates)
    gender_counts = Counter(c.gender for c in candidates)
    experience_counts = Counter(c.experience for c in candidates)
    total = len(candidates)

    return {
        "gender": _facet_summary(
            gender_counts, total, targets.gender if targets else None,
            thresholds.get("gender", DEFAULT_STATUS_THRESHOLDS["gender"]),
        ),
        "experience": _facet_summary(
            experience_counts, total, targets.experience if targets else None,
            thresholds.get("experience", DEFAULT_STATUS_THRESHOLDS["experience"]),
        ),
    }
