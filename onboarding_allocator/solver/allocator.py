import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from onboarding_allocator.solver.constraints import FairnessTargets, Filters
from onboarding_allocator.solver.errors import AllocationInvariantError
from onboarding_allocator.solver.fairness import (
    SCORE_DIGITS,
    FairnessBalancer,
    GroupComposition,
    focus_penalty,
    summarize_fairness,
)

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3
CLOSE_CALL_DELTA = 0.05
MAX_CLOSE_CALLS = 12


def _freeze(value):
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value):
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class Solution:
    """
    Read-only result of one allocator run. Mappings are wrapped in
    MappingProxyType on construction; to_dict() hands out fresh copies.
    """
    id: str
    assignments: Mapping[str, Tuple[str, ...]]
    unassigned: Tuple[str, ...]
    excluded: Mapping[str, Tuple[str, ...]]
    metrics: Mapping[str, Any]
    capacities: Mapping[str, int]
    filters: Filters = field(default_factory=Filters)
    group_filters: Mapping[str, Filters] = field(default_factory=dict)
    fairness: FairnessTargets = field(default_factory=FairnessTargets)
    strategy: str = "greedy"
    created_at: str = ""

    def __post_init__(self):
        for name in ("assignments", "unassigned", "excluded", "metrics", "capacities", "group_filters"):
            object.__setattr__(self, name, _freeze(getattr(self, name)))

    @property
    def group_order(self):
        return tuple(self.assignments)

    def assigned_group(self, candidate_id) -> Optional[str]:
        for group_id, members in self.assignments.items():
            if candidate_id in members:
                return group_id
        return None

    def to_dict(self):
        return {
            "id": self.id,
            "assignments": _thaw(self.assignments),
            "unassigned": _thaw(self.unassigned),
            "excluded": _thaw(self.excluded),
            "metrics": _thaw(self.metrics),
            "strategy": self.strategy,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class SeatDecision:
    """Who took a seat and the best runners-up, as (candidate id, score) pairs."""
    group_id: str
    seat: int
    candidate_id: str
    score: float
    alternatives: Tuple[Tuple[str, float], ...] = ()

    def to_dict(self):
        return {
            "seat": self.seat,
            "candidateId": self.candidate_id,
            "score": round(self.score, 3),
            "alternatives": [
                {"candidateId": c_id, "score": round(score, 3), "delta": round(self.score - score, 3)}
                for c_id, score in self.alternatives
            ],
        }


class GreedyAllocator:
    """
    Fills groups one at a time, seat by seat. For every seat the balancer
    scores each still-free candidate against the group's current composition,
    minus a focus penalty when the group has a domain; the best score wins and
    ties go to the smallest candidate id.
    """
    name = "greedy"

    def __init__(self, gender_weight=1.0, experience_weight=1.0, focus_weight=1.0):
        self.gender_weight = gender_weight
        self.experience_weight = experience_weight
        self.focus_weight = float(focus_weight)

    def _score(self, balancer, candidate, composition, domain):
        score = balancer.score(candidate, composition)
        if domain is not None:
            score -= self.focus_weight * focus_penalty(domain, candidate.focus)
        return round(score, SCORE_DIGITS)

    def allocate(self, problem, decisions=None):
        """
        Returns group id -> candidate ids in seat order. When a list is passed
        as ``decisions`` one SeatDecision per filled seat is appended to it.
        """
        balancer = FairnessBalancer(problem.fairness, self.gender_weight, self.experience_weight)
        free = {c.id: c for c in problem.candidates}
        assignments = {}

        for group_id in problem.group_order:
            capacity = problem.capacities[group_id]
            domain = problem.domain_of(group_id)
            members = []
            composition = GroupComposition()

            while len(members) < capacity:
                options = [c for c in free.values() if problem.eligible_for(c, group_id)]
                if not options:
                    break

                # Highest score first, then ascending id
                ranked = sorted(
                    ((self._score(balancer, c, composition, domain), c) for c in options),
                    key=lambda pair: (-pair[0], pair[1].id),
                )
                best_score, best = ranked[0]
                logger.debug("Seat %d of %s -> %s (score %.3f)", len(members) + 1, group_id, best.id, best_score)

                if decisions is not None:
                    decisions.append(SeatDecision(
                        group_id=group_id,
                        seat=len(members) + 1,
                        candidate_id=best.id,
                        score=best_score,
                        alternatives=tuple((c.id, s) for s, c in ranked[1:1 + MAX_ALTERNATIVES]),
                    ))

                composition.add(best)
                members.append(best.id)
                del free[best.id]

            assignments[group_id] = members

        return assignments


def summarize_decisions(decisions, close_call_delta=CLOSE_CALL_DELTA, limit=MAX_CLOSE_CALLS):
    """
    Per-group seat explanations plus the closest calls: seats whose best
    runner-up scored within ``close_call_delta`` of the winner, smallest
    delta first.
    """
    seats = {}
    close_calls = []
    for decision in decisions:
        seats.setdefault(decision.group_id, []).append(decision.to_dict())
        if not decision.alternatives:
            continue
        delta = round(decision.score - decision.alternatives[0][1], 3)
        if delta <= close_call_delta:
            close_calls.append({
                "groupId": decision.group_id,
                "seat": decision.seat,
                "delta": delta,
                "candidateIds": [decision.candidate_id] + [c_id for c_id, _ in decision.alternatives[:2]],
            })

    close_calls.sort(key=lambda call: call["delta"])
    return seats, close_calls[:limit]


def verify_assignments(problem, assignments):
    """Abort on any hard-constraint breach instead of returning an invalid solution."""
    eligible = {c.id: c for c in problem.candidates}
    seen = {}

    for group_id, members in assignments.items():
        if group_id not in problem.capacities:
            raise AllocationInvariantError(f"Assignment to unknown group '{group_id}'.")
        if len(members) > problem.capacities[group_id]:
            raise AllocationInvariantError(
                f"Group '{group_id}' has {len(members)} candidates for capacity {problem.capacities[group_id]}."
            )
        for candidate_id in members:
            if candidate_id in seen:
                raise AllocationInvariantError(
                    f"Candidate '{candidate_id}' assigned to both '{seen[candidate_id]}' and '{group_id}'."
                )
            seen[candidate_id] = group_id
            candidate = eligible.get(candidate_id)
            if candidate is None:
                raise AllocationInvariantError(f"Candidate '{candidate_id}' is not in the eligible pool.")
            if not problem.eligible_for(candidate, group_id):
                raise AllocationInvariantError(f"Candidate '{candidate_id}' fails the filters of '{group_id}'.")


def compute_metrics(problem, assignments, unassigned, thresholds=None):
    by_id = {c.id: c for c in problem.candidates}
    groups = {}
    assigned_candidates = []

    for group_id, members in assignments.items():
        capacity = problem.capacities[group_id]
        people = [by_id[c] for c in members]
        assigned_candidates.extend(people)
        groups[group_id] = {
            "capacity": capacity,
            "assigned": len(members),
            "fillRate": round(len(members) / capacity, 2) if capacity > 0 else 0,
            "fairness": summarize_fairness(people, problem.fairness, thresholds),
        }

    total_capacity = problem.total_capacity
    total_assigned = len(assigned_candidates)
    return {
        "totalCapacity": total_capacity,
        "totalAssigned": total_assigned,
        "eligibleCount": len(problem.candidates),
        "excludedCount": len(problem.excluded),
        "unassignedCount": len(unassigned),
        "fillRate": round(total_assigned / total_capacity, 2) if total_capacity > 0 else 0,
        "groups": groups,
        "fairness": summarize_fairness(assigned_candidates, problem.fairness, thresholds),
    }


def build_solution(problem, assignments, strategy, thresholds=None, decisions=None):
    # Groups the allocator did not touch still show up, empty
    complete = {g: list(assignments.get(g, [])) for g in problem.group_order}
    verify_assignments(problem, complete)

    placed = {c for members in complete.values() for c in members}
    unassigned = tuple(c.id for c in problem.candidates if c.id not in placed)

    metrics = compute_metrics(problem, complete, unassigned, thresholds)
    metrics["seats"], metrics["closeCalls"] = summarize_decisions(decisions or [])

    return Solution(
        id=uuid.uuid4().hex,
        assignments={g: tuple(members) for g, members in complete.items()},
        unassigned=unassigned,
        excluded=dict(problem.excluded),
        metrics=metrics,
        capacities=dict(problem.capacities),
        filters=problem.filters,
        group_filters=dict(problem.group_filters),
        fairness=problem.fairness,
        strategy=strategy,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
