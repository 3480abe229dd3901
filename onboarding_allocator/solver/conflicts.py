"""
Conflict detection for stored solutions.

Checks run per group in the solution's own order:
1. assigned candidates that vanished from the pool or fail the current filters
2. still-valid candidates over the current capacity, latest assignment first
3. still-valid candidates that another stored solution also seats
"""

from dataclasses import dataclass
from enum import Enum

from onboarding_allocator.solver.constraints import (
    Filters,
    coerce_candidates,
    normalize_capacities,
    normalize_group_filters,
)
from onboarding_allocator.solver.errors import SolutionNotFoundError, ValidationError


class ConflictReason(str, Enum):
    CAPACITY_EXCEEDED = "capacity_exceeded"
    NO_LONGER_ELIGIBLE = "no_longer_eligible"
    DOUBLE_BOOKED = "double_booked"


@dataclass(frozen=True)
class Conflict:
    candidate_id: str
    group_id: str
    reason: ConflictReason
    details: str = ""

    def to_dict(self):
        return {
            "candidateId": self.candidate_id,
            "groupId": self.group_id,
            "reason": self.reason.value,
            "details": self.details,
        }


class ConflictDetector:
    def __init__(self, store):
        self.store = store

    def _other_bookings(self, solution_id, other_solution_ids):
        # candidate id -> (solution id, group id) of the first other solution seating them
        bookings = {}
        for other_id in other_solution_ids:
            if other_id == solution_id:
                continue
            try:
                other = self.store.get(other_id)
            except SolutionNotFoundError as exc:
                raise ValidationError(f"Unknown solution id '{other_id}' in other solution ids.") from exc
            for group_id, members in other.assignments.items():
                for candidate_id in members:
                    bookings.setdefault(candidate_id, (other.id, group_id))
        return bookings

    def detect(self, solution_id, candidates, capacities=None, filters=None, group_filters=None,
               other_solution_ids=()):
        solution = self.store.get(solution_id)

        pool = {c.id: c for c in coerce_candidates(candidates)}
        current_capacities = (
            normalize_capacities(capacities, require_positive=False)
            if capacities is not None else dict(solution.capacities)
        )
        current_filters = Filters.from_payload(filters) if filters is not None else solution.filters
        if group_filters is not None:
            known_groups = set(solution.capacities) | set(current_capacities)
            current_group_filters = normalize_group_filters(group_filters, known_groups)
        else:
            current_group_filters = solution.group_filters
        bookings = self._other_bookings(solution_id, other_solution_ids)

        conflicts = []
        for group_id, members in solution.assignments.items():
            group_filter = current_group_filters.get(group_id)
            valid = []

            for candidate_id in members:
                candidate = pool.get(candidate_id)
                if candidate is None:
                    conflicts.append(Conflict(candidate_id, group_id, ConflictReason.NO_LONGER_ELIGIBLE,
                                              "Candidate is no longer in the pool"))
                    continue
                failed = current_filters.failed_facets(candidate)
                if group_filter is not None:
                    failed += [f"{group_id}.{facet}" for facet in group_filter.failed_facets(candidate)]
                if failed:
                    conflicts.append(Conflict(candidate_id, group_id, ConflictReason.NO_LONGER_ELIGIBLE,
                                              f"Fails filters: {', '.join(failed)}"))
                    continue
                valid.append(candidate_id)

            capacity = current_capacities.get(group_id, 0)
            overflow = valid[capacity:]
            for candidate_id in reversed(overflow):
                conflicts.append(Conflict(candidate_id, group_id, ConflictReason.CAPACITY_EXCEEDED,
                                          f"{len(valid)} valid assignments for capacity {capacity}"))

            for candidate_id in valid[:capacity]:
                if candidate_id in bookings:
                    other_id, other_group = bookings[candidate_id]
                    conflicts.append(Conflict(candidate_id, group_id, ConflictReason.DOUBLE_BOOKED,
                                              f"Also assigned to {other_group} in solution {other_id}"))

        return conflicts
