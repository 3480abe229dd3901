import logging

from ortools.sat.python import cp_model

from onboarding_allocator.solver.errors import AllocationInvariantError
from onboarding_allocator.solver.fairness import focus_penalty

logger = logging.getLogger(__name__)

# Shares are compared as integers: count * SCALE vs. round(share * SCALE) * group_size
SCALE = 100


class CpSatAllocator:
    """
    Same contract as GreedyAllocator, solved as a CP-SAT model instead.

    Objective (lexicographic through a big-M weight):
      1. maximize the number of filled seats
      2. minimize the weighted absolute deviation of every group's category
         counts from the fairness target shares, plus the focus penalty of
         every candidate seated in a group with a domain
    """
    name = "cp-sat"

    def __init__(self, time_limit_seconds=10.0, gender_weight=1.0, experience_weight=1.0, focus_weight=1.0):
        self.time_limit = float(time_limit_seconds)
        self.gender_weight = int(round(gender_weight * SCALE))
        self.experience_weight = int(round(experience_weight * SCALE))
        self.focus_weight = int(round(focus_weight * SCALE))

    def _deviation_terms(self, model, group_id, pairs, size, facet, targets, weight):
        """Add |count_k * SCALE - target_k * size| for every category k; return weighted vars."""
        if targets is None or weight <= 0:
            return [], 0

        categories = sorted(set(targets) | {getattr(c, facet) for c, _ in pairs})
        terms = []
        bound = 0
        for key in categories:
            target_scaled = int(round(targets.get(key, 0.0) * SCALE))
            members = [var for c, var in pairs if getattr(c, facet) == key]
            count = sum(members) if members else 0
            upper = SCALE * max(1, len(pairs))
            dev = model.NewIntVar(0, upper, f"dev_{facet}_{group_id}_{key}")
            expr = count * SCALE - size * target_scaled
            model.Add(dev >= expr)
            model.Add(dev >= -expr)
            terms.append(dev * weight)
            bound += upper * weight
        return terms, bound

    def allocate(self, problem, decisions=None):
        # Seats are not filled one by one, so there are no per-seat decisions to report
        model = cp_model.CpModel()
        by_id = {c.id: c for c in problem.candidates}

        # 1. Variables
        x = {}
        for candidate in problem.candidates:
            for group_id in problem.group_order:
                if problem.capacities[group_id] > 0 and problem.eligible_for(candidate, group_id):
                    x[(candidate.id, group_id)] = model.NewBoolVar(f"x_{candidate.id}_{group_id}")

        if not x:
            return {group_id: [] for group_id in problem.group_order}

        # 2. Hard constraints
        for candidate in problem.candidates:
            own = [var for (c_id, _), var in x.items() if c_id == candidate.id]
            if own:
                model.Add(sum(own) <= 1)

        group_pairs = {}
        group_sizes = {}
        for group_id in problem.group_order:
            pairs = [(c, x[(c.id, group_id)]) for c in problem.candidates if (c.id, group_id) in x]
            group_pairs[group_id] = pairs
            size = sum(var for _, var in pairs) if pairs else 0
            group_sizes[group_id] = size
            if pairs:
                model.Add(size <= problem.capacities[group_id])

        # 3. Objective
        deviation_terms = []
        penalty_bound = 0
        for group_id in problem.group_order:
            pairs = group_pairs[group_id]
            if not pairs:
                continue
            for facet, targets, weight in (
                ("gender", problem.fairness.gender, self.gender_weight),
                ("experience", problem.fairness.experience, self.experience_weight),
            ):
                terms, bound = self._deviation_terms(
                    model, group_id, pairs, group_sizes[group_id], facet, targets, weight
                )
                deviation_terms.extend(terms)
                penalty_bound += bound

        focus_terms = []
        for (candidate_id, group_id), var in x.items():
            domain = problem.domain_of(group_id)
            if domain is None or self.focus_weight <= 0:
                continue
            cost = int(round(focus_penalty(domain, by_id[candidate_id].focus) * SCALE * self.focus_weight))
            if cost > 0:
                focus_terms.append(var * cost)
                penalty_bound += cost

        seat_weight = penalty_bound + 1
        filled = sum(x.values())
        penalties = deviation_terms + focus_terms
        model.Maximize(filled * seat_weight - (sum(penalties) if penalties else 0))

        # 4. Solve
        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.time_limit
        solver.parameters.num_workers = 1
        solver.parameters.random_seed = 0
        status = solver.Solve(model)

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            raise AllocationInvariantError(
                f"CP-SAT returned {solver.StatusName(status)} within {self.time_limit:.1f} s."
            )
        logger.info("CP-SAT status %s, objective %s", solver.StatusName(status), solver.ObjectiveValue())

        assignments = {}
        for group_id in problem.group_order:
            assignments[group_id] = sorted(
                c.id for c, var in group_pairs[group_id] if solver.Value(var) == 1
            )
        return assignments
