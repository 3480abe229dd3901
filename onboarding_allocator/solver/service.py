import copy
import json
import logging
from pathlib import Path

from onboarding_allocator.solver.allocator import GreedyAllocator, build_solution
from onboarding_allocator.solver.conflicts import ConflictDetector
from onboarding_allocator.solver.constraints import build_problem
from onboarding_allocator.solver.errors import NoEligibleCandidatesError, ValidationError
from onboarding_allocator.solver.exact import CpSatAllocator
from onboarding_allocator.solver.store import InMemorySolutionStore

logger = logging.getLogger(__name__)

CONFIG_PATH = Path('data') / 'solver_config.json'

DEFAULT_CONFIG = {
    "strategy": "greedy",
    "time_limit_seconds": 10.0,
    "fairness_weights": {"gender": 1.0, "experience": 1.0},
    "focus_weight": 1.0,
    "status_thresholds": {"gender": [0.10, 0.20], "experience": [0.15, 0.25]},
    "max_stored_solutions": 10,
    "candidates_path": "data/processed/candidates.json",
}

STRATEGIES = ("greedy", "cp-sat")


def merge_config(overrides):
    config = copy.deepcopy(DEFAULT_CONFIG)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def load_config(path=None):
    """Read the JSON config (CWD-relative by default) on top of DEFAULT_CONFIG."""
    config_path = Path(path) if path else CONFIG_PATH
    if not config_path.exists():
        logger.info("No config at %s, using defaults", config_path)
        return merge_config(None)

    with open(config_path, 'r', encoding='utf-8') as f:
        return merge_config(json.load(f))


class OnboardingSolver:
    def __init__(self, store=None, config=None):
        config = load_config() if config is None else merge_config(config)

        self.config = config
        self.strategy = config["strategy"]
        self.time_limit = config["time_limit_seconds"]
        self.gender_weight = config["fairness_weights"].get("gender", 1.0)
        self.experience_weight = config["fairness_weights"].get("experience", 1.0)
        self.focus_weight = config["focus_weight"]
        self.thresholds = {k: tuple(v) for k, v in config["status_thresholds"].items()}

        if store is None:
            store = InMemorySolutionStore(max_entries=config.get("max_stored_solutions"))
        self.store = store
        self.detector = ConflictDetector(store)

    def make_allocator(self, strategy=None):
        strategy = strategy or self.strategy
        if strategy == "greedy":
            return GreedyAllocator(self.gender_weight, self.experience_weight, self.focus_weight)
        if strategy == "cp-sat":
            return CpSatAllocator(self.time_limit, self.gender_weight, self.experience_weight, self.focus_weight)
        raise ValidationError(f"Unknown strategy '{strategy}'. Expected one of: {', '.join(STRATEGIES)}")

    def solve(self, candidates, capacities, filters=None, fairness=None, group_filters=None,
              group_order=None, strategy=None, strict=False, group_domains=None):
        allocator = self.make_allocator(strategy)
        problem = build_problem(candidates, capacities, filters, fairness, group_filters, group_order, group_domains)

        if not problem.candidates:
            if strict:
                raise NoEligibleCandidatesError(
                    f"No eligible candidates ({len(problem.excluded)} excluded by filters)."
                )
            logger.warning("No eligible candidates (%d excluded by filters), returning an empty solution",
                           len(problem.excluded))

        logger.info("Solving %d candidates into %d groups (capacity %d) with %s",
                    len(problem.candidates), len(problem.capacities), problem.total_capacity, allocator.name)
        decisions = []
        assignments = allocator.allocate(problem, decisions)
        solution = build_solution(problem, assignments, allocator.name, self.thresholds, decisions)

        self.store.put(solution)
        logger.info("Solution %s: %d assigned, %d unassigned, %d excluded", solution.id,
                    solution.metrics["totalAssigned"], len(solution.unassigned), len(solution.excluded))
        return solution

    def solve_request(self, candidates, request, strict=False):
        """Solve from a wire payload: capacities, filters, fairness, groupFilters, groupOrder, groupDomains, strategy."""
        if "capacities" not in request:
            raise ValidationError("Solve request needs 'capacities'.")
        return self.solve(
            candidates,
            request["capacities"],
            filters=request.get("filters"),
            fairness=request.get("fairness"),
            group_filters=request.get("groupFilters"),
            group_order=request.get("groupOrder"),
            strategy=request.get("strategy"),
            strict=strict,
            group_domains=request.get("groupDomains"),
        )

    def get_solution(self, solution_id):
        return self.store.get(solution_id)

    def conflicts(self, solution_id, candidates, capacities=None, filters=None, group_filters=None,
                  other_solution_ids=()):
        return self.detector.detect(solution_id, candidates, capacities, filters, group_filters,
                                    other_solution_ids)
