class OnboardingSolverError(Exception):
    """Base class for everything the solver raises on purpose."""


class ValidationError(OnboardingSolverError):
    """Malformed request: negative capacity, unknown group reference, bad enum value."""


class NoCapacityError(ValidationError):
    """No group in the request has a positive capacity."""

    def __init__(self, message="At least one group needs a capacity greater than 0."):
        super().__init__(message)


class NoEligibleCandidatesError(OnboardingSolverError):
    """Raised in strict mode when the filters leave nobody to assign."""


class SolutionNotFoundError(OnboardingSolverError):
    def __init__(self, solution_id):
        self.solution_id = solution_id
        super().__init__(f"Solution not found: {solution_id}")


class AllocationInvariantError(OnboardingSolverError, RuntimeError):
    """An allocator produced an invalid assignment. Programming error, never expected."""
