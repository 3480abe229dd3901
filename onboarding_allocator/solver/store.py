import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict

from onboarding_allocator.solver.errors import SolutionNotFoundError

logger = logging.getLogger(__name__)


class SolutionStore(ABC):
    """Maps opaque solution ids to Solution values."""

    @abstractmethod
    def put(self, solution):
        """Store a solution and return its id."""

    @abstractmethod
    def get(self, solution_id):
        """Return the stored solution or raise SolutionNotFoundError."""

    def __contains__(self, solution_id):
        try:
            self.get(solution_id)
        except SolutionNotFoundError:
            return False
        return True


class InMemorySolutionStore(SolutionStore):
    def __init__(self, max_entries=None):
        """
        max_entries: keep at most this many solutions, dropping the oldest
        first. None keeps everything for the lifetime of the process.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._solutions = OrderedDict()
        self._lock = threading.Lock()

    def put(self, solution):
        with self._lock:
            self._solutions[solution.id] = solution
            self._solutions.move_to_end(solution.id)
            while self.max_entries is not None and len(self._solutions) > self.max_entries:
                evicted, _ = self._solutions.popitem(last=False)
                logger.warning("Solution store full, evicted %s", evicted)
        return solution.id

    def get(self, solution_id):
        with self._lock:
            solution = self._solutions.get(solution_id)
        if solution is None:
            raise SolutionNotFoundError(solution_id)
        return solution

    def __len__(self):
        with self._lock:
            return len(self._solutions)

    def ids(self):
        with self._lock:
            return list(self._solutions)
