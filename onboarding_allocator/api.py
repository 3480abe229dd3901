import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from onboarding_allocator.reason_descriptions import FILTER_DESCRIPTIONS, REASON_DESCRIPTIONS
from onboarding_allocator.solver.errors import NoCapacityError, SolutionNotFoundError, ValidationError
from onboarding_allocator.solver.service import OnboardingSolver

logger = logging.getLogger(__name__)

# Initialize FastAPI
app = FastAPI(title="Onboarding Allocator API")

# Setup CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for local dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Paths
BASE_DIR = Path(__file__).parent.parent

_solver = None


# --- Models ---
class SolveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    capacities: Dict[str, Any]
    candidates: Optional[List[Dict[str, Any]]] = None
    filters: Optional[Dict[str, Any]] = None
    fairness: Optional[Dict[str, Any]] = None
    group_filters: Optional[Dict[str, Dict[str, Any]]] = Field(default=None, alias="groupFilters")
    group_order: Optional[List[str]] = Field(default=None, alias="groupOrder")
    group_domains: Optional[Dict[str, Any]] = Field(default=None, alias="groupDomains")
    strategy: Optional[str] = None


class ConflictRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    candidates: Optional[List[Dict[str, Any]]] = None
    capacities: Optional[Dict[str, Any]] = None
    filters: Optional[Dict[str, Any]] = None
    group_filters: Optional[Dict[str, Dict[str, Any]]] = Field(default=None, alias="groupFilters")
    other_solution_ids: List[str] = Field(default_factory=list, alias="otherSolutionIds")


# --- Helpers ---
def get_solver() -> OnboardingSolver:
    global _solver
    if _solver is None:
        _solver = OnboardingSolver()
    return _solver


def load_pool(solver: OnboardingSolver) -> List[Dict[str, Any]]:
    """Reads the processed candidate pool named in the solver config."""
    pool_path = BASE_DIR / solver.config["candidates_path"]
    if not pool_path.exists():
        raise ValidationError(f"No candidates supplied and no candidate pool at {pool_path}.")
    with open(pool_path, 'r', encoding='utf-8') as f:
        return json.load(f)


# --- Error mapping ---
@app.exception_handler(NoCapacityError)
def no_capacity_handler(request: Request, exc: NoCapacityError):
    return JSONResponse(status_code=400, content={"error": "no_capacity", "detail": str(exc)})


@app.exception_handler(ValidationError)
def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": "validation_error", "detail": str(exc)})


@app.exception_handler(SolutionNotFoundError)
def not_found_handler(request: Request, exc: SolutionNotFoundError):
    return JSONResponse(status_code=404, content={"error": "not_found", "detail": str(exc)})


# --- Endpoints ---

@app.get("/api/config")
def get_config(solver: OnboardingSolver = Depends(get_solver)):
    return solver.config


@app.get("/api/reasons")
def get_reasons():
    return {"reasons": REASON_DESCRIPTIONS, "filters": FILTER_DESCRIPTIONS}


@app.post("/api/solve")
def solve(body: SolveRequest, solver: OnboardingSolver = Depends(get_solver)):
    candidates = body.candidates if body.candidates is not None else load_pool(solver)
    solution = solver.solve(
        candidates,
        body.capacities,
        filters=body.filters,
        fairness=body.fairness,
        group_filters=body.group_filters,
        group_order=body.group_order,
        strategy=body.strategy,
        group_domains=body.group_domains,
    )
    return {"solution": solution.to_dict()}


@app.get("/api/solutions/{solution_id}")
def get_solution(solution_id: str, solver: OnboardingSolver = Depends(get_solver)):
    return {"solution": solver.get_solution(solution_id).to_dict()}


@app.post("/api/solutions/{solution_id}/conflicts")
def get_conflicts(solution_id: str, body: ConflictRequest, solver: OnboardingSolver = Depends(get_solver)):
    # Fail with 404 before touching the pool file
    solver.get_solution(solution_id)
    candidates = body.candidates if body.candidates is not None else load_pool(solver)
    conflicts = solver.conflicts(
        solution_id,
        candidates,
        capacities=body.capacities,
        filters=body.filters,
        group_filters=body.group_filters,
        other_solution_ids=body.other_solution_ids,
    )
    logger.info("Solution %s: %d conflicts", solution_id, len(conflicts))
    return {"conflicts": [c.to_dict() for c in conflicts]}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
