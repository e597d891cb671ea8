"""
FastAPI application exposing CRUD routes over the job graph.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Sequence

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from . import jobs, locations, skills, users
from .auth import verify_api_key, verify_one_time_token
from .background import BackgroundTasks
from .config import get_settings
from .db import close_driver, get_driver
from .errors import ContractViolation, EntityNotFound, PartialWriteError, StoreAccessError
from .formatting import Entity
from .models import ApiResponse, JobIn, RateJobIn, RelationshipsIn, UserBatchIn, UserIn
from .orchestration import OrchestratedWrite
from .pipeline import OperationResult
from .schema import USER
from .store import GraphStore, Neo4jStore


logger = logging.getLogger(__name__)

SENSITIVE_USER_FIELDS = ("linkedInToken",)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=get_settings().log_level.upper())
    yield
    await app.state.background.drain()
    await close_driver()


app = FastAPI(
    title="Job Graph API",
    description="Neo4j-backed users, skills, jobs and locations.",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.background = BackgroundTasks()

router = APIRouter(prefix="/api/v0")


def get_store() -> GraphStore:
    """Dependency to inject the graph store."""
    return Neo4jStore(get_driver(), get_settings().neo4j_database)


def get_background(request: Request) -> BackgroundTasks:
    return request.app.state.background


# ## Error mapping


def _error(status: int, detail: Any) -> JSONResponse:
    return JSONResponse(status_code=status, content={"detail": detail})


@app.exception_handler(ContractViolation)
async def contract_violation(request: Request, exc: ContractViolation) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(EntityNotFound)
async def entity_not_found(request: Request, exc: EntityNotFound) -> JSONResponse:
    return _error(404, str(exc))


@app.exception_handler(PartialWriteError)
async def partial_write(request: Request, exc: PartialWriteError) -> JSONResponse:
    logger.error("Route: %s %s %s", request.method, request.url.path, exc)
    return _error(
        502,
        {
            "message": str(exc),
            "failed": {step: str(err) for step, err in exc.failures.items()},
            "completed": sorted(exc.completed),
        },
    )


@app.exception_handler(StoreAccessError)
async def store_access(request: Request, exc: StoreAccessError) -> JSONResponse:
    logger.error("Route: %s %s %s", request.method, request.url.path, exc)
    return _error(503, "Graph store unavailable")


# ## Response helpers


def _redact(value: Any) -> Any:
    if isinstance(value, Entity):
        data = dict(value.data)
        if value.label == USER.label:
            for name in SENSITIVE_USER_FIELDS:
                data.pop(name, None)
        return value.model_copy(update={"data": data})
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def _plain(value: Any) -> Any:
    if isinstance(value, Entity):
        return value.model_dump()
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


def _respond(
    results: Sequence[OperationResult],
    include_queries: bool,
    one_time_token: Optional[str],
    single: bool = False,
) -> ApiResponse:
    """
    Build the response body. Sensitive user fields are dropped unless a
    valid one-time token was presented.
    """
    values = [result.value for result in results]
    if not verify_one_time_token(one_time_token):
        values = [_redact(value) for value in values]

    queries = None
    if include_queries:
        queries = [query.as_dict() for result in results for query in result.queries]

    body = values[0] if single and values else values
    return ApiResponse(results=_plain(body), queries=queries)


def _flatten(writes: Sequence[OrchestratedWrite]) -> List[OperationResult]:
    return [result for write in writes for result in write.results()]


# ## Users


@router.get("/users", response_model=ApiResponse)
async def list_users(
    type: Optional[str] = Query(None, description='"all" for every user node, else collection members'),
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
    x_auth_onetimetoken: Optional[str] = Header(None),
) -> ApiResponse:
    if type == "all":
        result = await users.get_all(store)
    else:
        result = await users.list_members(store)
    return _respond([result], neo4j, x_auth_onetimetoken, single=True)


@router.post("/users", response_model=ApiResponse)
async def add_user(
    payload: UserIn,
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
    background: BackgroundTasks = Depends(get_background),
    x_auth_onetimetoken: Optional[str] = Header(None),
) -> ApiResponse:
    """Create or update a user with its skills and location."""
    write = await users.create(store, payload.model_dump(exclude_none=True), background)
    return _respond(write.results(), neo4j, x_auth_onetimetoken)


@router.post("/users/batch", response_model=ApiResponse)
async def add_users(
    payload: UserBatchIn,
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
    background: BackgroundTasks = Depends(get_background),
    x_auth_onetimetoken: Optional[str] = Header(None),
) -> ApiResponse:
    """
    Create several users. Each created user then knows the next one in the
    list, the last one the first.
    """
    writes = await users.create_many(store, payload.list, background)
    if not writes:
        raise ContractViolation("list must contain at least one user")

    created = [write.entity for write in writes]
    background.spawn(users.knows_next(store, created), name="users:batch:knows")
    return _respond(_flatten(writes), neo4j, x_auth_onetimetoken)


@router.delete("/users", response_model=ApiResponse)
async def delete_all_users(
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
) -> ApiResponse:
    """Delete all users and their relationships."""
    result = await users.delete_all_users(store)
    return _respond([result], neo4j, None, single=True)


@router.get("/users/{id}", response_model=ApiResponse)
async def find_user(
    id: str,
    optionalNodes: Optional[str] = Query(None, description='JSON list such as ["skills"], or "all"'),
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
    x_auth_onetimetoken: Optional[str] = Header(None),
) -> ApiResponse:
    params = {"id": id}
    if optionalNodes == "all":
        params["related"] = list(users.RELATIONSHIPS)
    elif optionalNodes:
        params["related"] = optionalNodes
    result = await users.get_by_id(store, params)
    return _respond([result], neo4j, x_auth_onetimetoken, single=True)


@router.put("/users/{id}", response_model=ApiResponse)
async def update_user(
    id: str,
    payload: UserIn,
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
    background: BackgroundTasks = Depends(get_background),
    x_auth_onetimetoken: Optional[str] = Header(None),
) -> ApiResponse:
    params = payload.model_dump(exclude_none=True)
    params["id"] = id
    write = await users.update(store, params, background)
    return _respond(write.results(), neo4j, x_auth_onetimetoken)


@router.delete("/users/{id}", response_model=ApiResponse)
async def delete_user(
    id: str,
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
) -> ApiResponse:
    """Delete a user and its relationships."""
    result = await users.delete_user(store, {"id": id})
    return _respond([result], neo4j, None, single=True)


@router.post("/users/{userId}/jobs/{jobId}", response_model=ApiResponse)
async def rate_job(
    userId: str,
    jobId: str,
    payload: RateJobIn,
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
    x_auth_onetimetoken: Optional[str] = Header(None),
) -> ApiResponse:
    """Like or dislike a job."""
    write = await users.rate_job(store, {"userId": userId, "jobId": jobId, "like": payload.like})
    return _respond(write.results(), neo4j, x_auth_onetimetoken)


@router.get("/users/{id}/jobs", response_model=ApiResponse)
async def user_jobs(
    id: str,
    type: Optional[str] = Query(None, description='"latest" or "likes"; defaults to recommendations'),
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
) -> ApiResponse:
    settings = get_settings()
    result = await users.get_user_jobs(
        store,
        {"id": id, "type": type},
        latest_limit=settings.jobs_latest_limit,
        recommended_limit=settings.jobs_recommended_limit,
    )
    return _respond([result], neo4j, None, single=True)


@router.put("/users/{id}/relationships", response_model=ApiResponse)
async def remove_relationships(
    id: str,
    payload: RelationshipsIn,
    action: str = "delete",
    neo4j: bool = False,
    store: GraphStore = Depends(get_store),
) -> ApiResponse:
    """Delete the user's skill and/or location relationships."""
    if payload.skills is None and payload.locations is None:
        raise ContractViolation("skills or locations is required")
    if action != "delete":
        raise ContractViolation(f"Unsupported relationship action: {action!r}")

    groups = payload.model_dump(exclude_none=True)
    results = await asyncio.gather(
        *(
            users.remove_relationships(store, {"id": id, "type": kind, "relationships": rels})
            for kind, rels in groups.items()
        )
    )
    return _respond(list(results), neo4j, None)


# ## Jobs


@router.get("/jobs", response_model=ApiResponse)
async def list_jobs(neo4j: bool = False, store: GraphStore = Depends(get_store)) -> ApiResponse:
    result = await jobs.get_all(store)
    return _respond([result], neo4j, None, single=True)


@router.post("/jobs", response_model=ApiResponse)
async def add_job(
    payload: JobIn,
    neo4j: bool = False,
    api_key: Optional[str] = Header(None, convert_underscores=False),
    store: GraphStore = Depends(get_store),
    background: BackgroundTasks = Depends(get_background),
) -> ApiResponse:
    """Create or update a job listing with its skills and location."""
    if not verify_api_key(api_key):
        raise HTTPException(status_code=401, detail="Invalid api_key")
    write = await jobs.create(store, payload.model_dump(exclude_none=True), background)
    return _respond(write.results(), neo4j, None)


@router.get("/jobs/{id}", response_model=ApiResponse)
async def find_job(id: str, neo4j: bool = False, store: GraphStore = Depends(get_store)) -> ApiResponse:
    result = await jobs.get_by_id(store, {"id": id})
    return _respond([result], neo4j, None, single=True)


@router.delete("/jobs/{id}", response_model=ApiResponse)
async def delete_job(id: str, neo4j: bool = False, store: GraphStore = Depends(get_store)) -> ApiResponse:
    result = await jobs.delete_job(store, {"id": id})
    return _respond([result], neo4j, None, single=True)


# ## Skills and locations


@router.get("/skills", response_model=ApiResponse)
async def list_skills(neo4j: bool = False, store: GraphStore = Depends(get_store)) -> ApiResponse:
    result = await skills.get_all(store)
    return _respond([result], neo4j, None, single=True)


@router.get("/locations", response_model=ApiResponse)
async def list_locations(neo4j: bool = False, store: GraphStore = Depends(get_store)) -> ApiResponse:
    result = await locations.get_all(store)
    return _respond([result], neo4j, None, single=True)


app.include_router(router)


@app.get("/health")
async def health() -> dict:
    """Simple health-check endpoint used by external monitors."""
    return {"status": "ok"}
