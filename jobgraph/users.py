"""
User nodes and the cross-entity operations built around them.

``create`` is an upsert (MERGE on ``id``) and also serves as ``update``. It
writes the user, its skills and its location in parallel and links them once
all three exist. Links are created in the background.
"""

from __future__ import annotations

import asyncio
import json
import logging
from functools import partial
from typing import Any, Dict, List, Sequence

from . import jobs, locations, skills
from .background import BackgroundTasks
from .errors import ContractViolation, EntityNotFound
from .formatting import Entity, format_many, format_single
from .orchestration import OrchestratedWrite, orchestrate_write
from .payloads import parse_object_list
from .pipeline import Operation, OperationResult
from .query_builder import Query, QueryBuilder
from .relationships import (
    RelationshipType,
    build_removal_query,
    create_relationship,
    parse_descriptors,
    traverse,
)
from .schema import LOCATION, SKILL, USER, StoreExpr
from .store import GraphStore


logger = logging.getLogger(__name__)

HAS_SKILL = "HAS_SKILL"
WANTS_LOCATION = "WANTS_LOCATION"
KNOWS = "KNOWS"
JOINED = "JOINED"
LIKES = "LIKES"
DISLIKES = "DISLIKES"

# Relationship groups a caller may name in ``related`` / ``remove_relationships``.
RELATIONSHIPS = {
    "skills": RelationshipType("skills", HAS_SKILL, SKILL, ("name", "normalized")),
    "locations": RelationshipType("locations", WANTS_LOCATION, LOCATION, ("city",)),
}

NESTED_FIELDS = ("skills", "location")

qb = QueryBuilder(USER)

_single = partial(format_single, USER.label)
_many = partial(format_many, USER.label)

_match_by_id = qb.make_match(["id"])
_match_all = qb.make_match()
_create = qb.make_merge(["id"], {"created": StoreExpr("timestamp()")})
_delete = qb.make_delete(["id"])
_delete_all = qb.make_delete()


def _deleted(records) -> int:
    return records[0].get("deleted", 0) if records else 0


def _user_id(params: Dict[str, Any]) -> str:
    user_id = params.get("id") or params.get("userId")
    if user_id is None or user_id == "":
        raise ContractViolation("A user id is required")
    return str(user_id)


# ## Relationships


async def has_skill(store: GraphStore, user: Entity, targets) -> OperationResult:
    return await create_relationship(store, user, HAS_SKILL, targets)


async def at_location(store: GraphStore, user: Entity, location: Entity) -> OperationResult:
    return await create_relationship(store, user, WANTS_LOCATION, location)


async def knows(store: GraphStore, user: Entity, others) -> OperationResult:
    return await create_relationship(store, user, KNOWS, others)


async def likes(store: GraphStore, user: Entity, job: Entity) -> OperationResult:
    return await create_relationship(store, user, LIKES, job)


async def dislikes(store: GraphStore, user: Entity, job: Entity) -> OperationResult:
    return await create_relationship(store, user, DISLIKES, job)


_collection = Operation(
    lambda _: Query("MERGE (node:Users)\nRETURN node"),
    partial(format_single, "Users"),
)


async def joined(store: GraphStore, user: Entity) -> OperationResult:
    """Link the user to the ``Users`` collection node, creating it if needed."""
    collection = await _collection.execute(store)
    result = await create_relationship(
        store, user, JOINED, collection.value, {"date": StoreExpr("timestamp()")},
    )
    return OperationResult(result.value, collection.queries + result.queries)


async def knows_next(store: GraphStore, users: Sequence[Entity]) -> List[OperationResult]:
    """
    Link each user to the next one in the list, the last one to the first.
    A lone user is linked to itself.
    """
    if not users:
        return []
    pairs = zip(users, list(users[1:]) + [users[0]])
    return list(await asyncio.gather(*(knows(store, a, b) for a, b in pairs)))


# ## Writes


def _prepare(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    User params with the id, skills and location checked. Raises
    :class:`ContractViolation` before any query is built.
    """
    prepared = dict(params)
    prepared["id"] = _user_id(prepared)
    if prepared.get("skills"):
        prepared["skills"] = skills.prepare_many(prepared["skills"])
    if prepared.get("location"):
        prepared["location"] = locations.prepare(prepared["location"])
    return prepared


async def _upsert(
    store: GraphStore,
    params: Dict[str, Any],
    background: BackgroundTasks,
) -> OperationResult:
    result = await Operation(_create, _single).execute(store, params)
    user = result.value
    if user is not None and user.data.get("linkedInToken"):
        background.spawn(joined(store, user), name=f"user:{user.data.get('id')}:joined")
    return result


async def _link_nested(store: GraphStore, write: OrchestratedWrite) -> None:
    user = write.entity
    links = []
    user_skills = write.nested_entities("skills")
    if user_skills:
        links.append(has_skill(store, user, user_skills))
    location = write.nested_entities("location")
    if location:
        links.append(at_location(store, user, location[0]))
    await asyncio.gather(*links)


async def create(
    store: GraphStore,
    params: Dict[str, Any],
    background: BackgroundTasks,
) -> OrchestratedWrite:
    """
    Create or update a user with its skills and location.

    1. upsert the user; a user carrying a ``linkedInToken`` is then linked to
       the ``Users`` collection in the background
    2. upsert the skills and the location alongside step 1
    3. once every node exists, link user -> skills and user -> location in
       the background

    Returns the user result and the nested results. Edge writes are not part
    of the returned value.
    """
    params = _prepare(params)

    nested = {}
    if params.get("skills"):
        nested["skills"] = skills.create_many(store, params["skills"])
    if params.get("location"):
        nested["location"] = locations.create(store, params["location"])

    return await orchestrate_write(
        store,
        background,
        primary=_upsert(store, params, background),
        nested=nested,
        link=_link_nested,
        name=f"user:{params['id']}",
    )


update = create


def _create_many_setup(params: Any) -> List[Dict[str, Any]]:
    if isinstance(params, dict) and "list" in params:
        params = params["list"]
    items = parse_object_list(params, "user list")
    return [
        _prepare({**USER.project(item), **{name: item[name] for name in NESTED_FIELDS if name in item}})
        for item in items
    ]


async def create_many(
    store: GraphStore,
    params: Any,
    background: BackgroundTasks,
) -> List[OrchestratedWrite]:
    """Create each user as :func:`create` does; results keep the input order."""

    async def create_one(store: GraphStore, item: Dict[str, Any]) -> OrchestratedWrite:
        return await create(store, item, background)

    return await Operation(setup=_create_many_setup).map(create_one).execute(store, params)


async def delete_user(store: GraphStore, params: Dict[str, Any]) -> OperationResult:
    user_id = _user_id(params)
    return await Operation(_delete, _deleted).execute(store, {"id": user_id})


async def delete_all_users(store: GraphStore) -> OperationResult:
    return await Operation(_delete_all, _deleted).execute(store)


# ## Reads


def _related_names(raw: Any) -> List[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raw = raw.split(",")
        if isinstance(raw, str):
            raw = [raw]
    if not isinstance(raw, (list, tuple)) or not all(isinstance(name, str) for name in raw):
        raise ContractViolation(f"related must be a list of group names: {raw!r}")
    names = [name.strip() for name in raw]
    names = [name for name in names if name]
    unknown = [name for name in names if name not in RELATIONSHIPS]
    if unknown:
        raise ContractViolation(f"Unknown related group(s): {', '.join(unknown)}")
    return names


async def get_by_id(store: GraphStore, params: Dict[str, Any]) -> OperationResult:
    """
    Fetch a user by ``id`` (or ``userId``).

    Each name in ``related`` (e.g. ``["skills"]``) adds one traversal query,
    run in parallel after the user is found; the related nodes' data is
    stored on the user under that name.
    """
    user_id = _user_id(params)
    related = _related_names(params.get("related"))

    result = await Operation(_match_by_id, _single).execute(store, {"id": user_id})
    user = result.value
    if user is None:
        raise EntityNotFound(USER.label, {"id": user_id})

    groups = await asyncio.gather(
        *(
            traverse(
                store, USER, "id", user_id,
                RELATIONSHIPS[name].label, RELATIONSHIPS[name].target.label,
            )
            for name in related
        )
    )
    for name, group in zip(related, groups):
        user.data[name] = [entity.data for entity in group.value]
        result.queries.extend(group.queries)
    return result


async def get_all(store: GraphStore) -> OperationResult:
    """Every user node, whether or not it joined the collection."""
    return await Operation(_match_all, _many).execute(store)


_members = Operation(
    lambda _: Query("MATCH (node:User)-[:JOINED]->(:Users)\nRETURN node"),
    _many,
)


async def list_members(store: GraphStore) -> OperationResult:
    """Users linked to the ``Users`` collection node."""
    return await _members.execute(store)


async def get_user_jobs(
    store: GraphStore,
    params: Dict[str, Any],
    latest_limit: int = 20,
    recommended_limit: int = 20,
) -> OperationResult:
    """
    Jobs for a user by ``type``: ``"latest"``, ``"likes"``, anything else
    gives recommendations.
    """
    found = await get_by_id(store, {"id": _user_id(params)})
    user = found.value
    kind = params.get("type")
    if kind == "latest":
        listing = await jobs.get_latest(store, user, latest_limit)
    elif kind == "likes":
        listing = await jobs.get_liked(store, user)
    else:
        listing = await jobs.get_recommended(store, user, recommended_limit)
    return OperationResult(listing.value, found.queries + listing.queries)


# ## Ratings and relationship removal


def _like_flag(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


async def rate_job(store: GraphStore, params: Dict[str, Any]) -> OrchestratedWrite:
    """
    Fetch the user and the job together, then add a ``LIKES`` edge when
    ``like`` is ``"true"`` or a ``DISLIKES`` edge when it is ``"false"``.

    Any other value adds nothing. An earlier edge of the opposite kind is
    left in place.
    """
    user_id = _user_id({"id": params.get("userId") or params.get("id")})
    job_id = params.get("jobId")
    if job_id is None or job_id == "":
        raise ContractViolation("A job id is required")

    user_result, job_result = await asyncio.gather(
        get_by_id(store, {"id": user_id}),
        jobs.get_by_id(store, {"id": str(job_id)}),
    )
    write = OrchestratedWrite(primary=user_result, nested={"job": job_result})

    flag = _like_flag(params.get("like"))
    if flag == "true":
        write.edges[LIKES] = await likes(store, user_result.value, job_result.value)
    elif flag == "false":
        write.edges[DISLIKES] = await dislikes(store, user_result.value, job_result.value)
    return write


async def remove_relationships(store: GraphStore, params: Dict[str, Any]) -> OperationResult:
    """
    Delete the user's ``type`` edges (``skills`` or ``locations``) to the
    described targets. The target nodes are kept.

    ``relationships`` may be JSON text. An empty list sends no query.
    """
    descriptors = parse_descriptors(params.get("relationships"))
    if not descriptors:
        return OperationResult({}, [])

    user_id = _user_id(params)
    rel = RELATIONSHIPS.get(params.get("type"))
    if rel is None:
        raise ContractViolation(f"Unknown relationship type: {params.get('type')!r}")

    query = build_removal_query(USER, "id", user_id, rel, descriptors)
    records = await store.run(query.text, query.params)
    deleted = _deleted(records)
    logger.info("Removed %d %s relationship(s) from user %s", deleted, rel.name, user_id)
    return OperationResult({"deleted": deleted}, [query])
