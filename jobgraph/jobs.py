"""
Job nodes: upsert with required skills and location, listings per user.
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Dict, List, Tuple

from . import locations, skills
from .background import BackgroundTasks
from .errors import ContractViolation, EntityNotFound
from .formatting import Entity, format_many, format_single
from .orchestration import OrchestratedWrite, orchestrate_write
from .payloads import dumps, parse_object, parse_object_list
from .pipeline import Operation, OperationResult
from .query_builder import Query, QueryBuilder
from .recommendation import rank_jobs
from .relationships import create_relationship
from .schema import JOB
from .store import GraphStore


REQUIRES_SKILL = "REQUIRES_SKILL"
AT_LOCATION = "AT_LOCATION"

SERIALIZED_FIELDS = ("company", "salary", "equity", "roles", "skills", "loc")

qb = QueryBuilder(JOB)

_single = partial(format_single, JOB.label)
_many = partial(format_many, JOB.label)

_match_by_id = qb.make_match(["id"])
_match_all = qb.make_match()
_create = qb.make_merge(["id"])
_delete = qb.make_delete(["id"])
_delete_all = qb.make_delete()


def _deleted(records) -> int:
    return records[0].get("deleted", 0) if records else 0


def _prepare(params: Dict[str, Any]) -> Dict[str, Any]:
    data = JOB.project(params)
    if data.get("id") is not None:
        data["id"] = str(data["id"])
    for name in SERIALIZED_FIELDS:
        if name in data and data[name] is not None:
            data[name] = dumps(data[name])
    return data


def _job_id(params: Dict[str, Any]) -> str:
    job_id = params.get("id") or params.get("jobId")
    if job_id is None or job_id == "":
        raise ContractViolation("A job id is required")
    return str(job_id)


def _nested(params: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """
    Checked skills and location of a job. A location without a city is
    skipped; a skill without a name is a :class:`ContractViolation`.
    """
    _job_id(params)
    required = skills.prepare_many(parse_object_list(params.get("skills"), "job skills"))
    location = parse_object(params.get("loc"), "job location")
    if not location.get("city"):
        return required, {}
    return required, locations.prepare(location)


async def _link_nested(store: GraphStore, write: OrchestratedWrite) -> None:
    job = write.entity
    links = []
    required = write.nested_entities("skills")
    if required:
        links.append(create_relationship(store, job, REQUIRES_SKILL, required))
    location = write.nested_entities("location")
    if location:
        links.append(create_relationship(store, job, AT_LOCATION, location[0]))
    await asyncio.gather(*links)


async def create(
    store: GraphStore,
    params: Dict[str, Any],
    background: BackgroundTasks,
) -> OrchestratedWrite:
    """
    Upsert a job by id, upsert the skills and location it lists, then link
    them to the job once every node exists.

    ``skills`` and ``loc`` may be JSON text, as sent by the listing loader.
    """
    required, location = _nested(params)

    nested = {}
    if required:
        nested["skills"] = skills.create_many(store, required)
    if location:
        nested["location"] = locations.create(store, location)

    primary = Operation(_create, _single, setup=_prepare).execute(store, params)
    return await orchestrate_write(
        store,
        background,
        primary=primary,
        nested=nested,
        link=_link_nested,
        name=f"job:{params.get('id')}",
    )


async def create_many(
    store: GraphStore,
    params: Any,
    background: BackgroundTasks,
) -> List[OrchestratedWrite]:
    def setup(raw: Any) -> List[Dict[str, Any]]:
        if isinstance(raw, dict) and "list" in raw:
            raw = raw["list"]
        items = parse_object_list(raw, "job list")
        for item in items:
            _nested(item)
        return items

    async def create_one(store: GraphStore, item: Dict[str, Any]) -> OrchestratedWrite:
        return await create(store, item, background)

    return await Operation(setup=setup).map(create_one).execute(store, params)


async def get_by_id(store: GraphStore, params: Dict[str, Any]) -> OperationResult:
    job_id = _job_id(params)
    result = await Operation(_match_by_id, _single).execute(store, {"id": job_id})
    if result.value is None:
        raise EntityNotFound(JOB.label, {"id": job_id})
    return result


async def get_all(store: GraphStore) -> OperationResult:
    return await Operation(_match_all, _many).execute(store)


async def delete_job(store: GraphStore, params: Dict[str, Any]) -> OperationResult:
    job_id = _job_id(params)
    return await Operation(_delete, _deleted).execute(store, {"id": job_id})


async def delete_all_jobs(store: GraphStore) -> OperationResult:
    return await Operation(_delete_all, _deleted).execute(store)


# ## Listings for a user


def _latest_query(user: Entity, limit: int) -> Query:
    text = """
    MATCH (u) WHERE elementId(u) = $from
    MATCH (node:Job)
    WHERE NOT (u)-[:DISLIKES]->(node)
    RETURN node
    ORDER BY node.created DESC
    LIMIT $limit
    """
    return Query(text, {"from": user.internal_id, "limit": limit})


def _liked_query(user: Entity) -> Query:
    text = """
    MATCH (u)-[:LIKES]->(node:Job)
    WHERE elementId(u) = $from
    RETURN node
    ORDER BY node.created DESC
    """
    return Query(text, {"from": user.internal_id})


def _recommended_query(user: Entity) -> Query:
    text = """
    MATCH (u) WHERE elementId(u) = $from
    MATCH (u)-[:HAS_SKILL]->(:Skill)<-[:REQUIRES_SKILL]-(node:Job)
    WHERE NOT (u)-[:DISLIKES]->(node)
    WITH DISTINCT u, node
    MATCH (node)-[:REQUIRES_SKILL]->(js:Skill)
    WITH u, node, collect(js.name) AS job_skills
    MATCH (u)-[:HAS_SKILL]->(us:Skill)
    RETURN node, job_skills, collect(us.name) AS user_skills
    ORDER BY node.created DESC
    """
    return Query(text, {"from": user.internal_id})


async def get_latest(store: GraphStore, user: Entity, limit: int = 20) -> OperationResult:
    """Newest jobs the user has not disliked."""
    return await Operation(lambda _: _latest_query(user, limit), _many).execute(store)


async def get_liked(store: GraphStore, user: Entity) -> OperationResult:
    return await Operation(lambda _: _liked_query(user), _many).execute(store)


async def get_recommended(store: GraphStore, user: Entity, limit: int = 20) -> OperationResult:
    """Jobs sharing skills with the user, best skill match first."""
    operation = Operation(lambda _: _recommended_query(user), partial(rank_jobs, limit=limit))
    return await operation.execute(store)
