"""
Job ranking by skill overlap between a user and candidate jobs.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

import numpy as np

from .formatting import Entity
from .store import Record


def _normalize(names: Iterable[str | None]) -> List[str]:
    return sorted({name.strip().lower() for name in names if name and name.strip()})


def skill_vectors(
    user_skills: Iterable[str | None],
    job_skills: Iterable[str | None],
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Indicator vectors of both skill sets over their combined vocabulary.
    """
    user = _normalize(user_skills)
    job = _normalize(job_skills)
    vocabulary = sorted(set(user) | set(job))
    index = {name: i for i, name in enumerate(vocabulary)}

    user_vec = np.zeros(len(vocabulary), dtype=float)
    job_vec = np.zeros(len(vocabulary), dtype=float)
    user_vec[np.array([index[name] for name in user], dtype=int)] = 1.0
    job_vec[np.array([index[name] for name in job], dtype=int)] = 1.0
    return user_vec, job_vec


def cosine_similarity(vec_a: np.ndarray, vec_b: np.ndarray) -> float:
    """
    Cosine similarity between two 1D numpy arrays.
    """
    if vec_a.size != vec_b.size:
        raise ValueError("Vectors must be of the same size")

    denom = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if denom == 0:
        # No skills on one side -> nothing in common.
        return 0.0
    return float(np.dot(vec_a, vec_b) / denom)


def rank_jobs(records: Sequence[Record], limit: int | None = None) -> List[Entity]:
    """
    Score each ``(node, job_skills, user_skills)`` record and return the jobs
    best first, each with its ``score`` added to the data.

    Ties keep the store order.
    """
    scored: List[Tuple[float, Entity]] = []
    for record in records:
        node = record.get("node")
        if node is None:
            continue
        user_vec, job_vec = skill_vectors(
            record.get("user_skills") or [], record.get("job_skills") or [],
        )
        score = cosine_similarity(user_vec, job_vec)
        if score <= 0:
            continue

        job = Entity.from_node(node, "Job")
        job.data["score"] = score
        scored.append((score, job))

    scored.sort(key=lambda x: x[0], reverse=True)
    jobs = [job for _, job in scored]
    return jobs[:limit] if limit is not None else jobs
