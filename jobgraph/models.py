"""
Pydantic models for API payloads and responses.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel


# Nested objects may be sent as real JSON or as JSON text.
ObjectList = Union[str, List[Any]]
ObjectOrText = Union[str, Dict[str, Any]]


class UserIn(BaseModel):
    """User fields plus the nested groups written alongside the user."""

    id: Optional[str] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None
    linkedInToken: Optional[str] = None
    profileImage: Optional[str] = None
    skills: Optional[ObjectList] = None
    roles: Optional[ObjectList] = None
    location: Optional[ObjectOrText] = None


class UserBatchIn(BaseModel):
    list: ObjectList


class RateJobIn(BaseModel):
    like: Optional[Union[bool, str]] = None


class RelationshipsIn(BaseModel):
    skills: Optional[ObjectList] = None
    locations: Optional[ObjectList] = None


class JobIn(BaseModel):
    """A job listing as posted by the listing loader."""

    id: Union[str, int]
    title: Optional[str] = None
    created: Optional[str] = None
    company: Optional[ObjectOrText] = None
    salary: Optional[ObjectOrText] = None
    equity: Optional[ObjectOrText] = None
    roles: Optional[ObjectList] = None
    skills: Optional[ObjectList] = None
    loc: Optional[ObjectOrText] = None


class QueryOut(BaseModel):
    query: str
    params: Dict[str, Any]


class ApiResponse(BaseModel):
    """Generic wrapper: formatted results plus, on request, the queries run."""

    results: Any = None
    queries: Optional[List[QueryOut]] = None
