"""
Reshape third-party job listings into job-creation requests.

A listing's tags are split into roles, skills and a location; nested objects
are serialized to JSON text, which is what ``POST /jobs`` stores.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Optional


LOCATION_TAG = "LocationTag"
ROLE_TAG = "RoleTag"
SKILL_TAG = "SkillTag"


def _number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_tags(tags: List[Dict[str, Any]]) -> Dict[str, str]:
    """Roles, skills and location from a listing's tags, as JSON text."""
    roles: List[Dict[str, str]] = []
    skills: List[Dict[str, str]] = []
    loc: Dict[str, str] = {}
    for tag in tags or []:
        kind = tag.get("tag_type")
        if kind == LOCATION_TAG:
            loc["city"] = tag.get("name")
        elif kind == ROLE_TAG:
            roles.append({"name": tag.get("name")})
        elif kind == SKILL_TAG:
            skills.append({"name": tag.get("name")})
    return {
        "roles": json.dumps(roles),
        "skills": json.dumps(skills),
        "loc": json.dumps(loc),
    }


def parse_listing(listing: Dict[str, Any], today: date | None = None) -> Dict[str, Any]:
    """
    A job-creation request from one listing.

    ``company`` stays a dict so :func:`append_company` can enrich it before
    it is serialized.
    """
    startup = listing.get("startup") or {}
    today = today or date.today()
    job: Dict[str, Any] = {
        "id": str(listing["id"]),
        "title": listing.get("title"),
        "created": listing.get("created_at"),
        "company": {
            "name": startup.get("name"),
            "id": startup.get("id"),
            "logoUrl": startup.get("logo_url"),
            "quality": str(startup.get("quality")),
            "productDesc": startup.get("product_desc"),
            "highConcept": startup.get("high_concept"),
            "followerCount": str(startup.get("follower_count")),
            "companyUrl": startup.get("company_url"),
            "today": today.isoformat(),
        },
        "salary": json.dumps(
            {
                "currency": listing.get("currency_code"),
                "salaryMax": _number(listing.get("salary_max")),
                "salaryMin": _number(listing.get("salary_min")),
            }
        ),
        "equity": json.dumps(
            {
                "equityMax": _number(listing.get("equity_max")),
                "equityMin": _number(listing.get("equity_min")),
            }
        ),
    }
    job.update(parse_tags(listing.get("tags") or []))
    return job


def append_company(job: Dict[str, Any], startup: Dict[str, Any]) -> Dict[str, Any]:
    """Add company size and links from the startup record, then serialize the company."""
    company = dict(job.get("company") or {})
    company["companySize"] = startup.get("company_size")
    company["twitterUrl"] = startup.get("twitter_url")
    company["blogUrl"] = startup.get("blog_url")
    enriched = dict(job)
    enriched["company"] = json.dumps(company)
    return enriched
