import json
from datetime import date

from jobgraph.listings import append_company, parse_listing, parse_tags


LISTING = {
    "id": 4242,
    "title": "Data engineer",
    "created_at": "2015-03-01T10:00:00Z",
    "currency_code": "USD",
    "salary_min": "90000",
    "salary_max": 120000,
    "equity_min": None,
    "equity_max": "0.5",
    "startup": {"id": 9, "name": "Acme", "quality": 7, "follower_count": 120},
    "tags": [
        {"tag_type": "LocationTag", "name": "san francisco"},
        {"tag_type": "RoleTag", "name": "developer"},
        {"tag_type": "SkillTag", "name": "python"},
        {"tag_type": "SkillTag", "name": "sql"},
        {"tag_type": "MarketTag", "name": "saas"},
    ],
}


def test_parse_tags_splits_by_kind():
    parsed = parse_tags(LISTING["tags"])

    assert json.loads(parsed["skills"]) == [{"name": "python"}, {"name": "sql"}]
    assert json.loads(parsed["roles"]) == [{"name": "developer"}]
    assert json.loads(parsed["loc"]) == {"city": "san francisco"}


def test_parse_tags_without_tags():
    assert parse_tags([]) == {"roles": "[]", "skills": "[]", "loc": "{}"}


def test_parse_listing():
    job = parse_listing(LISTING, today=date(2015, 3, 2))

    assert job["id"] == "4242"
    assert job["created"] == "2015-03-01T10:00:00Z"
    assert job["company"]["name"] == "Acme"
    assert job["company"]["followerCount"] == "120"
    assert job["company"]["today"] == "2015-03-02"
    assert json.loads(job["salary"]) == {"currency": "USD", "salaryMax": 120000.0, "salaryMin": 90000.0}
    assert json.loads(job["equity"]) == {"equityMax": 0.5, "equityMin": None}
    assert json.loads(job["loc"]) == {"city": "san francisco"}


def test_append_company_serializes_company():
    job = parse_listing(LISTING, today=date(2015, 3, 2))

    enriched = append_company(job, {"company_size": "11-50", "twitter_url": "https://twitter.com/acme"})

    company = json.loads(enriched["company"])
    assert company["name"] == "Acme"
    assert company["companySize"] == "11-50"
    assert company["blogUrl"] is None
    assert isinstance(job["company"], dict)
