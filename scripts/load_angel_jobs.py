"""
ETL script to pull job listings from the AngelList API and POST them to the
job graph API.

For each listing, we:
- Reshape it (tags -> roles / skills / location, nested objects -> JSON text)
- Fetch the startup record to add company size and links
- POST it to ``/jobs``, which upserts the :Job node by id and links its
  skills and location
"""

from __future__ import annotations

import sys
from typing import Any, Dict, Iterator

import requests

from jobgraph.config import get_settings
from jobgraph.listings import append_company, parse_listing


def fetch_pages(session: requests.Session, max_pages: int | None = None) -> Iterator[Dict[str, Any]]:
    """Yield every listing, page by page."""
    settings = get_settings()
    page = 1
    while True:
        resp = session.get(
            f"{settings.angel_api_url}/jobs",
            params={"page": page, "access_token": settings.angel_access_token},
            timeout=(5, 60),
        )
        resp.raise_for_status()
        data = resp.json()
        yield from data.get("jobs", [])

        last_page = data.get("last_page") or page
        if page >= last_page or (max_pages is not None and page >= max_pages):
            return
        page += 1


def fetch_startup(session: requests.Session, startup_id: Any) -> Dict[str, Any]:
    settings = get_settings()
    resp = session.get(
        f"{settings.angel_api_url}/startups/{startup_id}",
        params={"access_token": settings.angel_access_token},
        timeout=(5, 60),
    )
    resp.raise_for_status()
    return resp.json()


def run(max_pages: int | None = None) -> int:
    """Main ingestion logic. Returns the number of jobs that failed."""
    settings = get_settings()
    print(f"[ANGEL ETL] Posting jobs to: {settings.api_url}")

    failed = 0
    posted = 0
    with requests.Session() as session:
        for listing in fetch_pages(session, max_pages):
            job = parse_listing(listing)
            startup_id = (listing.get("startup") or {}).get("id")
            try:
                startup = fetch_startup(session, startup_id) if startup_id else {}
            except requests.RequestException as e:
                print(f"[ANGEL ETL] ✗ Could not fetch startup {startup_id}: {e}")
                startup = {}
            job = append_company(job, startup)

            try:
                resp = session.post(
                    f"{settings.api_url}/jobs",
                    json=job,
                    headers={"api_key": settings.api_key},
                    timeout=(5, 60),
                )
                resp.raise_for_status()
                posted += 1
            except requests.RequestException as e:
                print(f"[ANGEL ETL] ✗ Could not create job {job['id']}: {e}")
                failed += 1

            if (posted + failed) % 100 == 0:
                print(f"[ANGEL ETL] Processed {posted + failed} jobs...")

    print(f"[ANGEL ETL] ✓ Posted {posted} jobs, {failed} failed")
    return failed


if __name__ == "__main__":
    pages = int(sys.argv[1]) if len(sys.argv) > 1 else None
    sys.exit(1 if run(pages) else 0)
