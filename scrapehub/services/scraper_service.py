"""Scraper document service.

CRUD helpers over the ``scrapers`` collection plus the XML export of a
scraper's last Firecrawl response. Every function takes an optional ``db``
(defaults to the shared connection) so callers and tests can inject one, and
an optional ``user_id`` that restricts lookups to the owner's documents.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import DESCENDING

from scrapehub.db.mongo_connector import SCRAPERS_COLLECTION, get_db, parse_object_id
from scrapehub.models.scraper import ScraperCreate
from scrapehub.services.xml_serializer import to_xml_document

logger = logging.getLogger(__name__)

SCRAPE_STATE_PROJECTION = {"lastFirecrawlId": 1, "lastScrapeStarted": 1, "name": 1}


class ScraperNotFound(LookupError):
    pass


class NoScrapeData(LookupError):
    """The scraper exists but has no stored Firecrawl response to export."""


def _collection(db=None):
    return (db if db is not None else get_db())[SCRAPERS_COLLECTION]


def _owner_query(scraper_id: ObjectId, user_id: Optional[str]) -> Dict[str, Any]:
    query: Dict[str, Any] = {"_id": scraper_id}
    if user_id:
        query["userId"] = user_id
    return query


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_jsonable(value: Any) -> Any:
    """Recursively convert ObjectId/datetime values for JSON responses."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def list_scrapers(*, user_id: Optional[str] = None, db=None) -> List[Dict[str, Any]]:
    query = {"userId": user_id} if user_id else {}
    return list(_collection(db).find(query).sort("createdAt", DESCENDING))


def create_scraper(payload: ScraperCreate, *, user_id: Optional[str] = None, db=None) -> Dict[str, Any]:
    now = _now()
    doc: Dict[str, Any] = {
        "name": payload.name,
        "websiteUrl": payload.website_url,
        "urlPath": payload.url_path or "",
        "urls": list(payload.urls),
        "createdAt": now,
        "updatedAt": now,
    }
    if user_id:
        doc["userId"] = user_id
    result = _collection(db).insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Created scraper %s (%s)", result.inserted_id, payload.name)
    return doc


def get_scraper(scraper_id, *, user_id: Optional[str] = None, db=None) -> Optional[Dict[str, Any]]:
    """Return the scraper document or None. Malformed ids raise ValueError."""
    oid = parse_object_id(scraper_id)
    return _collection(db).find_one(_owner_query(oid, user_id))


def get_latest_scraper(*, user_id: Optional[str] = None, db=None) -> Optional[Dict[str, Any]]:
    query = {"userId": user_id} if user_id else {}
    return _collection(db).find_one(query, sort=[("createdAt", DESCENDING)])


def get_scrape_state(scraper_id, *, db=None) -> Optional[Dict[str, Any]]:
    oid = parse_object_id(scraper_id)
    return _collection(db).find_one({"_id": oid}, projection=SCRAPE_STATE_PROJECTION)


def save_fields(scraper_id, fields: Iterable[Dict[str, Any]], *, user_id: Optional[str] = None, db=None) -> bool:
    """Store the extraction fields; returns False when no scraper matched."""
    oid = parse_object_id(scraper_id)
    result = _collection(db).update_one(
        _owner_query(oid, user_id),
        {"$set": {"fields": list(fields), "fieldsUpdatedAt": _now()}},
    )
    return result.matched_count > 0


def save_firecrawl_response(scraper_id, response: Dict[str, Any], *, db=None) -> bool:
    """Store a captured Firecrawl response; returns False when nothing was modified."""
    oid = parse_object_id(scraper_id)
    result = _collection(db).update_one(
        {"_id": oid},
        {"$set": {"lastFirecrawlResponse": response, "lastScrapeTime": _now().isoformat()}},
    )
    return result.modified_count > 0


def record_scrape_started(scraper_id, firecrawl_id: str, *, db=None) -> Dict[str, Any]:
    """Remember the Firecrawl job id and return the updated document."""
    oid = parse_object_id(scraper_id)
    coll = _collection(db)
    result = coll.update_one(
        {"_id": oid},
        {"$set": {"lastFirecrawlId": firecrawl_id, "lastScrapeStarted": _now()}},
    )
    if not result.acknowledged or result.modified_count != 1:
        logger.error("Failed to store Firecrawl id %s on scraper %s", firecrawl_id, oid)
        raise RuntimeError("Failed to save Firecrawl ID to database")
    return coll.find_one({"_id": oid})


def build_extraction_schema(fields: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """JSON schema asking Firecrawl for one string property per field id."""
    ids = [f["id"] for f in fields or []]
    return {
        "type": "object",
        "properties": {fid: {"type": "string"} for fid in ids},
        "required": ids,
    }


def export_scraper_xml(scraper_id, *, db=None) -> str:
    """Render the scraper's last Firecrawl response as an XML document."""
    scraper = get_scraper(scraper_id, db=db)
    if not scraper:
        raise ScraperNotFound("Scraper not found")
    data = scraper.get("lastFirecrawlResponse")
    if data is None:
        raise NoScrapeData("No scrape data available")
    return to_xml_document(data)
