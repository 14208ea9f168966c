"""Firecrawl credit usage reporting over the ``credit_usage`` collection."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from scrapehub.db.mongo_connector import CREDIT_USAGE_COLLECTION, SCRAPERS_COLLECTION, get_db, parse_object_id
from scrapehub.models.scraper import CreditUsageCreate

logger = logging.getLogger(__name__)

RECENT_LIMIT = 50


def record_credit_usage(payload: CreditUsageCreate, *, db=None) -> Dict[str, Any]:
    db = db if db is not None else get_db()
    now = datetime.now(timezone.utc)
    doc = {
        "operationType": payload.operation_type,
        "creditsUsed": payload.credits_used,
        "scraperId": parse_object_id(payload.scraper_id),
        "timestamp": payload.timestamp,
        "createdAt": now,
        "updatedAt": now,
    }
    result = db[CREDIT_USAGE_COLLECTION].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def daily_usage_pipeline(start: datetime, end: datetime) -> List[Dict[str, Any]]:
    return [
        {"$match": {"timestamp": {"$gte": start, "$lte": end}}},
        {
            "$group": {
                "_id": {
                    "date": {"$dateToString": {"format": "%Y-%m-%d", "date": "$timestamp"}},
                    "operationType": "$operationType",
                },
                "totalCredits": {"$sum": "$creditsUsed"},
            }
        },
        {"$sort": {"_id.date": 1}},
    ]


def period_total_pipeline(start: datetime, end: datetime) -> List[Dict[str, Any]]:
    return [
        {"$match": {"timestamp": {"$gte": start, "$lt": end}}},
        {"$group": {"_id": None, "totalCredits": {"$sum": "$creditsUsed"}}},
    ]


def percentage_change(current: float, previous: float) -> float:
    """Change vs the previous period; 100 when there was no previous usage."""
    if previous == 0:
        return 100
    return (current - previous) / previous * 100


def get_credit_usage_report(days: int = 7, *, now: Optional[datetime] = None, db=None) -> Dict[str, Any]:
    db = db if db is not None else get_db()
    usage = db[CREDIT_USAGE_COLLECTION]

    end = now or datetime.now(timezone.utc)
    start = end - timedelta(days=days)
    previous_start = start - timedelta(days=days)

    daily = list(usage.aggregate(daily_usage_pipeline(start, end)))
    recent = list(usage.find({}).sort("timestamp", DESCENDING).limit(RECENT_LIMIT))

    scraper_ids = list({u["scraperId"] for u in recent if u.get("scraperId") is not None})
    names: Dict[str, str] = {}
    if scraper_ids:
        cursor = db[SCRAPERS_COLLECTION].find({"_id": {"$in": scraper_ids}}, projection={"_id": 1, "name": 1})
        names = {str(s["_id"]): s.get("name") for s in cursor}
    recent_with_names = [
        {**u, "scraperName": names.get(str(u.get("scraperId"))) or "Unknown"} for u in recent
    ]

    total = sum(d.get("totalCredits", 0) for d in daily)
    previous_rows = list(usage.aggregate(period_total_pipeline(previous_start, start)))
    previous_total = previous_rows[0].get("totalCredits", 0) if previous_rows else 0

    logger.debug("Credit usage over %d days: total=%s previous=%s", days, total, previous_total)
    return {
        "dailyUsage": daily,
        "recentUsage": recent_with_names,
        "totalCredits": total,
        "percentageChange": percentage_change(total, previous_total),
    }
