from datetime import datetime, timezone

from bson import ObjectId

from scrapehub.models.scraper import CreditUsageCreate
from scrapehub.services.credit_usage_service import (
    get_credit_usage_report,
    percentage_change,
    record_credit_usage,
)


def test_percentage_change():
    assert percentage_change(50, 0) == 100
    assert percentage_change(150, 100) == 50
    assert percentage_change(50, 100) == -50


def test_report_combines_aggregates(fake_db):
    sid = ObjectId()
    fake_db["scrapers"].insert_one({"_id": sid, "name": "Shop"})
    record_credit_usage(CreditUsageCreate(operationType="scrape", creditsUsed=5, scraperId=str(sid)))
    record_credit_usage(CreditUsageCreate(operationType="map", creditsUsed=1, scraperId=str(ObjectId())))

    usage = fake_db["credit_usage"]
    usage.aggregate_results = [
        [
            {"_id": {"date": "2025-05-01", "operationType": "map"}, "totalCredits": 1},
            {"_id": {"date": "2025-05-02", "operationType": "scrape"}, "totalCredits": 5},
        ],
        [{"_id": None, "totalCredits": 4}],
    ]

    now = datetime(2025, 5, 3, tzinfo=timezone.utc)
    report = get_credit_usage_report(7, now=now)

    assert report["totalCredits"] == 6
    assert report["percentageChange"] == 50
    assert len(report["dailyUsage"]) == 2
    names = sorted(u["scraperName"] for u in report["recentUsage"])
    assert names == ["Shop", "Unknown"]

    daily_match = usage.pipelines[0][0]["$match"]["timestamp"]
    assert daily_match["$lte"] == now
    assert (now - daily_match["$gte"]).days == 7
    previous_match = usage.pipelines[1][0]["$match"]["timestamp"]
    assert previous_match["$lt"] == daily_match["$gte"]
    assert (daily_match["$gte"] - previous_match["$gte"]).days == 7


def test_report_without_previous_usage(fake_db):
    fake_db["credit_usage"].aggregate_results = [[], []]
    report = get_credit_usage_report(3)
    assert report["totalCredits"] == 0
    assert report["percentageChange"] == 100
    assert report["recentUsage"] == []
