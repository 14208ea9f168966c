from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from scrapehub.models.scraper import ScraperCreate
from scrapehub.services import scraper_service
from scrapehub.services.scraper_service import (
    NoScrapeData,
    ScraperNotFound,
    build_extraction_schema,
    create_scraper,
    export_scraper_xml,
    get_latest_scraper,
    get_scrape_state,
    get_scraper,
    list_scrapers,
    record_scrape_started,
    save_fields,
    save_firecrawl_response,
    to_jsonable,
)


def _create(name, **kw):
    return create_scraper(ScraperCreate(name=name, websiteUrl=f"https://{name}.example", **kw))


def test_create_and_get(fake_db):
    doc = _create("alpha", urlPath="  /shop  ")
    assert doc["urlPath"] == "/shop"
    stored = get_scraper(str(doc["_id"]))
    assert stored["name"] == "alpha"
    assert stored["websiteUrl"] == "https://alpha.example"


def test_get_scraper_rejects_malformed_id(fake_db):
    with pytest.raises(ValueError):
        get_scraper("not-an-object-id")


def test_owner_filter(fake_db):
    doc = create_scraper(ScraperCreate(name="mine", websiteUrl="https://m.example"), user_id="u1")
    assert get_scraper(doc["_id"], user_id="u1") is not None
    assert get_scraper(doc["_id"], user_id="u2") is None
    assert [s["name"] for s in list_scrapers(user_id="u2")] == []


def test_list_and_latest_are_newest_first(fake_db, monkeypatch):
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    stamps = iter([base, base + timedelta(days=1)])
    monkeypatch.setattr(scraper_service, "_now", lambda: next(stamps))
    _create("old")
    _create("new")
    assert [s["name"] for s in list_scrapers()] == ["new", "old"]
    assert get_latest_scraper()["name"] == "new"


def test_latest_none_when_empty(fake_db):
    assert get_latest_scraper() is None


def test_save_fields(fake_db):
    doc = _create("fields")
    assert save_fields(doc["_id"], [{"id": "price"}]) is True
    stored = get_scraper(doc["_id"])
    assert stored["fields"] == [{"id": "price"}]
    assert "fieldsUpdatedAt" in stored
    assert save_fields(ObjectId(), [{"id": "x"}]) is False


def test_record_scrape_started_and_state(fake_db):
    doc = _create("job")
    updated = record_scrape_started(doc["_id"], "fc-123")
    assert updated["lastFirecrawlId"] == "fc-123"
    state = get_scrape_state(str(doc["_id"]))
    assert set(state) == {"_id", "name", "lastFirecrawlId", "lastScrapeStarted"}


def test_record_scrape_started_missing_raises(fake_db):
    with pytest.raises(RuntimeError):
        record_scrape_started(ObjectId(), "fc-1")


def test_build_extraction_schema():
    schema = build_extraction_schema([{"id": "title"}, {"id": "price", "name": "Price"}])
    assert schema == {
        "type": "object",
        "properties": {"title": {"type": "string"}, "price": {"type": "string"}},
        "required": ["title", "price"],
    }
    assert build_extraction_schema(None)["required"] == []


def test_export_xml(fake_db):
    doc = _create("xml")
    assert save_firecrawl_response(doc["_id"], {"data": [{"extract": {"title": "A:B"}}]}) is True
    xml = export_scraper_xml(str(doc["_id"]))
    assert xml == (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<root><data><extract><title>A:B</title></extract></data></root>"
    )


def test_export_xml_errors(fake_db):
    with pytest.raises(ScraperNotFound):
        export_scraper_xml(str(ObjectId()))
    doc = _create("empty")
    with pytest.raises(NoScrapeData):
        export_scraper_xml(doc["_id"])


def test_save_firecrawl_response_unknown_scraper(fake_db):
    assert save_firecrawl_response(ObjectId(), {"a": 1}) is False


def test_to_jsonable():
    oid = ObjectId()
    ts = datetime(2025, 3, 1, tzinfo=timezone.utc)
    assert to_jsonable({"_id": oid, "items": [{"at": ts}]}) == {
        "_id": str(oid),
        "items": [{"at": "2025-03-01T00:00:00+00:00"}],
    }


def test_export_xml_of_empty_response(fake_db):
    doc = _create("blank")
    save_firecrawl_response(doc["_id"], {})
    assert export_scraper_xml(doc["_id"]) == '<?xml version="1.0" encoding="UTF-8"?>\n<root></root>'
