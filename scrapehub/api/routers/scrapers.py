import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, HTTPException
from pydantic import ValidationError
from pymongo.errors import ServerSelectionTimeoutError

from scrapehub.models.scraper import FieldsUpdate, FirecrawlResultUpdate, ScrapeStartRequest, ScraperCreate
from scrapehub.services.firecrawl_client import FirecrawlError, get_firecrawl_client
from scrapehub.services.scraper_service import (
    build_extraction_schema,
    create_scraper,
    get_latest_scraper,
    get_scrape_state,
    get_scraper,
    list_scrapers,
    record_scrape_started,
    save_fields,
    save_firecrawl_response,
    to_jsonable,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["scrapers"])


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


@router.get("/scrapers")
def api_list_scrapers(x_user_id: Optional[str] = Header(None)):
    try:
        return to_jsonable(list_scrapers(user_id=x_user_id))
    except Exception as exc:
        logger.exception("Error listing scrapers")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/scrapers", status_code=201)
def api_create_scraper(payload: Dict[str, Any], x_user_id: Optional[str] = Header(None)):
    """Request JSON: { "name": "Shop", "websiteUrl": "https://shop.example", "urlPath": "/products" }"""
    if not payload.get("name") or not payload.get("websiteUrl"):
        raise HTTPException(status_code=400, detail="Name and Website URL are required")
    try:
        data = ScraperCreate.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Validation error: {_first_error(exc)}")
    try:
        scraper = create_scraper(data, user_id=x_user_id)
    except ServerSelectionTimeoutError:
        logger.exception("Database unavailable while creating scraper")
        raise HTTPException(status_code=503, detail="Database connection error. Please try again later.")
    except Exception as exc:
        logger.exception("Error creating scraper")
        raise HTTPException(status_code=500, detail=f"Error creating scraper: {exc}")
    return {"message": "Scraper created successfully", "scraper": to_jsonable(scraper)}


@router.get("/scrapers/latest")
def api_latest_scraper(x_user_id: Optional[str] = Header(None)):
    try:
        scraper = get_latest_scraper(user_id=x_user_id)
    except Exception as exc:
        logger.exception("Error fetching latest scraper")
        raise HTTPException(status_code=500, detail="Internal server error") from exc
    if not scraper:
        raise HTTPException(status_code=404, detail="No scraper found")
    return to_jsonable(scraper)


@router.get("/scrapers/check")
def api_check_scraper(id: str):
    """Current scrape state (job id, start time, name) of one scraper."""
    try:
        state = get_scrape_state(id)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    if not state:
        raise HTTPException(status_code=404, detail="Scraper not found")
    return to_jsonable(state)


@router.post("/scrapers/fields")
def api_save_fields(payload: Dict[str, Any], x_user_id: Optional[str] = Header(None)):
    if not payload.get("scraperId"):
        raise HTTPException(status_code=400, detail="Scraper ID is required")
    if not isinstance(payload.get("fields"), list):
        raise HTTPException(status_code=400, detail="Fields must be an array")
    try:
        data = FieldsUpdate.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_first_error(exc))
    try:
        matched = save_fields(
            data.scraper_id,
            [f.model_dump(exclude_none=True) for f in data.fields],
            user_id=x_user_id,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid scraper ID format")
    except Exception as exc:
        logger.exception("Error saving fields for scraper %s", data.scraper_id)
        raise HTTPException(status_code=500, detail=str(exc) or "Failed to save fields")
    if not matched:
        raise HTTPException(status_code=404, detail="Scraper not found")
    return {"success": True}


@router.post("/scrapers/scrape")
def api_start_scrape(payload: ScrapeStartRequest, x_user_id: Optional[str] = Header(None)):
    """Start a Firecrawl batch extraction over the scraper's selected URLs."""
    try:
        scraper = get_scraper(payload.scraper_id, user_id=x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid scraper ID format")
    if not scraper:
        raise HTTPException(status_code=404, detail="Scraper not found")

    schema = build_extraction_schema(scraper.get("fields") or [])
    try:
        job = get_firecrawl_client().batch_scrape_urls(scraper.get("urls") or [], schema=schema)
        updated = record_scrape_started(scraper["_id"], job.get("id"))
    except (FirecrawlError, RuntimeError) as exc:
        logger.error("Scrape error for scraper %s: %s", scraper["_id"], exc)
        raise HTTPException(status_code=500, detail=str(exc))
    return {"firecrawl": job, "scraper": to_jsonable(updated)}


@router.get("/scrapers/scrape/status")
def api_scrape_status(id: Optional[str] = None):
    if not id:
        raise HTTPException(status_code=400, detail="Scrape ID is required")
    try:
        return get_firecrawl_client().get_batch_scrape_status(id)
    except FirecrawlError as exc:
        logger.error("Status check error for job %s: %s", id, exc)
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/scrapers/{scraper_id}")
def api_get_scraper(scraper_id: str, x_user_id: Optional[str] = Header(None)):
    try:
        scraper = get_scraper(scraper_id, user_id=x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid scraper ID format")
    if not scraper:
        raise HTTPException(status_code=404, detail="Scraper not found")
    return to_jsonable(scraper)


@router.post("/scrape")
def api_store_scrape_result(payload: Dict[str, Any]):
    """Store a Firecrawl response on its scraper (used later by the XML export)."""
    if not payload.get("scraperId") or payload.get("firecrawlResponse") is None:
        raise HTTPException(status_code=400, detail="Missing required fields: scraperId and firecrawlResponse")
    try:
        data = FirecrawlResultUpdate.model_validate(payload)
        modified = save_firecrawl_response(data.scraper_id, data.firecrawl_response)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_first_error(exc))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid scraper ID format")
    if not modified:
        raise HTTPException(status_code=404, detail="Scraper not found")
    return {"success": True}
