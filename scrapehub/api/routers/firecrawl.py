import logging

from fastapi import APIRouter, HTTPException

from scrapehub.models.scraper import MapRequest
from scrapehub.services.firecrawl_client import FirecrawlError, get_firecrawl_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/firecrawl", tags=["firecrawl"])


@router.post("/map")
def api_map_site(payload: MapRequest):
    if not payload.website_url.strip():
        raise HTTPException(status_code=400, detail="Website URL is required")
    try:
        urls = get_firecrawl_client().map_url(payload.website_url.strip())
    except FirecrawlError as exc:
        logger.error("Error in Firecrawl map: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch URLs")
    return {"urls": urls}
