import logging
from typing import Optional

from fastapi import APIRouter, Response

from scrapehub.services.scraper_service import NoScrapeData, ScraperNotFound, export_scraper_xml

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["xml"])


def _text(message: str, status_code: int) -> Response:
    return Response(content=message, status_code=status_code, media_type="text/plain")


@router.get("/xml")
def api_export_xml(id: Optional[str] = None):
    """Export a scraper's last Firecrawl response as application/xml.

    Errors are returned as text/plain bodies rather than JSON.
    """
    if not id:
        return _text("Scraper ID is required", 400)
    try:
        xml_string = export_scraper_xml(id)
    except ValueError:
        return _text("Invalid scraper ID format", 400)
    except (ScraperNotFound, NoScrapeData) as exc:
        return _text(str(exc), 404)
    except Exception as exc:
        logger.exception("Error generating XML")
        return _text(str(exc), 500)
    return Response(content=xml_string, media_type="application/xml")
