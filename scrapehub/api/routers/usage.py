import logging

from fastapi import APIRouter, HTTPException, Query

from scrapehub.models.scraper import CreditUsageCreate
from scrapehub.services.credit_usage_service import get_credit_usage_report, record_credit_usage
from scrapehub.services.scraper_service import to_jsonable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/credit-usage")
def api_credit_usage(days: int = Query(7, ge=1, le=365)):
    try:
        report = get_credit_usage_report(days)
    except Exception as exc:
        logger.exception("Error fetching credit usage")
        raise HTTPException(status_code=500, detail=str(exc))
    return to_jsonable(report)


@router.post("/credit-usage", status_code=201)
def api_record_credit_usage(payload: CreditUsageCreate):
    try:
        doc = record_credit_usage(payload)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as exc:
        logger.exception("Error recording credit usage")
        raise HTTPException(status_code=500, detail=str(exc))
    return to_jsonable(doc)
