from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _CamelModel(BaseModel):
    """Accept both the camelCase wire names and the snake_case field names."""

    model_config = ConfigDict(populate_by_name=True)


class ScraperCreate(_CamelModel):
    name: str = Field(..., description="Display name of the scraper")
    website_url: str = Field(..., alias="websiteUrl", description="Site the scraper targets")
    url_path: str = Field("", alias="urlPath", description="Optional path under the site")
    urls: List[str] = Field(default_factory=list, description="Pages selected for batch scraping")

    @field_validator("name", "website_url")
    @classmethod
    def _required_trimmed(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Name and Website URL are required")
        return v

    @field_validator("url_path", mode="before")
    @classmethod
    def _trim_path(cls, v: Optional[str]) -> str:
        return (v or "").strip()


class ScraperField(BaseModel):
    """A field to extract; ``id`` becomes the property name in the extraction schema."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    description: Optional[str] = None


class FieldsUpdate(_CamelModel):
    scraper_id: str = Field(..., alias="scraperId")
    fields: List[ScraperField]


class FirecrawlResultUpdate(_CamelModel):
    scraper_id: str = Field(..., alias="scraperId")
    firecrawl_response: Dict[str, Any] = Field(..., alias="firecrawlResponse")


class ScrapeStartRequest(_CamelModel):
    scraper_id: str = Field(..., alias="scraperId")


class MapRequest(_CamelModel):
    website_url: str = Field(..., alias="websiteUrl")


class CreditUsageCreate(_CamelModel):
    operation_type: Literal["map", "scrape"] = Field(..., alias="operationType")
    credits_used: float = Field(..., ge=0, alias="creditsUsed")
    scraper_id: str = Field(..., alias="scraperId")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
