"""Firecrawl REST client (v1 API) on top of httpx.

Configuration via environment variables:

- FIRECRAWL_API_KEY (required)
- FIRECRAWL_BASE_URL (default: https://api.firecrawl.dev)

Usage:
    from scrapehub.services.firecrawl_client import get_firecrawl_client
    client = get_firecrawl_client()
    links = client.map_url("https://example.com")
    job = client.batch_scrape_urls(links[:10], schema={...})
    status = client.get_batch_scrape_status(job["id"])

Only the three calls the service needs are wrapped. Requests are not retried.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://api.firecrawl.dev"
DEFAULT_EXTRACT_PROMPT = "Extract the specified fields from the page."


class FirecrawlError(RuntimeError):
    pass


class FirecrawlClient:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key or os.getenv("FIRECRAWL_API_KEY")
        if not self.api_key:
            raise FirecrawlError("Missing Firecrawl API key. Set FIRECRAWL_API_KEY.")
        self.base_url = (base_url or os.getenv("FIRECRAWL_BASE_URL") or _DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        # tests pass an httpx.MockTransport here
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            transport=self._transport,
        )

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            with self._client() as client:
                r = client.request(method, path, json=payload)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            raise FirecrawlError(f"Firecrawl {method} {path} failed ({exc.response.status_code}): {detail}") from exc
        except httpx.HTTPError as exc:
            raise FirecrawlError(f"Firecrawl {method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise FirecrawlError(f"Firecrawl {method} {path} returned invalid JSON") from exc

    def map_url(self, url: str) -> List[str]:
        """Discover the links of a site."""
        logger.info("Mapping site: %s", url)
        data = self._request("POST", "/v1/map", {"url": url})
        if not data.get("success"):
            raise FirecrawlError(f"Failed to map: {data.get('error')}")
        links = data.get("links") or []
        logger.info("Discovered %d URLs", len(links))
        return links

    def batch_scrape_urls(
        self,
        urls: List[str],
        *,
        schema: Dict[str, Any],
        prompt: str = DEFAULT_EXTRACT_PROMPT,
    ) -> Dict[str, Any]:
        """Start an asynchronous batch extraction job; returns {success, id, url}."""
        payload = {
            "urls": list(urls),
            "formats": ["extract"],
            "extract": {"prompt": prompt, "schema": schema},
        }
        logger.info("Starting batch scrape of %d URLs", len(payload["urls"]))
        data = self._request("POST", "/v1/batch/scrape", payload)
        if not data.get("success"):
            raise FirecrawlError(data.get("error") or "Failed to start batch scrape")
        return data

    def get_batch_scrape_status(self, job_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/v1/batch/scrape/{job_id}")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("error") or body)
    return str(body)


_client_cache: Optional[FirecrawlClient] = None


def get_firecrawl_client() -> FirecrawlClient:
    global _client_cache
    if _client_cache is None:
        _client_cache = FirecrawlClient()
    return _client_cache
