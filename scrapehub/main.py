import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from scrapehub.db.mongo_connector import close_client

# Routers
from scrapehub.api.routers.scrapers import router as scrapers_router
from scrapehub.api.routers.xml_export import router as xml_router
from scrapehub.api.routers.firecrawl import router as firecrawl_router
from scrapehub.api.routers.usage import router as usage_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the MongoDB client on shutdown."""
    try:
        yield
    finally:
        close_client()


app = FastAPI(title="Scrapehub", version="0.1", lifespan=lifespan)

app.include_router(scrapers_router)
app.include_router(xml_router)
app.include_router(firecrawl_router)
app.include_router(usage_router)
