import os
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.database import Database

SCRAPERS_COLLECTION = "scrapers"
CREDIT_USAGE_COLLECTION = "credit_usage"

_DEFAULT_DB_NAME = "scrapehub"

_client: Optional[MongoClient] = None


def get_client() -> MongoClient:
    """Return the process-wide MongoClient, creating it on first use."""
    global _client
    if _client is None:
        uri = _get_mongo_config()[0]
        try:
            _client = MongoClient(uri, serverSelectionTimeoutMS=5000, socketTimeoutMS=45000)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create MongoDB client for URI '{_redact(uri)}'. Check that the URI is valid.\nError: {exc}"
            ) from exc
    return _client


def get_db() -> Database:
    _, db_name = _get_mongo_config()
    return get_client()[db_name]


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None


def parse_object_id(value) -> ObjectId:
    """Convert a string id to ObjectId, raising ValueError on bad input."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError) as exc:
        raise ValueError(f"Invalid scraper ID format: {value!r}") from exc


def _redact(uri: str) -> str:
    parsed = urlparse(uri)
    if parsed.password:
        return uri.replace(parsed.password, "***")
    return uri


_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


def _parse_env_line(line: str) -> Optional[Tuple[str, str]]:
    """Split ``KEY=value`` (optionally prefixed with ``export``); None for comments/blank lines."""
    line = line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#"):
        return None
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None
    return key, value.strip().strip("\"'")


def _load_env_from_file(env_file: Path = _ENV_FILE) -> None:
    """Apply a project-root ``.env`` without overriding variables already set."""
    if not env_file.is_file():
        return
    try:
        lines = env_file.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for parsed in filter(None, map(_parse_env_line, lines)):
        key, value = parsed
        if not os.environ.get(key):
            os.environ[key] = value


def _get_mongo_config():
    """Return (uri, db_name), loading .env first.

    The database name comes from MONGODB_DB, then the path of the URI, then
    the package default. Raises RuntimeError when MONGODB_URI is missing.
    """
    _load_env_from_file()

    uri = os.getenv("MONGODB_URI")
    if not uri:
        raise RuntimeError(
            "MONGODB_URI is not defined in environment variables.\n"
            "Define it in your environment or in a .env file at the project root, e.g.\n"
            "export MONGODB_URI='mongodb://localhost:27017/scrapehub'"
        )
    db_name = os.getenv("MONGODB_DB") or urlparse(uri).path.lstrip("/").split("?")[0] or _DEFAULT_DB_NAME
    return uri, db_name
