"""API key authentication."""
from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader
from typing import Optional
import structlog
from ..config import get_settings

log = structlog.get_logger()
settings = get_settings()

API_KEY_HEADER = "X-Ingest-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


class APIKeyRegistry:
    """
    In-memory API key registry.

    Keys are loaded from the API_KEYS setting at startup.
    """

    def __init__(self, keys: str = ""):
        """Initialize API key registry from a comma-separated list."""
        self._keys: set[str] = set()
        self._load_keys(keys)

    def _load_keys(self, keys: str):
        for key in keys.split(","):
            key = key.strip()
            if key:
                self._keys.add(key)

        log.info("api_keys.loaded", count=len(self._keys))

    def validate(self, key: str) -> bool:
        """
        Validate an API key.

        Args:
            key: API key to validate

        Returns:
            True if key is valid
        """
        return key in self._keys

    def count(self) -> int:
        """Get total number of registered keys."""
        return len(self._keys)


# Global registry instance
registry = APIKeyRegistry(settings.API_KEYS)


async def verify_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """
    Dependency to verify API key from request header.

    Passes every request as "anonymous" while REQUIRE_AUTH is off or no
    keys are registered.

    Raises:
        HTTPException: 401 if the key is missing, 403 if it is unknown
    """
    if not settings.REQUIRE_AUTH or registry.count() == 0:
        log.debug("auth.skipped", require_auth=settings.REQUIRE_AUTH, keys=registry.count())
        return "anonymous"

    if not api_key:
        log.warning("auth.failed", reason="missing_key")
        raise HTTPException(
            status_code=401,
            detail=f"Missing API key. Provide {API_KEY_HEADER} header.",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    if not registry.validate(api_key):
        log.warning("auth.failed", reason="invalid_key")
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    log.debug("auth.success")
    return api_key
