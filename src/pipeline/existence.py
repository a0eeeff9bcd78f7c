"""
Existence Checker

Decides whether a conversion can be skipped because the artifact is already
published. The CDN is probed first (when configured), then the object store.
Answers that are neither a clear "found" nor a clear "absent" count as found.
"""

from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from src.core.exceptions import StorageLookupError
from src.core.logging import get_logger
from src.core.storage import IStorage
from src.modules.conversion.models import ResolvedTarget

logger = get_logger(__name__)

ABSENT_STATUSES = {403, 404}


class ExistenceCheck(BaseModel):
    """Outcome of an existence probe."""
    model_config = ConfigDict(frozen=True)

    exists: bool
    source: Optional[str] = None  # "cdn" or "storage"
    message: str = ""


def build_cdn_url(cdn_base: str, target: ResolvedTarget, probe_path: Optional[str] = None) -> str:
    """cdnBase/<probe path or key prefix><file name>."""
    base = cdn_base.strip().rstrip("/")
    if "://" not in base:
        base = f"https://{base}"

    if probe_path:
        prefix = probe_path.strip("/")
        prefix = f"{prefix}/" if prefix else ""
    else:
        prefix = target.key_prefix

    return f"{base}/{prefix}{target.base_file_name}"


async def probe_cdn(client: httpx.AsyncClient, url: str, timeout: float = 10.0) -> ExistenceCheck:
    """Plain GET against the CDN. 200 exists, 403/404 absent, anything else exists."""
    try:
        response = await client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        logger.warning("cdn_probe_failed", url=url, error=str(e))
        return ExistenceCheck(
            exists=True,
            source="cdn",
            message=f"CDN check for {url} failed, treating it as existing:\n{type(e).__name__}: {e}\n"
        )

    status = response.status_code
    if status == 200:
        return ExistenceCheck(exists=True, source="cdn", message=f"{url} already exists on CDN\n")
    if status in ABSENT_STATUSES:
        return ExistenceCheck(exists=False)

    logger.warning("cdn_probe_ambiguous", url=url, http_status=status)
    return ExistenceCheck(
        exists=True,
        source="cdn",
        message=f"CDN returned HTTP {status} for {url}, treating it as existing\n"
    )


async def check_existence(
    storage: IStorage,
    client: httpx.AsyncClient,
    target: ResolvedTarget,
    cdn_base: Optional[str] = None,
    cdn_probe_path: Optional[str] = None,
    cdn_timeout: float = 10.0,
) -> ExistenceCheck:
    """Probe the CDN (if configured) and then the object store."""
    if cdn_base:
        url = build_cdn_url(cdn_base, target, cdn_probe_path)
        result = await probe_cdn(client, url, cdn_timeout)
        logger.info("cdn_probed", url=url, exists=result.exists)
        if result.exists:
            return result

    key = target.full_size_key
    try:
        found = await storage.exists(target.bucket, key)
    except StorageLookupError as e:
        logger.warning("storage_lookup_ambiguous", key=key, error=e.message)
        return ExistenceCheck(
            exists=True,
            source="storage",
            message=f"Unable to confirm {key} is absent, treating it as existing:\n{e.message}\n"
        )

    if found:
        return ExistenceCheck(
            exists=True,
            source="storage",
            message=f"{key} already exists on {target.bucket} bucket\n"
        )
    return ExistenceCheck(exists=False)
