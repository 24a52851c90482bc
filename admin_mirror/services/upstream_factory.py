from __future__ import annotations

from functools import lru_cache

from admin_mirror.config import settings
from admin_mirror.services.upstream_client import UpstreamClient


@lru_cache(maxsize=1)
def get_upstream_client() -> UpstreamClient:
    return UpstreamClient(
        base_url=settings.api_base,
        token=settings.admin_password,
        timeout_seconds=settings.upstream_timeout_seconds,
    )
