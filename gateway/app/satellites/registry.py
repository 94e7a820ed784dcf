"""
Satellite Registry

Holds the set of enabled satellite domains as an immutable, versioned
snapshot. Requests read one snapshot reference for their whole lifetime;
a refresh builds a complete new snapshot and swaps the reference, so no
reader ever sees a half-updated registry.

Source priority (see sources.py): structured JSON (remote URL, else file)
if it yields at least one enabled record, else SATELLITE_DOMAINS, else empty.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

import httpx

from ..config import Settings
from ..errors import ConfigLoadError
from ..models import RegistryStats, SatelliteRecord
from .sources import load_from_env, load_from_file, load_from_url

logger = logging.getLogger("gateway.satellites.registry")

# Seconds to keep serving last-known-good before retrying a failed refresh
REFRESH_RETRY_SECONDS = 30


# ============================================================================
# Snapshot
# ============================================================================

@dataclass(frozen=True)
class RegistrySnapshot:
    """
    One immutable generation of the registry.

    Only enabled records are indexed. On hostname or id collisions the
    first record in configuration order wins and the later one is dropped
    with a warning.
    """

    records: Tuple[SatelliteRecord, ...]
    by_hostname: Mapping[str, SatelliteRecord]
    by_id: Mapping[str, SatelliteRecord]
    origins: FrozenSet[str]
    source: str = "empty"
    version: int = 0
    loaded_at: float = field(default_factory=time.monotonic)
    total_configured: int = 0

    @classmethod
    def build(
        cls,
        records: List[SatelliteRecord],
        source: str,
        version: int = 0,
        loaded_at: Optional[float] = None,
    ) -> "RegistrySnapshot":
        by_hostname: Dict[str, SatelliteRecord] = {}
        by_id: Dict[str, SatelliteRecord] = {}
        kept = []

        for record in records:
            if not record.enabled:
                continue

            existing = by_hostname.get(record.hostname)
            if existing is not None:
                logger.warning(
                    f"Duplicate satellite hostname {record.hostname}, keeping '{existing.id}'",
                    extra={"hostname": record.hostname, "kept_id": existing.id, "dropped_id": record.id},
                )
                continue

            if record.id in by_id:
                logger.warning(
                    f"Duplicate satellite id '{record.id}', keeping first entry",
                    extra={"satellite_id": record.id, "dropped_hostname": record.hostname},
                )
                continue

            by_hostname[record.hostname] = record
            by_id[record.id] = record
            kept.append(record)

        return cls(
            records=tuple(kept),
            by_hostname=MappingProxyType(by_hostname),
            by_id=MappingProxyType(by_id),
            origins=frozenset(record.origin_url for record in kept),
            source=source if kept else "empty",
            version=version,
            loaded_at=time.monotonic() if loaded_at is None else loaded_at,
            total_configured=len(records),
        )

    @classmethod
    def empty(cls, version: int = 0) -> "RegistrySnapshot":
        return cls.build([], "empty", version=version)

    def __len__(self) -> int:
        return len(self.records)

    def resolve_by_hostname(self, hostname: Optional[str]) -> Optional[SatelliteRecord]:
        """Exact, case-insensitive hostname lookup."""
        if not hostname:
            return None
        return self.by_hostname.get(hostname.strip().lower())

    def resolve_by_id(self, satellite_id: str) -> Optional[SatelliteRecord]:
        return self.by_id.get(satellite_id)

    def hostnames(self) -> List[str]:
        return [record.hostname for record in self.records]

    def origin_urls(self) -> List[str]:
        return [record.origin_url for record in self.records]

    def is_registered_origin(self, origin: Optional[str]) -> bool:
        """Exact match of a request Origin header against satellite origins."""
        return bool(origin) and origin in self.origins


# ============================================================================
# Loading
# ============================================================================

async def _load_structured(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient],
) -> Tuple[List[SatelliteRecord], str]:
    if settings.SATELLITE_CONFIG_URL:
        if http_client is not None:
            return await load_from_url(settings.SATELLITE_CONFIG_URL, http_client), "remote"
        async with httpx.AsyncClient() as client:
            return await load_from_url(settings.SATELLITE_CONFIG_URL, client), "remote"

    return load_from_file(settings.SATELLITE_CONFIG_FILE), "file"


async def collect_records(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
    strict: bool = False,
) -> Tuple[List[SatelliteRecord], str]:
    """
    Apply source priority and return (records, source name).

    Args:
        settings: Application settings
        http_client: Client for the remote source (optional)
        strict: Re-raise a structured-source failure instead of falling
            through to the environment fallback

    Raises:
        ConfigLoadError: Only when strict and the structured source failed
    """
    try:
        records, source = await _load_structured(settings, http_client)
    except ConfigLoadError as e:
        if strict:
            raise
        logger.error(
            f"Structured satellite config failed, falling back: {e}",
            extra={"source": e.source},
        )
        records, source = [], "file"

    if any(record.enabled for record in records):
        return records, source

    env_records = load_from_env(settings.satellite_domains_list)
    if env_records:
        return env_records, "env"

    logger.warning("No satellite domains configured")
    return [], "empty"


async def load_satellites(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> RegistrySnapshot:
    """
    One-shot load of the registry, without caching.

    Never raises for configuration problems: the worst case is an empty
    snapshot.
    """
    records, source = await collect_records(settings, http_client)
    snapshot = RegistrySnapshot.build(records, source, version=1)

    logger.info(
        f"Loaded {len(snapshot)} satellites from {snapshot.source}",
        extra={"source": snapshot.source, "count": len(snapshot)},
    )
    return snapshot


# ============================================================================
# Cached Registry
# ============================================================================

class SatelliteRegistry:
    """
    TTL-cached owner of the current RegistrySnapshot.

    Readers never lock: they get the current reference or trigger a refresh.
    Refreshes are serialized with an asyncio.Lock and replace the whole
    snapshot. When a refresh fails after a successful load, the last-known-good
    snapshot keeps being served until a short retry backoff expires.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings
        self._http_client = http_client
        self._clock = clock
        self._ttl = settings.SATELLITE_CACHE_SECONDS
        self._snapshot: Optional[RegistrySnapshot] = None
        self._expires_at: float = 0.0
        self._version = 0
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[RegistrySnapshot]:
        """Last loaded snapshot, fresh or not (None before first load)."""
        return self._snapshot

    def _is_fresh(self) -> bool:
        return self._snapshot is not None and self._clock() < self._expires_at

    async def get_snapshot(self) -> RegistrySnapshot:
        if self._is_fresh():
            return self._snapshot
        return await self.refresh(force=False)

    async def refresh(self, force: bool = True) -> RegistrySnapshot:
        """
        Build and publish a new snapshot.

        Args:
            force: Reload even if the current snapshot is still fresh

        Returns:
            The snapshot now being served
        """
        async with self._lock:
            # Another request may have refreshed while this one waited
            if not force and self._is_fresh():
                return self._snapshot

            first_load = self._snapshot is None

            try:
                records, source = await collect_records(
                    self._settings,
                    self._http_client,
                    strict=not first_load,
                )
            except ConfigLoadError as e:
                logger.error(
                    f"Satellite refresh failed, serving last-known-good snapshot: {e}",
                    extra={"source": e.source, "version": self._snapshot.version},
                )
                self._expires_at = self._clock() + min(self._ttl, REFRESH_RETRY_SECONDS)
                return self._snapshot

            self._version += 1
            snapshot = RegistrySnapshot.build(records, source, version=self._version, loaded_at=self._clock())

            self._snapshot = snapshot
            self._expires_at = self._clock() + self._ttl

            logger.info(
                f"Loaded {len(snapshot)} satellites from {snapshot.source}",
                extra={"source": snapshot.source, "count": len(snapshot), "version": snapshot.version},
            )
            return snapshot

    def invalidate(self) -> None:
        """Force a reload on the next get_snapshot()."""
        self._expires_at = 0.0
        logger.info("Satellite registry cache invalidated")

    def stats(self) -> RegistryStats:
        snapshot = self._snapshot or RegistrySnapshot.empty()
        age = self._clock() - snapshot.loaded_at if self._snapshot is not None else 0.0
        return RegistryStats(
            total=snapshot.total_configured,
            enabled=len(snapshot),
            with_tenant_id=sum(1 for record in snapshot.records if record.tenant_id),
            source=snapshot.source,
            version=snapshot.version,
            age_seconds=round(age, 3),
            ttl_seconds=self._ttl,
        )
