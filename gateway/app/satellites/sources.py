"""
Satellite configuration sources.

Three sources feed the registry, in priority order:
1. Structured JSON document (remote URL or local file)
2. SATELLITE_DOMAINS environment fallback (comma-separated origins)
3. Nothing (empty registry)

A whole-document failure raises ConfigLoadError. Individual malformed
entries are skipped and logged; they never fail the load.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import ValidationError

from ..errors import ConfigLoadError
from ..models import SatelliteRecord

logger = logging.getLogger("gateway.satellites.sources")


# ============================================================================
# Helpers
# ============================================================================

def synthesize_display_name(hostname: str) -> str:
    """
    Build a readable name from a hostname.

    Example:
        >>> synthesize_display_name("www.mosc-temp.com")
        'Mosc Temp'
    """
    base_name = re.sub(r"^www\.", "", hostname.lower()).split(".")[0]
    words = [word for word in re.split(r"[-_]", base_name) if word]
    return " ".join(word[0].upper() + word[1:] for word in words)


def _extract_entries(document: Any, source: str) -> List[Any]:
    """Accept {"satellites": [...]} or a bare list."""
    if isinstance(document, dict):
        entries = document.get("satellites")
    else:
        entries = document

    if not isinstance(entries, list):
        raise ConfigLoadError(source, "expected a 'satellites' list")

    return entries


def parse_satellite_entries(entries: Iterable[Any], source: str) -> List[SatelliteRecord]:
    """
    Validate raw entries into SatelliteRecords, skipping malformed ones.

    Disabled records are returned too; the registry filters them.
    """
    records = []

    for index, entry in enumerate(entries):
        try:
            records.append(SatelliteRecord.model_validate(entry))
        except ValidationError as e:
            entry_id = entry.get("id") if isinstance(entry, dict) else None
            logger.warning(
                f"Skipping malformed satellite entry {index} from {source}",
                extra={
                    "source": source,
                    "entry_index": index,
                    "entry_id": entry_id,
                    "errors": e.error_count(),
                },
            )

    return records


# ============================================================================
# Structured Sources
# ============================================================================

def load_from_file(path: Optional[str]) -> List[SatelliteRecord]:
    """
    Load satellites from a JSON file.

    A missing path or file means "not configured" and yields an empty list.

    Raises:
        ConfigLoadError: If the file exists but cannot be read or parsed
    """
    if not path:
        return []

    file_path = Path(path)
    if not file_path.is_file():
        logger.debug(f"Satellite config file not found: {path}")
        return []

    try:
        document = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError("file", f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigLoadError("file", f"invalid JSON in {path}: {e}") from e

    return parse_satellite_entries(_extract_entries(document, "file"), "file")


async def load_from_url(url: str, client: httpx.AsyncClient, timeout: float = 10.0) -> List[SatelliteRecord]:
    """
    Load satellites from a remote JSON document.

    Raises:
        ConfigLoadError: On network errors, non-2xx status or invalid JSON
    """
    try:
        response = await client.get(url, timeout=timeout)
        response.raise_for_status()
        document = response.json()
    except httpx.HTTPStatusError as e:
        raise ConfigLoadError("remote", f"HTTP {e.response.status_code} from {url}") from e
    except httpx.HTTPError as e:
        raise ConfigLoadError("remote", f"cannot fetch {url}: {e}") from e
    except ValueError as e:
        raise ConfigLoadError("remote", f"invalid JSON from {url}: {e}") from e

    return parse_satellite_entries(_extract_entries(document, "remote"), "remote")


# ============================================================================
# Environment Fallback
# ============================================================================

def load_from_env(domains: List[str]) -> List[SatelliteRecord]:
    """
    Synthesize records from a list of origins.

    Entries without a scheme are treated as bare hostnames served over https.
    Records get id "env-<index>", a generated display name and no branding.
    """
    added_date = datetime.now(timezone.utc).isoformat()
    records = []

    for index, domain in enumerate(domains):
        origin = domain.strip()
        if "://" not in origin:
            origin = f"https://{origin}"

        try:
            record = SatelliteRecord(
                id=f"env-{index}",
                origin_url=origin,
                display_name=synthesize_display_name(urlsplit(origin).hostname or ""),
                enabled=True,
                added_date=added_date,
            )
        except ValidationError:
            logger.warning(
                f"Skipping malformed SATELLITE_DOMAINS entry {index}",
                extra={"source": "env", "entry_index": index},
            )
            continue

        records.append(record)

    return records
