"""
Satellite Registry Package

Loads and indexes the cooperating satellite domains and their branding.

Modules:
- sources: JSON file / remote document / SATELLITE_DOMAINS parsing
- registry: immutable snapshots and the TTL-cached SatelliteRegistry
"""

from .registry import RegistrySnapshot, SatelliteRegistry, load_satellites
from .sources import synthesize_display_name

__all__ = [
    "RegistrySnapshot",
    "SatelliteRegistry",
    "load_satellites",
    "synthesize_display_name",
]
