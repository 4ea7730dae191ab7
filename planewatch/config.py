"""
Configuration management for PlaneWatch.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, FrozenSet

from dotenv import load_dotenv

load_dotenv()

PACKAGE_DIR = Path(__file__).resolve().parent

# Fallback observer position when neither configuration nor IP lookup works (LAX)
DEFAULT_LOCATION: Tuple[float, float] = (33.9416, -118.4085)


def _parse_location(value: str) -> Optional[Tuple[float, float]]:
    """Parse 'lat,lon' string into tuple, or None if empty/invalid."""
    if not value:
        return None
    try:
        lat, lon = value.split(',')
        return (float(lat.strip()), float(lon.strip()))
    except (ValueError, AttributeError):
        return None


def _parse_selection(value: str) -> FrozenSet[str]:
    """Parse comma-separated model names into a set."""
    if not value:
        return frozenset()
    return frozenset(name.strip() for name in value.split(',') if name.strip())


def _get_bool(env_var: str, default: bool = False) -> bool:
    value = os.getenv(env_var)
    if value is None:
        return default
    return value.lower() in {'1', 'true', 'yes', 'on'}


@dataclass(frozen=True)
class FeedConfig:
    """Position feed settings."""
    source: str = os.getenv('FEED_SOURCE', 'adsb.fi')
    adsbfi_base_url: str = os.getenv('ADSBFI_BASE_URL', 'https://opendata.adsb.fi/api/v2')
    airplanes_live_base_url: str = os.getenv('AIRPLANES_LIVE_BASE_URL', 'https://api.airplanes.live/v2')
    poll_interval: float = float(os.getenv('POLL_INTERVAL_SECONDS', '2.5'))
    default_radius_nm: float = float(os.getenv('DEFAULT_RADIUS_NM', '20'))
    # Arrivals are checked every N polls; 10 checks every 25 s at 2.5 s
    arrival_check_every: int = int(os.getenv('ARRIVAL_CHECK_EVERY', '1'))
    timeout: float = float(os.getenv('HTTP_TIMEOUT_SECONDS', '10'))

    @property
    def base_url(self) -> str:
        if self.source == 'airplanes.live':
            return self.airplanes_live_base_url
        return self.adsbfi_base_url


@dataclass(frozen=True)
class ProviderConfig:
    """Detail provider chain settings. Unset URLs/paths disable that provider."""
    adsbdb_base_url: Optional[str] = os.getenv('ADSBDB_BASE_URL', 'https://api.adsbdb.com/v0') or None
    proxy_base_url: Optional[str] = os.getenv('DETAILS_PROXY_URL') or None
    hexdb_base_url: Optional[str] = os.getenv('HEXDB_BASE_URL', 'https://hexdb.io/api/v1') or None
    offline_registry_path: Optional[str] = os.getenv('OFFLINE_REGISTRY_PATH') or None
    resolver_workers: int = int(os.getenv('RESOLVER_WORKERS', '4'))
    timeout: float = float(os.getenv('HTTP_TIMEOUT_SECONDS', '10'))


@dataclass(frozen=True)
class FilterConfig:
    """Taxonomy filter settings."""
    taxonomy_path: str = os.getenv('TAXONOMY_PATH', str(PACKAGE_DIR / 'data' / 'taxonomy.json'))
    selection: FrozenSet[str] = field(
        default_factory=lambda: _parse_selection(os.getenv('MODEL_SELECTION', ''))
    )
    include_non_standard: bool = _get_bool('INCLUDE_NON_STANDARD')


@dataclass(frozen=True)
class TrackingConfig:
    """Reacquisition tracker settings."""
    radius_nm: float = float(os.getenv('TRACKING_RADIUS_NM', '10'))
    interval: float = float(os.getenv('TRACKING_INTERVAL_SECONDS', '2.5'))
    # Consecutive misses before the target is declared lost (~30s at 2.5s)
    lost_after_misses: int = int(os.getenv('TRACKING_LOST_AFTER', '12'))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    feed: FeedConfig
    providers: ProviderConfig
    filter: FilterConfig
    tracking: TrackingConfig

    # User location (None = auto-detect via IP, then DEFAULT_LOCATION)
    user_location: Optional[Tuple[float, float]]
    default_location: Tuple[float, float]

    # Flask settings
    secret_key: str
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        feed=FeedConfig(),
        providers=ProviderConfig(),
        filter=FilterConfig(),
        tracking=TrackingConfig(),
        user_location=_parse_location(os.getenv('USER_LOCATION', '')),
        default_location=_parse_location(os.getenv('DEFAULT_LOCATION', '')) or DEFAULT_LOCATION,
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
