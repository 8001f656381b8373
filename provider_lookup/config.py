"""Configuration for the provider lookup engine."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


_ROOT = Path(__file__).parent.parent


@dataclass
class Config:
    # Upstream endpoints
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    austin_energy_url: str = (
        "https://services.arcgis.com/0L95CJ0VTaxqcmED/ArcGIS/rest/services/"
        "UTILITIESCOMMUNICATION_austin_energy_service_area/FeatureServer/0/query"
    )
    austin_water_url: str = "https://maps.austintexas.gov/gis/rest/PropertyProfile/AustinWater/MapServer"
    gas_ldc_url: str = (
        "https://maps.nccs.nasa.gov/mapping/rest/services/hifld_open/energy/MapServer/29/query"
    )

    # Geocoder etiquette (Nominatim usage policy)
    nominatim_user_agent: str = "utilify/1.0"
    nominatim_email: str = "dev@example.com"
    geocode_delay: float = 1.0  # seconds slept before every geocoder call

    # HTTP
    request_timeout: float = 5.0  # connect and read
    max_retries: int = 2
    backoff_base: float = 2.0

    # Cache
    cache_db: Path = _ROOT / "data" / "provider_cache.db"
    cache_ttl_seconds: int = 15 * 60

    # Local overrides
    overrides_file: Path = _ROOT / "data" / "local_overrides.json"

    # Canonical local jurisdiction
    local_city: str = "Austin"
    local_county: str = "Travis"

    # Resolution-level deadline for the provider fan-out (None = wait for all)
    resolution_timeout: Optional[float] = None
