"""Austin Water lookup: service area layer, then MUD layer as fallback.

Queries the City of Austin PropertyProfile/AustinWater MapServer:
  layer 3: Austin Water retail service area  -> confirmed
  layer 0: Municipal Utility Districts (MUDs) -> likely

Each layer gets its own retry budget, so an outage on the service area
layer still lets the MUD layer answer.
"""

import logging
from typing import List, Optional, Tuple

import requests

from .arcgis import first_attributes, query_point
from .config import Config
from .errors import ProviderUnavailable, UpstreamError
from .models import ActionKind, Confidence, NextAction, ProviderRequest, ProviderResult
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

SOURCE = "AustinWater MapServer"
PROVIDER = "Austin Water"

SERVICE_AREA_LAYER = 3
MUDS_LAYER = 0

# MUD layers are inconsistent about where the district name lives
_DISTRICT_NAME_FIELDS = ("NAME", "Utility_Name", "UTILITY", "COMPANY", "PROVIDER")
_UNKNOWN_DISTRICT = "Unknown district"

_WATER_URL = "https://www.austintexas.gov/department/austin-water"


def district_name(attributes: dict) -> str:
    for key in _DISTRICT_NAME_FIELDS:
        value = attributes.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return _UNKNOWN_DISTRICT


class AustinWaterLookup:
    """Water provider via Austin Water service area, falling back to MUDs."""

    def __init__(self, config: Optional[Config] = None,
                 session: Optional[requests.Session] = None,
                 policy: Optional[RetryPolicy] = None):
        self.config = config or Config()
        self.session = session or requests.Session()
        self.policy = policy or RetryPolicy(
            max_retries=self.config.max_retries,
            backoff_base=self.config.backoff_base,
        )

    def lookup(self, request: ProviderRequest) -> ProviderResult:
        errors: List[str] = []

        hit, error = self._query_layer(SERVICE_AREA_LAYER, request.lat, request.lng)
        if error:
            errors.append(error)
        if hit is not None:
            return ProviderResult(
                provider=PROVIDER,
                source=SOURCE,
                confidence=Confidence.CONFIRMED,
                status_text="Inside Austin Water service area",
                next_actions=[
                    NextAction("Start / Stop / Transfer", _WATER_URL, ActionKind.PRIMARY),
                    NextAction("Report Water Issue", _WATER_URL, ActionKind.SECONDARY),
                ],
                meta=hit,
            )

        hit, error = self._query_layer(MUDS_LAYER, request.lat, request.lng)
        if error:
            errors.append(error)
        if hit is not None:
            return ProviderResult(
                provider=f"MUD: {district_name(hit)}",
                source=SOURCE,
                confidence=Confidence.LIKELY,
                status_text="Municipal Utility District service area",
                # No MUD office URLs yet
                next_actions=[NextAction("Contact MUD Office", None, ActionKind.SECONDARY)],
                meta=hit,
            )

        return ProviderResult.unknown(SOURCE, "; ".join(errors) or None)

    def _query_layer(self, layer_id: int, lat: float, lng: float) -> Tuple[Optional[dict], Optional[str]]:
        """Returns (attributes of the first hit or None, error text or None)."""
        url = f"{self.config.austin_water_url}/{layer_id}/query"
        label = f"Austin Water layer {layer_id}"
        try:
            features = query_point(
                self.session, url, lat, lng,
                policy=self.policy,
                timeout=self.config.request_timeout,
                label=label,
            )
        except ProviderUnavailable as e:
            return None, f"{label}: Service unavailable: {e.reason}"
        except UpstreamError as e:
            logger.warning(f"{label} error: {e}")
            return None, f"{label}: {e}"

        if not features:
            return None, None
        return dict(first_attributes(features)), None
