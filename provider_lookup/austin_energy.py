"""Austin Energy service territory: live ArcGIS FeatureServer lookup.

A single point-in-polygon query. Any feature at the point means the address
is inside the Austin Energy service area; the provider name comes from the
data source itself, not from the feature attributes.

Endpoint:
  https://services.arcgis.com/0L95CJ0VTaxqcmED/ArcGIS/rest/services/
  UTILITIESCOMMUNICATION_austin_energy_service_area/FeatureServer/0
"""

import logging
from typing import Optional

import requests

from .arcgis import first_attributes, query_point
from .config import Config
from .errors import ProviderUnavailable, UpstreamError
from .models import ActionKind, Confidence, NextAction, ProviderRequest, ProviderResult
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

SOURCE = "ArcGIS FeatureServer"
PROVIDER = "Austin Energy"


def _next_actions():
    return [
        NextAction("Start / Transfer Service", "https://www.austinenergy.com/", ActionKind.PRIMARY),
        NextAction("Outage Map", "https://outagemap.austinenergy.com/", ActionKind.SECONDARY),
        NextAction("Contact Support", "https://www.austinenergy.com/ae/contact-us", ActionKind.SECONDARY),
    ]


class AustinEnergyLookup:
    """Electric provider via the Austin Energy service area layer."""

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
        try:
            features = query_point(
                self.session, self.config.austin_energy_url,
                request.lat, request.lng,
                policy=self.policy,
                timeout=self.config.request_timeout,
                label="Austin Energy",
            )
        except ProviderUnavailable as e:
            return ProviderResult.unknown(SOURCE, f"Service unavailable: {e.reason}")
        except UpstreamError as e:
            logger.error(f"Austin Energy error: {e}")
            return ProviderResult.unknown(SOURCE, str(e))

        if not features:
            logger.debug(f"Austin Energy: no territory at ({request.lat}, {request.lng})")
            return ProviderResult.unknown(SOURCE)

        return ProviderResult(
            provider=PROVIDER,
            source=SOURCE,
            confidence=Confidence.CONFIRMED,
            status_text="Inside Austin Energy service area",
            next_actions=_next_actions(),
            meta=dict(first_attributes(features)),
        )
