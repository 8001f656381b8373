"""Natural gas LDC lookup: HIFLD territories with local override precedence.

HIFLD Local Distribution Company territories are overgeneralized around
Austin (Texas Gas Service vs Atmos vs CenterPoint), so a locally maintained
county/ZIP override table wins whenever it disagrees with the polygon. The
override table is also the fallback when HIFLD has nothing or is down.

Endpoint:
  https://maps.nccs.nasa.gov/mapping/rest/services/hifld_open/energy/MapServer/29
"""

import logging
import re
from typing import List, Optional

import requests

from .arcgis import first_attributes, query_point
from .config import Config
from .errors import ProviderUnavailable, UnexpectedResponse, UpstreamError
from .models import ActionKind, Confidence, NextAction, ProviderRequest, ProviderResult
from .overrides import LocalOverrides
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

SOURCE = "HIFLD LDC Territories"
OVERRIDE_SOURCE = "Local Override"

_OVERRIDE_STATUS = "Local override for this area; confirm on provider site"
_HIFLD_STATUS = "Territory match from HIFLD"

_NAME_FIELDS = ("NAME", "name", "COMPANY", "company", "UTILITY", "utility")
_CORPORATE_SUFFIX_RE = re.compile(r"\s+(LLC|INC|CORP|CORPORATION|CO\.?|COMPANY)$", re.IGNORECASE)

# Known LDC websites, matched against the provider name
PROVIDER_URLS = [
    (re.compile(r"texas gas service", re.IGNORECASE), "https://www.texasgasservice.com/"),
    (re.compile(r"centerpoint", re.IGNORECASE), "https://www.centerpointenergy.com/"),
    (re.compile(r"atmos energy", re.IGNORECASE), "https://www.atmosenergy.com/"),
    (re.compile(r"coserv gas", re.IGNORECASE), "https://www.coserv.com/"),
]


def raw_provider_name(attributes: dict) -> Optional[str]:
    """First populated name-like attribute, as HIFLD spells it."""
    for key in _NAME_FIELDS:
        value = attributes.get(key)
        if value:
            return str(value)
    return None


def clean_provider_name(raw: Optional[str]) -> Optional[str]:
    """Strip a trailing corporate suffix ("Acme Gas Co" -> "Acme Gas")."""
    if not raw:
        return None
    name = _CORPORATE_SUFFIX_RE.sub("", raw.strip())
    return name or None


def provider_url(provider_name: Optional[str]) -> Optional[str]:
    if not provider_name:
        return None
    for pattern, url in PROVIDER_URLS:
        if pattern.search(provider_name):
            return url
    return None


def build_next_actions(url: Optional[str]) -> List[NextAction]:
    if url:
        return [
            NextAction("Start / Transfer Service", url, ActionKind.PRIMARY),
            NextAction("Emergency: Smell Gas? Call 911 and Utility", url, ActionKind.SECONDARY),
        ]
    return [
        NextAction("Start / Transfer Service", None, ActionKind.PRIMARY),
        NextAction("Emergency: Smell Gas? Call 911", None, ActionKind.SECONDARY),
    ]


class GasLDCLookup:
    """Gas provider via HIFLD LDC polygons + local county/ZIP overrides."""

    def __init__(self, overrides: Optional[LocalOverrides] = None,
                 config: Optional[Config] = None,
                 session: Optional[requests.Session] = None,
                 policy: Optional[RetryPolicy] = None):
        self.config = config or Config()
        self.overrides = overrides or LocalOverrides()
        self.session = session or requests.Session()
        self.policy = policy or RetryPolicy(
            max_retries=self.config.max_retries,
            backoff_base=self.config.backoff_base,
        )

    def lookup(self, request: ProviderRequest) -> ProviderResult:
        override = self.overrides.gas.find(request.county, request.zip_code)

        try:
            features = query_point(
                self.session, self.config.gas_ldc_url,
                request.lat, request.lng,
                policy=self.policy,
                timeout=self.config.request_timeout,
                label="Gas LDC",
            )
        except ProviderUnavailable as e:
            # Degraded but still useful: fall back to the override table
            error = f"Service unavailable: {e.reason}"
            if override:
                logger.info(f"Gas LDC: HIFLD unavailable, using override '{override}'")
                return self._override_result(override, {"error": error, "override_applied": True})
            return ProviderResult.unknown(SOURCE, error)
        except UnexpectedResponse as e:
            return ProviderResult.unknown(SOURCE, str(e))
        except UpstreamError as e:
            logger.error(f"Gas LDC error: {e}")
            return ProviderResult.unknown(SOURCE, str(e))

        if not features:
            if override:
                return self._override_result(override, {"override_applied": True})
            return ProviderResult.unknown(SOURCE)

        attributes = dict(first_attributes(features))
        hifld_raw = raw_provider_name(attributes)
        hifld_name = clean_provider_name(hifld_raw)

        if override and override != hifld_name:
            logger.debug(f"Gas LDC: override '{override}' replaces HIFLD '{hifld_raw}'")
            meta = dict(attributes)
            meta.update(
                override_provider=override,
                hifld_name=hifld_raw,
                override_applied=True,
            )
            return ProviderResult(
                provider=override,
                source=SOURCE,
                confidence=Confidence.LIKELY,
                status_text=_OVERRIDE_STATUS,
                next_actions=build_next_actions(provider_url(override)),
                meta=meta,
            )

        if hifld_name:
            return ProviderResult(
                provider=hifld_name,
                source=SOURCE,
                confidence=Confidence.LIKELY,
                status_text=_HIFLD_STATUS,
                next_actions=build_next_actions(provider_url(hifld_name)),
                meta=attributes,
            )

        return ProviderResult.unknown(SOURCE)

    @staticmethod
    def _override_result(provider: str, meta: dict) -> ProviderResult:
        return ProviderResult(
            provider=provider,
            source=OVERRIDE_SOURCE,
            confidence=Confidence.LIKELY,
            status_text=_OVERRIDE_STATUS,
            next_actions=build_next_actions(provider_url(provider)),
            meta=meta,
        )
