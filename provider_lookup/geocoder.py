"""Geocoding wrapper: OpenStreetMap Nominatim free-text search."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import requests

from .config import Config
from .errors import UpstreamError
from .models import Location
from .retry import RetryPolicy, get_with_retry

logger = logging.getLogger(__name__)


class Geocoder(ABC):
    @abstractmethod
    def geocode(self, address: str) -> Optional[Location]:
        """Geocode an address string to lat/lon + display name. Never raises."""
        ...


class NominatimGeocoder(Geocoder):
    """
    Nominatim search, top match only.

    Sleeps a fixed delay before every call to honour the public instance's
    one-request-per-second policy, then retries 429/5xx/timeouts with
    exponential backoff. Anything else (4xx, empty result list, garbage
    body) returns None immediately.
    """

    def __init__(self, config: Optional[Config] = None,
                 session: Optional[requests.Session] = None,
                 policy: Optional[RetryPolicy] = None):
        self.config = config or Config()
        self.session = session or requests.Session()
        self.policy = policy or RetryPolicy(
            max_retries=self.config.max_retries,
            backoff_base=self.config.backoff_base,
        )
        self.headers = {
            "User-Agent": self.config.nominatim_user_agent,
            "Accept": "application/json",
        }
        if self.config.nominatim_email:
            self.headers["From"] = self.config.nominatim_email

    def geocode(self, address: str) -> Optional[Location]:
        if not address or not address.strip():
            return None

        params = {
            "q": address,
            "format": "jsonv2",
            "limit": 1,
            "addressdetails": 0,
        }

        if self.config.geocode_delay > 0:
            self.policy.sleep(self.config.geocode_delay)

        try:
            t0 = time.time()
            resp = get_with_retry(
                self.session, self.config.nominatim_url,
                params=params,
                headers=self.headers,
                policy=self.policy,
                timeout=self.config.request_timeout,
                label="Nominatim",
            )
            elapsed_ms = int((time.time() - t0) * 1000)
        except UpstreamError as e:
            logger.error(f"Nominatim geocoder error for '{address}': {e}")
            return None

        if not 200 <= resp.status_code < 300:
            logger.warning(f"Nominatim geocoder: HTTP {resp.status_code} for '{address}' ({elapsed_ms}ms)")
            return None

        try:
            matches = resp.json()
            if not isinstance(matches, list) or not matches:
                logger.debug(f"Nominatim geocoder: no match for '{address}' ({elapsed_ms}ms)")
                return None

            best = matches[0]
            result = Location(
                latitude=float(best["lat"]),
                longitude=float(best["lon"]),
                display_name=best.get("display_name") or "",
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Nominatim geocoder parse error for '{address}': {e}")
            return None

        logger.debug(f"Nominatim geocoder: {address} -> ({result.latitude}, {result.longitude}) ({elapsed_ms}ms)")
        return result
