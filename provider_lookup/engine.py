"""Main LookupEngine: orchestrates geocoding, component extraction, provider fan-out and caching."""

import concurrent.futures
import logging
import time
from typing import Dict, List, Optional

import requests

from .austin_energy import AustinEnergyLookup
from .austin_water import AustinWaterLookup
from .cache import ResolutionCache
from .config import Config
from .extractor import extract_components
from .gas_ldc import GasLDCLookup
from .geocoder import Geocoder, NominatimGeocoder
from .models import (
    UTILITY_TYPES,
    ErrorKind,
    ProviderRequest,
    ProviderResult,
    Resolution,
    ResolutionError,
    ResolutionResult,
)
from .overrides import LocalOverrides
from .retry import RetryPolicy
from .trash_arr import TrashARRLookup

logger = logging.getLogger(__name__)

MISSING_ADDRESS_MESSAGE = "Address is required"
GEOCODE_FAILED_MESSAGE = "Unable to geocode address"

# Source label used when a provider task blows up or misses the deadline
_FALLBACK_SOURCES = {
    "electric": "ArcGIS FeatureServer",
    "water": "AustinWater MapServer",
    "gas": "HIFLD LDC Territories",
    "trash": "City of Austin",
}


class LookupEngine:
    """
    Utility provider resolution for a single street address.

    1. Reject blank input
    2. Check cache
    3. Geocode address -> Location
    4. Extract city / county / ZIP from the display name
    5. Fan out electric, water, gas, trash lookups concurrently
    6. Aggregate, cache and return

    Collaborators are injectable so tests can build a fresh engine with
    mocked upstreams and a throwaway cache.
    """

    def __init__(self, config: Optional[Config] = None,
                 geocoder: Optional[Geocoder] = None,
                 cache: Optional[ResolutionCache] = None,
                 overrides: Optional[LocalOverrides] = None,
                 lookups: Optional[Dict[str, object]] = None,
                 session: Optional[requests.Session] = None,
                 policy: Optional[RetryPolicy] = None):
        self.config = config or Config()

        logger.info("Initializing LookupEngine...")
        t0 = time.time()

        session = session or requests.Session()
        policy = policy or RetryPolicy(
            max_retries=self.config.max_retries,
            backoff_base=self.config.backoff_base,
        )

        self.geocoder: Geocoder = geocoder or NominatimGeocoder(self.config, session=session, policy=policy)

        if overrides is None:
            overrides = LocalOverrides.load(self.config.overrides_file)
        self.overrides = overrides

        self.lookups = {
            "electric": AustinEnergyLookup(self.config, session=session, policy=policy),
            "water": AustinWaterLookup(self.config, session=session, policy=policy),
            "gas": GasLDCLookup(self.overrides, self.config, session=session, policy=policy),
            "trash": TrashARRLookup(self.config.local_city),
        }
        if lookups:
            self.lookups.update(lookups)

        self.cache = cache or ResolutionCache(self.config.cache_db, self.config.cache_ttl_seconds)

        elapsed = time.time() - t0
        logger.info(f"LookupEngine ready in {elapsed:.1f}s, cache={self.cache.size} entries")

    def resolve(self, address: str, use_cache: bool = True) -> Resolution:
        """
        Resolve utility providers for an address.

        Returns a ResolutionResult, or a ResolutionError for blank input
        (missing_address) and geocoder failure (geocode_failed). Provider
        failures never surface here; they come back as unknown results.
        """
        if address is None or not address.strip():
            return ResolutionError(ErrorKind.MISSING_ADDRESS, MISSING_ADDRESS_MESSAGE)

        if not use_cache:
            return self._compute(address)

        t0 = time.time()
        outcome, hit = self.cache.get_or_compute(address, lambda: self._compute(address))
        if hit:
            logger.debug(f"Cache hit for '{address}' ({int((time.time() - t0) * 1000)}ms)")
        return outcome

    def resolve_batch(self, addresses: List[str], use_cache: bool = True,
                      delay_ms: int = 0) -> List[Resolution]:
        """Sequential batch resolution with progress logging."""
        results = []
        total = len(addresses)
        for i, addr in enumerate(addresses, 1):
            results.append(self.resolve(addr, use_cache=use_cache))
            if i % 10 == 0 or i == total:
                logger.info(f"Batch progress: {i}/{total}")
            if delay_ms > 0 and i < total:
                time.sleep(delay_ms / 1000)
        return results

    def _compute(self, address: str) -> Resolution:
        t0 = time.time()

        location = self.geocoder.geocode(address)
        if location is None:
            logger.info(f"Resolve '{address}' -> geocode failed ({int((time.time() - t0) * 1000)}ms)")
            return ResolutionError(ErrorKind.GEOCODE_FAILED, GEOCODE_FAILED_MESSAGE)

        components = extract_components(
            location.display_name,
            local_city=self.config.local_city,
            local_county=self.config.local_county,
        )
        logger.debug(
            f"Extracted location details - city={components.city}, "
            f"county={components.county}, zip={components.zip_code}"
        )

        request = ProviderRequest(
            lat=location.latitude,
            lng=location.longitude,
            city=components.city,
            county=components.county,
            zip_code=components.zip_code,
        )
        providers = self._fan_out(request)

        result = ResolutionResult(address=address, location=location, **providers)
        logger.info(
            f"Resolve '{address}' -> "
            + ", ".join(f"{u}={providers[u].provider or 'unknown'}" for u in UTILITY_TYPES)
            + f" ({int((time.time() - t0) * 1000)}ms)"
        )
        return result

    def _fan_out(self, request: ProviderRequest) -> Dict[str, ProviderResult]:
        """Run the four provider lookups concurrently and join them in fixed order."""
        results: Dict[str, ProviderResult] = {}
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=len(UTILITY_TYPES), thread_name_prefix="provider-lookup"
        )
        try:
            futures = {
                executor.submit(self.lookups[utype].lookup, request): utype
                for utype in UTILITY_TYPES
            }
            done, pending = concurrent.futures.wait(
                futures, timeout=self.config.resolution_timeout
            )
            for future in done:
                utype = futures[future]
                try:
                    results[utype] = future.result()
                except Exception as e:
                    logger.error(f"{utype} lookup raised: {e}")
                    results[utype] = ProviderResult.unknown(_FALLBACK_SOURCES[utype], str(e))
            for future in pending:
                utype = futures[future]
                future.cancel()
                logger.warning(f"{utype} lookup missed the {self.config.resolution_timeout}s deadline")
                results[utype] = ProviderResult.unknown(_FALLBACK_SOURCES[utype], "Lookup timed out")
        finally:
            # Stragglers past the deadline finish in the background
            executor.shutdown(wait=False)

        return {utype: results[utype] for utype in UTILITY_TYPES}
