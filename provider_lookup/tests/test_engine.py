import json
import threading
import time
from unittest.mock import MagicMock

import pytest

from provider_lookup.cache import ResolutionCache
from provider_lookup.engine import LookupEngine
from provider_lookup.models import (
    UTILITY_TYPES,
    Confidence,
    ErrorKind,
    Location,
    ProviderResult,
    ResolutionError,
    ResolutionResult,
)
from provider_lookup.overrides import LocalOverrides

AUSTIN = Location(30.2657, -97.7501, "301 West 2nd Street, Austin, Travis County, Texas, 78701, USA")
ROUND_ROCK = Location(30.5083, -97.6789, "123 Main Street, Round Rock, Williamson County, Texas, 78664, USA")

OVERRIDES = LocalOverrides.from_dict({"gas": {"county": {"Travis": "Texas Gas Service"}}})


def _route(responses, make_response):
    """session.get side effect answering by URL substring."""
    def _get(url, **kwargs):
        for fragment, payload in responses.items():
            if fragment in url:
                if isinstance(payload, Exception):
                    raise payload
                if isinstance(payload, int):
                    return make_response(payload)
                return make_response(200, payload)
        raise AssertionError(f"unexpected GET {url}")
    return _get


@pytest.fixture
def geocoder():
    geo = MagicMock()
    geo.geocode.return_value = AUSTIN
    return geo


@pytest.fixture
def engine(config, geocoder, session, policy):
    eng = LookupEngine(
        config,
        geocoder=geocoder,
        cache=ResolutionCache(config.cache_db, ttl_seconds=900),
        overrides=OVERRIDES,
        session=session,
        policy=policy,
    )
    yield eng
    eng.cache.close()


def test_blank_address_never_geocodes(engine, geocoder):
    for blank in ("", "   ", "\t\n", None):
        outcome = engine.resolve(blank)
        assert isinstance(outcome, ResolutionError)
        assert outcome.kind is ErrorKind.MISSING_ADDRESS
        assert outcome.message == "Address is required"
    geocoder.geocode.assert_not_called()


def test_geocode_failure_has_no_providers(engine, geocoder, session):
    geocoder.geocode.return_value = None
    outcome = engine.resolve("invalid address")

    assert isinstance(outcome, ResolutionError)
    assert outcome.kind is ErrorKind.GEOCODE_FAILED
    assert "providers" not in outcome.to_dict()
    session.get.assert_not_called()


def test_full_resolution_austin(engine, session, make_response, features):
    session.get.side_effect = _route({
        "FeatureServer/0": features({"SERVICE_AREA": "Austin Energy"}),
        "AustinWater/MapServer/3": features({"OBJECTID": 9}),
        "MapServer/29": features({"NAME": "Acme Gas Co"}),
    }, make_response)

    outcome = engine.resolve("301 W 2nd St, Austin, TX 78701")

    assert isinstance(outcome, ResolutionResult)
    assert outcome.location == AUSTIN
    assert outcome.electric.provider == "Austin Energy"
    assert outcome.water.provider == "Austin Water"
    assert outcome.gas.provider == "Texas Gas Service"
    assert outcome.gas.meta["hifld_name"] == "Acme Gas Co"
    assert outcome.trash.confidence is Confidence.CONFIRMED

    payload = outcome.to_dict()
    assert list(payload["providers"]) == list(UTILITY_TYPES)
    assert payload["location"] == {
        "lat": 30.2657, "lng": -97.7501, "display_name": AUSTIN.display_name,
    }


def test_components_flow_into_provider_requests(engine, geocoder, session, make_response):
    geocoder.geocode.return_value = ROUND_ROCK
    session.get.side_effect = _route({"query": {"features": []}}, make_response)

    outcome = engine.resolve("123 Main St, Round Rock, TX")

    assert outcome.trash.meta["city"] == "Round Rock"
    assert outcome.trash.meta["county"] == "Williamson"
    assert outcome.trash.confidence is Confidence.LIKELY


def test_partial_outage_keeps_response_usable(engine, session, make_response, features):
    session.get.side_effect = _route({
        "FeatureServer/0": 503,
        "AustinWater": {"features": []},
        "MapServer/29": features({"NAME": "Texas Gas Service"}),
    }, make_response)

    outcome = engine.resolve("301 W 2nd St, Austin, TX 78701")

    assert isinstance(outcome, ResolutionResult)
    for utype in UTILITY_TYPES:
        pr = outcome.providers[utype]
        assert isinstance(pr, ProviderResult)
    assert outcome.electric.confidence is Confidence.UNKNOWN
    assert outcome.electric.meta["error"].startswith("Service unavailable")
    assert outcome.water.provider is None
    assert outcome.water.next_actions == []
    assert outcome.gas.provider == "Texas Gas Service"


def test_repeat_resolution_hits_cache(engine, geocoder, session, make_response, features):
    session.get.side_effect = _route({
        "FeatureServer/0": features({"SERVICE_AREA": "Austin Energy"}),
        "AustinWater": {"features": []},
        "MapServer/29": features({"NAME": "Acme Gas Co", "STATE": "TX"}),
    }, make_response)

    first = engine.resolve("301 W 2nd St, Austin, TX 78701")
    upstream_calls = session.get.call_count
    second = engine.resolve("  301 w 2nd st, austin, tx 78701")

    assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())
    assert list(second.trash.meta) == ["city", "county", "note", "schedule_url", "bulk_url"]
    assert list(second.gas.meta) == list(first.gas.meta)
    assert geocoder.geocode.call_count == 1
    assert session.get.call_count == upstream_calls


def test_geocode_failures_are_cached_too(engine, geocoder):
    geocoder.geocode.return_value = None
    engine.resolve("nowhere")
    engine.resolve("NOWHERE")
    assert geocoder.geocode.call_count == 1


def test_use_cache_false_bypasses_cache(engine, geocoder, session, make_response):
    session.get.side_effect = _route({"query": {"features": []}}, make_response)
    engine.resolve("301 W 2nd St", use_cache=False)
    engine.resolve("301 W 2nd St", use_cache=False)
    assert geocoder.geocode.call_count == 2
    assert engine.cache.size == 0


def test_lookups_run_concurrently(config, geocoder):
    barrier = threading.Barrier(4, timeout=2)

    class Waiting:
        def __init__(self, name):
            self.name = name

        def lookup(self, request):
            # Only returns if all four lookups are in flight at once
            barrier.wait()
            return ProviderResult(self.name, "test", Confidence.LIKELY)

    eng = LookupEngine(
        config,
        geocoder=geocoder,
        cache=ResolutionCache(":memory:"),
        overrides=OVERRIDES,
        lookups={utype: Waiting(utype) for utype in UTILITY_TYPES},
    )
    outcome = eng.resolve("301 W 2nd St", use_cache=False)
    assert [outcome.providers[u].provider for u in UTILITY_TYPES] == list(UTILITY_TYPES)


def test_deadline_turns_slow_lookup_into_unknown(config, geocoder):
    config.resolution_timeout = 0.2
    release = threading.Event()

    class Slow:
        def lookup(self, request):
            release.wait(2)
            return ProviderResult("late", "test", Confidence.LIKELY)

    eng = LookupEngine(
        config,
        geocoder=geocoder,
        cache=ResolutionCache(":memory:"),
        overrides=OVERRIDES,
        lookups={"electric": Slow(), "water": MagicMock(lookup=lambda r: ProviderResult.unknown("w")),
                 "gas": MagicMock(lookup=lambda r: ProviderResult.unknown("g"))},
    )
    t0 = time.time()
    outcome = eng.resolve("301 W 2nd St", use_cache=False)
    release.set()

    assert time.time() - t0 < 1.5
    assert outcome.electric.confidence is Confidence.UNKNOWN
    assert outcome.electric.meta["error"] == "Lookup timed out"
    assert outcome.trash.provider == "Austin Resource Recovery"


def test_raising_lookup_degrades_to_unknown(config, geocoder):
    broken = MagicMock()
    broken.lookup.side_effect = RuntimeError("boom")
    eng = LookupEngine(
        config,
        geocoder=geocoder,
        cache=ResolutionCache(":memory:"),
        overrides=OVERRIDES,
        lookups={utype: broken for utype in ("electric", "water", "gas")},
    )
    outcome = eng.resolve("301 W 2nd St", use_cache=False)

    assert outcome.electric.provider is None
    assert outcome.electric.meta["error"] == "boom"
    assert outcome.trash.provider == "Austin Resource Recovery"


def test_resolve_batch(engine, geocoder, session, make_response):
    session.get.side_effect = _route({"query": {"features": []}}, make_response)
    outcomes = engine.resolve_batch(["301 W 2nd St", "", "301 W 2nd St"])

    assert isinstance(outcomes[0], ResolutionResult)
    assert isinstance(outcomes[1], ResolutionError)
    assert geocoder.geocode.call_count == 1
