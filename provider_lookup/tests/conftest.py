from unittest.mock import MagicMock

import pytest

from provider_lookup.config import Config
from provider_lookup.retry import RetryPolicy


def _response(status_code=200, payload=None, json_error=None):
    resp = MagicMock()
    resp.status_code = status_code
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def make_response():
    return _response


@pytest.fixture
def features():
    """Factory for an ArcGIS query body with the given attribute maps."""
    def _features(*attribute_maps):
        return {"features": [{"attributes": attrs} for attrs in attribute_maps]}
    return _features


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def policy(sleeps):
    """Retry policy with no real sleeping and zero jitter."""
    return RetryPolicy(max_retries=2, backoff_base=2.0, sleep=sleeps.append, jitter=lambda: 0.0)


@pytest.fixture
def config(tmp_path):
    return Config(
        geocode_delay=0,
        cache_db=tmp_path / "cache.db",
        overrides_file=tmp_path / "missing_overrides.json",
    )


@pytest.fixture
def session():
    return MagicMock()
