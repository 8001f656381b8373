import requests

from provider_lookup.geocoder import NominatimGeocoder
from provider_lookup.models import Location

AUSTIN_HIT = [{
    "lat": "30.2657",
    "lon": "-97.7501",
    "display_name": "301 West 2nd Street, Austin, Travis County, Texas, 78701, USA",
}]


def _geocoder(config, session, policy):
    return NominatimGeocoder(config, session=session, policy=policy)


def test_geocode_top_match(config, session, policy, make_response):
    session.get.return_value = make_response(200, AUSTIN_HIT)
    loc = _geocoder(config, session, policy).geocode("301 W 2nd St, Austin, TX 78701")

    assert loc == Location(30.2657, -97.7501, AUSTIN_HIT[0]["display_name"])
    _, kwargs = session.get.call_args
    assert kwargs["params"]["q"] == "301 W 2nd St, Austin, TX 78701"
    assert kwargs["params"]["limit"] == 1
    assert kwargs["headers"]["User-Agent"] == config.nominatim_user_agent


def test_pacing_delay_before_call(config, session, policy, sleeps, make_response):
    config.geocode_delay = 1.0
    session.get.return_value = make_response(200, AUSTIN_HIT)
    _geocoder(config, session, policy).geocode("301 W 2nd St")
    assert sleeps == [1.0]


def test_empty_result_is_terminal(config, session, policy, make_response):
    session.get.return_value = make_response(200, [])
    assert _geocoder(config, session, policy).geocode("nowhere") is None
    assert session.get.call_count == 1


def test_malformed_result_is_terminal(config, session, policy, make_response):
    session.get.return_value = make_response(200, {"unexpected": True})
    assert _geocoder(config, session, policy).geocode("x") is None

    session.get.return_value = make_response(200, [{"display_name": "no coords"}])
    assert _geocoder(config, session, policy).geocode("x") is None

    session.get.return_value = make_response(200, json_error=ValueError("not json"))
    assert _geocoder(config, session, policy).geocode("x") is None


def test_client_error_is_terminal(config, session, policy, make_response):
    session.get.return_value = make_response(403)
    assert _geocoder(config, session, policy).geocode("x") is None
    assert session.get.call_count == 1


def test_rate_limit_retries_then_succeeds(config, session, policy, sleeps, make_response):
    session.get.side_effect = [make_response(429), make_response(200, AUSTIN_HIT)]
    loc = _geocoder(config, session, policy).geocode("301 W 2nd St")
    assert loc is not None
    assert session.get.call_count == 2
    assert sleeps == [2.0]


def test_retry_exhaustion_returns_none(config, session, policy, make_response):
    session.get.side_effect = [make_response(500), requests.ReadTimeout(), make_response(502)]
    assert _geocoder(config, session, policy).geocode("x") is None
    assert session.get.call_count == 3


def test_network_error_returns_none(config, session, policy):
    session.get.side_effect = requests.ConnectionError("refused")
    assert _geocoder(config, session, policy).geocode("x") is None


def test_blank_address_skips_upstream(config, session, policy):
    assert _geocoder(config, session, policy).geocode("  ") is None
    session.get.assert_not_called()
