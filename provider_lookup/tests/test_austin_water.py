import requests

from provider_lookup.austin_water import AustinWaterLookup, district_name
from provider_lookup.models import Confidence, ProviderRequest

REQUEST = ProviderRequest(lat=30.2657, lng=-97.7501)


def _lookup(config, session, policy):
    return AustinWaterLookup(config, session=session, policy=policy)


def _layer(call):
    return call.args[0].rsplit("/", 2)[-2]


def test_service_area_hit_is_confirmed(config, session, policy, make_response, features):
    session.get.return_value = make_response(200, features({"OBJECTID": 7}))
    result = _lookup(config, session, policy).lookup(REQUEST)

    assert result.provider == "Austin Water"
    assert result.confidence is Confidence.CONFIRMED
    assert result.meta == {"OBJECTID": 7}
    assert session.get.call_count == 1
    assert _layer(session.get.call_args) == "3"


def test_mud_fallback_is_likely(config, session, policy, make_response, features):
    session.get.side_effect = [
        make_response(200, {"features": []}),
        make_response(200, features({"NAME": "Travis County MUD No. 4"})),
    ]
    result = _lookup(config, session, policy).lookup(REQUEST)

    assert result.provider == "MUD: Travis County MUD No. 4"
    assert result.confidence is Confidence.LIKELY
    assert [_layer(c) for c in session.get.call_args_list] == ["3", "0"]
    # Link not known yet, but the action is still listed
    assert len(result.next_actions) == 1
    assert result.next_actions[0].url is None


def test_district_name_field_preference():
    assert district_name({"UTILITY": "Wells Branch MUD", "COMPANY": "Other"}) == "Wells Branch MUD"
    assert district_name({"Utility_Name": "North Austin MUD"}) == "North Austin MUD"
    assert district_name({"PROVIDER": "Anderson Mill MUD"}) == "Anderson Mill MUD"
    assert district_name({"NAME": "  ", "OBJECTID": 2}) == "Unknown district"


def test_both_layers_miss(config, session, policy, make_response):
    session.get.return_value = make_response(200, {"features": []})
    result = _lookup(config, session, policy).lookup(REQUEST)

    assert result.provider is None
    assert result.confidence is Confidence.UNKNOWN
    assert result.next_actions == []
    assert result.meta == {}


def test_service_area_outage_still_tries_mud_layer(config, session, policy, make_response, features):
    session.get.side_effect = [
        make_response(503), make_response(503), make_response(503),
        make_response(200, features({"NAME": "Lost Creek MUD"})),
    ]
    result = _lookup(config, session, policy).lookup(REQUEST)

    assert result.provider == "MUD: Lost Creek MUD"
    assert session.get.call_count == 4


def test_both_layers_down(config, session, policy):
    session.get.side_effect = requests.ReadTimeout("read timed out")
    result = _lookup(config, session, policy).lookup(REQUEST)

    assert result.provider is None
    assert "layer 3" in result.meta["error"]
    assert "layer 0" in result.meta["error"]
    assert session.get.call_count == 6
