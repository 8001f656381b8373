"""ArcGIS REST point-in-polygon queries.

All three spatial sources (Austin Energy FeatureServer, Austin Water
MapServer, HIFLD LDC territories) speak the same query convention: a JSON
point geometry in WGS84, ``intersects`` relation, every attribute, no
geometry echoed back.
"""

import json
import logging
import time
from typing import List

import requests

from .errors import UnexpectedResponse, UnexpectedUpstreamShape
from .retry import RetryPolicy, get_with_retry

logger = logging.getLogger(__name__)


def point_query_params(lat: float, lng: float) -> dict:
    return {
        "f": "json",
        "geometry": json.dumps({
            "x": lng,
            "y": lat,
            "spatialReference": {"wkid": 4326},
        }),
        "geometryType": "esriGeometryPoint",
        "inSR": "4326",
        "spatialRel": "esriSpatialRelIntersects",
        "returnGeometry": "false",
        "outFields": "*",
    }


def query_point(
    session: requests.Session,
    url: str,
    lat: float,
    lng: float,
    *,
    policy: RetryPolicy,
    timeout: float,
    label: str,
) -> List[dict]:
    """
    Return the features intersecting (lat, lng), possibly empty.

    Raises:
        ProviderUnavailable: transient failures exhausted the retry budget
        UnexpectedResponse: terminal non-2xx status
        UnexpectedUpstreamShape: 2xx body that is not a feature set
        UpstreamError: terminal network failure
    """
    t0 = time.time()
    resp = get_with_retry(
        session, url,
        params=point_query_params(lat, lng),
        policy=policy,
        timeout=timeout,
        label=label,
    )
    elapsed_ms = int((time.time() - t0) * 1000)

    if not 200 <= resp.status_code < 300:
        logger.warning(f"{label}: unexpected HTTP {resp.status_code} ({elapsed_ms}ms)")
        raise UnexpectedResponse(resp.status_code)

    try:
        data = resp.json()
    except ValueError as e:
        raise UnexpectedUpstreamShape(f"Unparseable response body: {e}") from e

    if not isinstance(data, dict):
        raise UnexpectedUpstreamShape("Response body is not a JSON object")
    # ArcGIS reports query errors with HTTP 200 and an "error" object
    if "error" in data:
        err = data["error"] or {}
        detail = err.get("message", "unknown error") if isinstance(err, dict) else err
        raise UnexpectedUpstreamShape(f"ArcGIS error: {detail}")

    features = data.get("features")
    if not isinstance(features, list):
        raise UnexpectedUpstreamShape("Response has no features list")

    logger.debug(f"{label}: {len(features)} features ({elapsed_ms}ms)")
    return features


def first_attributes(features: List[dict]) -> dict:
    attrs = features[0].get("attributes") if isinstance(features[0], dict) else None
    return attrs if isinstance(attrs, dict) else {}
