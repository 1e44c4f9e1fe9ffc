"""One invocation of the CoTrip incident task: fetch, normalize, submit."""

from __future__ import annotations

import json
import logging
from typing import Optional

import httpx

from cotripfeed.ingestion.cotrip_client import CotripIncidentClient
from cotripfeed.ingestion.errors import AuthError
from cotripfeed.ingestion.schemas import FeatureCollection
from cotripfeed.processing.normalize import allowed_kinds_from_flags, normalize
from cotripfeed.settings import AppConfig, get_config
from cotripfeed.storage.sinks import FeatureSink, GeoJsonFileSink, features_geojson_path

logger = logging.getLogger(__name__)


def run_once(
    config: Optional[AppConfig] = None,
    *,
    http_client: Optional[httpx.Client] = None,
    sink: Optional[FeatureSink] = None,
) -> FeatureCollection:
    """Fetch every incident, normalize it and submit the result exactly once.

    Errors propagate to the caller before the sink is touched, so a failed run submits nothing.
    """

    resolved = config or get_config()
    layer = resolved.layer
    if not layer.token.strip():
        raise AuthError("No CoTrip API token provided.")

    with CotripIncidentClient.from_config(resolved, http_client=http_client) as client:
        incidents = client.fetch_incidents()

    allowed = allowed_kinds_from_flags(
        point=layer.allow_point,
        linestring=layer.allow_linestring,
        polygon=layer.allow_polygon,
    )
    collection = normalize(
        incidents,
        allowed,
        timezone=resolved.app.timezone,
        profile=layer.profile,
    )
    logger.info(
        "Normalized %s incidents into %s features (allowed=%s)",
        len(incidents),
        len(collection.features),
        ",".join(sorted(allowed)) or "none",
    )

    if layer.verbose:
        for feature in collection.features:
            logger.debug("feature %s", json.dumps(feature.model_dump(mode="json"), ensure_ascii=False))

    target = sink or GeoJsonFileSink(features_geojson_path(resolved.paths.output_dir))
    target.submit(collection)
    return collection
