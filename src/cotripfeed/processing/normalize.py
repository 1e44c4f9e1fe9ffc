"""Turn raw CoTrip incidents into single-geometry output features.

The pipeline always runs in the same order:

1. map each incident to a feature (label, remarks, metadata, formatted timestamps),
2. split Multi- geometries into one feature per part,
3. keep only the geometry kinds the layer allows.

Filtering after splitting lets the Point parts of a MultiPoint survive a Point-only allowlist.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any, Union
from zoneinfo import ZoneInfo

from cotripfeed.ingestion.errors import ProtocolError
from cotripfeed.ingestion.schemas import (
    FeatureCollection,
    FeatureProperties,
    MappedFeature,
    OutputFeature,
    OutputGeometry,
    RawIncident,
)
from cotripfeed.utils.time import DEFAULT_TZ, format_display

SINGULAR_KINDS = ("Point", "LineString", "Polygon")
MULTI_KINDS = {
    "MultiPoint": "Point",
    "MultiLineString": "LineString",
    "MultiPolygon": "Polygon",
}
PROFILES = ("full", "minimal")


def allowed_kinds_from_flags(point: bool = True, linestring: bool = True, polygon: bool = True) -> frozenset[str]:
    allowed = set()
    if point:
        allowed.add("Point")
    if linestring:
        allowed.add("LineString")
    if polygon:
        allowed.add("Polygon")
    return frozenset(allowed)


def build_metadata(incident: RawIncident, tz: ZoneInfo, profile: str = "full") -> dict[str, Any]:
    props = incident.properties
    start_time = format_display(props.start_time, tz)
    last_updated = format_display(props.last_updated, tz)

    if profile == "minimal":
        return {
            "incident_type": props.type,
            "status": props.status,
            "startTime": start_time,
            "lastUpdated": last_updated,
            "travelerInformationMessage": props.traveler_information_message,
        }
    if profile != "full":
        raise ValueError(f"Unknown metadata profile: {profile!r} (expected one of {PROFILES}).")

    return {
        "incident_type": props.type,
        "status": props.status,
        "direction": props.direction,
        "routeName": props.route_name,
        "severity": props.severity,
        "responseLevel": props.response_level,
        "category": props.category,
        "startMarker": props.start_marker,
        "endMarker": props.end_marker,
        "startTime": start_time,
        "lastUpdated": last_updated,
        "travelerInformationMessage": props.traveler_information_message,
    }


def map_incident(
    incident: RawIncident, tz: Union[str, ZoneInfo] = DEFAULT_TZ, profile: str = "full"
) -> MappedFeature:
    """Map one raw incident to a feature, leaving its geometry untouched."""

    incident_id = incident.incident_id
    if incident_id is None:
        raise ProtocolError("Incident has no identifier.")

    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    return MappedFeature(
        id=incident_id,
        properties=FeatureProperties(
            callsign=incident.properties.type,
            remarks=incident.properties.traveler_information_message,
            metadata=build_metadata(incident, zone, profile),
        ),
        geometry=incident.geometry,
    )


def split_multipart(feature: MappedFeature) -> list[OutputFeature]:
    """Return one output feature per geometry part.

    Singular geometries come back as a single feature with the same id. Multi- geometries become
    `<id>-0`, `<id>-1`, ... in part order, each built from its own copy of the properties.
    """

    kind = feature.geometry.type
    coordinates = feature.geometry.coordinates

    if kind in SINGULAR_KINDS:
        if coordinates is None:
            raise ProtocolError(f"Feature {feature.id}: {kind} geometry has no coordinates.")
        return [
            OutputFeature(
                id=feature.id,
                properties=feature.properties.model_copy(deep=True),
                geometry=OutputGeometry(type=kind, coordinates=copy.deepcopy(coordinates)),
            )
        ]

    singular = MULTI_KINDS.get(kind)
    if singular is None:
        raise ProtocolError(f"Feature {feature.id}: unsupported geometry type {kind!r}.")
    if not isinstance(coordinates, list):
        raise ProtocolError(f"Feature {feature.id}: {kind} coordinates must be an array.")
    if not coordinates:
        raise ProtocolError(f"Feature {feature.id}: {kind} has no parts.")

    return [
        OutputFeature(
            id=f"{feature.id}-{index}",
            properties=feature.properties.model_copy(deep=True),
            geometry=OutputGeometry(type=singular, coordinates=copy.deepcopy(part)),
        )
        for index, part in enumerate(coordinates)
    ]


def filter_by_kinds(features: Iterable[OutputFeature], allowed_kinds: Iterable[str]) -> list[OutputFeature]:
    allowed = frozenset(allowed_kinds)
    return [feature for feature in features if feature.geometry.type in allowed]


def normalize(
    incidents: Iterable[RawIncident],
    allowed_kinds: Iterable[str],
    timezone: Union[str, ZoneInfo] = DEFAULT_TZ,
    profile: str = "full",
) -> FeatureCollection:
    """Map, split and filter incidents into a FeatureCollection."""

    zone = ZoneInfo(timezone) if isinstance(timezone, str) else timezone

    mapped = [map_incident(incident, zone, profile) for incident in incidents]

    split: list[OutputFeature] = []
    for feature in mapped:
        split.extend(split_multipart(feature))

    return FeatureCollection(features=filter_by_kinds(split, allowed_kinds))
