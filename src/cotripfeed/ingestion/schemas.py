from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cotripfeed.settings import LayerSection
from cotripfeed.utils.time import parse_datetime

SingularKind = Literal["Point", "LineString", "Polygon"]


class Geometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    coordinates: Any = None


class IncidentProperties(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    type: Optional[str] = None
    status: Optional[str] = None
    direction: Optional[Union[int, float, str]] = None
    route_name: Optional[str] = Field(default=None, alias="routeName")
    severity: Optional[str] = None
    response_level: Optional[str] = Field(default=None, alias="responseLevel")
    category: Optional[str] = None
    start_marker: Optional[Union[int, float]] = Field(default=None, alias="startMarker")
    end_marker: Optional[Union[int, float]] = Field(default=None, alias="endMarker")
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")
    traveler_information_message: Optional[str] = Field(
        default=None, alias="travelerInformationMessage"
    )

    @field_validator("start_time", "last_updated", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            # Blank strings count as missing, like an absent key.
            if not value.strip():
                return None
            return parse_datetime(value, default_tz=timezone.utc)
        return value


class RawIncident(BaseModel):
    """One incident feature as returned by the CoTrip incidents endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    type: str = "Feature"
    geometry: Geometry
    properties: IncidentProperties = Field(default_factory=IncidentProperties)

    @property
    def incident_id(self) -> Optional[Union[int, str]]:
        if self.properties.id is not None:
            return self.properties.id
        return self.id


class OutputGeometry(BaseModel):
    type: SingularKind
    coordinates: Any


class FeatureProperties(BaseModel):
    callsign: Optional[str] = None
    remarks: Optional[str] = None
    # CoT type attached to every incident marker.
    type: str = "a-f-G"
    metadata: dict[str, Any] = Field(default_factory=dict)


class MappedFeature(BaseModel):
    """A mapped incident whose geometry may still be a Multi- kind."""

    id: Union[int, str]
    type: Literal["Feature"] = "Feature"
    properties: FeatureProperties
    geometry: Geometry


class OutputFeature(BaseModel):
    id: Union[int, str]
    type: Literal["Feature"] = "Feature"
    properties: FeatureProperties
    geometry: OutputGeometry


class FeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[OutputFeature] = Field(default_factory=list)


# Every key is always emitted; attributes CoTrip omitted come through as null.
class FullIncidentMetadata(BaseModel):
    incident_type: Optional[str]
    status: Optional[str]
    direction: Optional[Union[int, float, str]]
    routeName: Optional[str]
    severity: Optional[str]
    responseLevel: Optional[str]
    category: Optional[str]
    startTime: str
    startMarker: Optional[Union[int, float]] = None
    endMarker: Optional[Union[int, float]] = None
    lastUpdated: str
    travelerInformationMessage: Optional[str]


class MinimalIncidentMetadata(BaseModel):
    incident_type: Optional[str]
    status: Optional[str]
    startTime: str
    lastUpdated: str
    travelerInformationMessage: Optional[str]


def input_schema() -> dict[str, Any]:
    """JSON schema of the settings a layer must provide to run the task."""

    return LayerSection.model_json_schema()


def output_schema(profile: str = "full") -> dict[str, Any]:
    """JSON schema of the metadata attached to each output feature."""

    if profile == "minimal":
        return MinimalIncidentMetadata.model_json_schema()
    return FullIncidentMetadata.model_json_schema()
