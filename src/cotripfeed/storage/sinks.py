from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from cotripfeed.ingestion.schemas import FeatureCollection


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def features_geojson_path(output_dir: Path) -> Path:
    return output_dir / "incidents.geojson"


def collection_to_geojson(collection: FeatureCollection) -> dict[str, Any]:
    return collection.model_dump(mode="json")


class FeatureSink(Protocol):
    def submit(self, collection: FeatureCollection) -> None: ...


class GeoJsonFileSink:
    """Write the collection to a GeoJSON file, replacing it atomically."""

    def __init__(self, path: Path):
        self.path = path
        self.submitted = 0

    def submit(self, collection: FeatureCollection) -> None:
        ensure_parent_dir(self.path)
        tmp = self.path.with_suffix(f"{self.path.suffix}.tmp")
        tmp.write_text(
            json.dumps(collection_to_geojson(collection), ensure_ascii=False),
            encoding="utf-8",
        )
        tmp.replace(self.path)
        self.submitted += 1
