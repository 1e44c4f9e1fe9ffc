from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(root: Path, value: str | Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else (root / path)


class AppSection(BaseModel):
    name: str = "cotripfeed"
    timezone: str = "America/Denver"


class PathsSection(BaseModel):
    output_dir: Path = Path("data/output")
    state_dir: Path = Path("data/state")


class CotripSection(BaseModel):
    base_url: str = "https://data.cotrip.org/"
    incidents_endpoint: str = "/api/v1/incidents"
    request_timeout_seconds: int = 30
    max_retries: int = 2
    retry_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 60.0
    jitter_seconds: float = 0.0
    respect_retry_after: bool = True
    # None keeps paging for as long as the server hands out a cursor.
    max_pages: Optional[int] = None


class LayerSection(BaseModel):
    """Per-layer settings supplied by whoever schedules the task."""

    token: str = Field(default="", description="API Token for CoTrip")
    allow_point: bool = Field(default=True, description="Allow point geometries")
    allow_linestring: bool = Field(default=True, description="Allow LineString geometries")
    allow_polygon: bool = Field(default=True, description="Allow Polygon Geometries")
    verbose: bool = Field(default=False, description="Print GeoJSON Features in logs")
    profile: Literal["full", "minimal"] = Field(
        default="full", description="Which incident attributes are exposed as metadata"
    )


class AppConfig(BaseModel):
    app: AppSection = Field(default_factory=AppSection)
    paths: PathsSection = Field(default_factory=PathsSection)
    cotrip: CotripSection = Field(default_factory=CotripSection)
    layer: LayerSection = Field(default_factory=LayerSection)

    def resolve_paths(self, root: Optional[Path] = None) -> "AppConfig":
        repo_root = project_root() if root is None else root
        updated_paths = self.paths.model_copy(
            update={
                "output_dir": _resolve_path(repo_root, self.paths.output_dir),
                "state_dir": _resolve_path(repo_root, self.paths.state_dir),
            }
        )
        return self.model_copy(update={"paths": updated_paths})

    def with_env_overrides(self) -> "AppConfig":
        """Apply secrets that live in the environment rather than in YAML."""

        token = os.getenv("COTRIP_TOKEN", "").strip()
        if not token:
            return self
        return self.model_copy(update={"layer": self.layer.model_copy(update={"token": token})})


def _maybe_load_dotenv() -> None:
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return

    load_dotenv()


def load_config(config_path: str | Path | None = None) -> AppConfig:
    _maybe_load_dotenv()

    root = project_root()
    candidate = config_path or os.getenv("COTRIPFEED_CONFIG", "configs/config.yaml")
    path = _resolve_path(root, candidate)
    if not path.exists():
        path = root / "configs/config.example.yaml"

    data: dict[str, Any] = {}
    if path.exists():
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return AppConfig.model_validate(data).with_env_overrides().resolve_paths(root)


_CONFIG: AppConfig | None = None


def get_config() -> AppConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG
