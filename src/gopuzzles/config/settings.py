"""Configuration model for GoPuzzles."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


def _default_data_dir() -> Path:
    return Path.home() / ".gopuzzles"


class Settings(BaseModel):
    data_dir: Path = Field(default_factory=_default_data_dir)
    db_name: str = "gopuzzles.db"
    admin_key: Optional[str] = Field(default=None)
    recommendation_limit: int = Field(default=10, ge=1)
    activity_limit: int = Field(default=20, ge=1)
    admin_activity_limit: int = Field(default=50, ge=1)
    retention_days: int = Field(default=30, ge=0)
    log_level: str = "INFO"

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    def get_admin_key(self) -> Optional[str]:
        return self.admin_key or os.environ.get("GOPUZZLES_ADMIN_KEY")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        config_path = config_path or (_default_data_dir() / "config.yaml")
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()

    def save(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.data_dir / "config.yaml"
        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)
