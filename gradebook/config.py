"""Application settings: ``GRADEBOOK_*`` environment variables plus ``config.json``."""
import json
import os
from typing import Annotated, List, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from gradebook import storage


class GradebookSettings(BaseSettings):
    data_dir: str = storage.DATA_DIR
    passing_mark: float = 10.0        # pass threshold on the max_note scale
    max_note: float = 20.0            # scale every mark is normalised onto
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    # Comma separated in the environment
    cors_origins: Annotated[List[str], NoDecode] = ["http://localhost:5173"]

    model_config = SettingsConfigDict(
        env_prefix="GRADEBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("max_note")
    @classmethod
    def _positive_scale(cls, v):
        if v <= 0:
            raise ValueError("grading_settings.max_note must be positive")
        return v


def load_project_config(data_dir: str) -> dict:
    """Read *data_dir*/config.json, or return ``{}`` if there is none."""
    path = os.path.join(data_dir, "config.json")
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_settings(data_dir: Optional[str] = None) -> GradebookSettings:
    """Build settings from the environment and the data dir's config.json.

    ``GRADEBOOK_DATA_DIR`` picks the data dir unless *data_dir* is given.
    Grading values from the ``grading_settings`` section of config.json take
    precedence over the environment.
    """
    overrides = {"data_dir": data_dir} if data_dir else {}
    data_dir = GradebookSettings(**overrides).data_dir
    gs = load_project_config(data_dir).get("grading_settings", {})
    overrides = {key: gs[key] for key in ("passing_mark", "max_note") if key in gs}
    return GradebookSettings(data_dir=data_dir, **overrides)
