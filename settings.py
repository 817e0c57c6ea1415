from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    project_dir: Path = Path("./data")
    language: Literal["en", "id"] = "en"
    fetch_timeout_s: float = 15.0
    max_workers: int = 8
    report_title: str | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="IRC_",
        env_file_encoding="utf-8",
    )

    @field_validator("fetch_timeout_s")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("fetch_timeout_s must be greater than 0")
        return v

    @field_validator("max_workers")
    @classmethod
    def workers_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_workers must be at least 1")
        return v

    @property
    def input_dir(self) -> Path:
        return self.project_dir / "input"

    @property
    def photos_dir(self) -> Path:
        return self.project_dir / "photos"

    @property
    def template_dir(self) -> Path:
        return self.project_dir / "template"

    @property
    def output_dir(self) -> Path:
        return self.project_dir / "output"

    @property
    def design_yaml_path(self) -> Path:
        return self.template_dir / "design.yaml"
