"""Configuration management for Snitch."""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import UnknownTemplate

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python < 3.11

logger = logging.getLogger(__name__)

CONFIG_DIR = ".snitch"
CONFIG_FILE = "config.toml"


def _load_project_config_data(project_root: Path) -> Optional[dict]:
    """Load config data from .snitch/config.toml if it exists."""
    config_file = project_root / CONFIG_DIR / CONFIG_FILE

    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        # If config file is malformed, ignore it
        logger.warning(f"Ignoring malformed config {config_file}: {e}")
        return None


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


class SubTemplate(BaseModel):
    """One capture destination: a sub key filed under a heading."""

    key: str = Field(min_length=1, description="Sub key appended to the key prefix")
    heading: str = Field(min_length=1, description="Tracking document section heading")


class CaptureTemplate(BaseModel):
    """A generated capture entry point."""

    key: str
    heading: str
    description: str

    model_config = {"frozen": True}


def _default_templates() -> list[SubTemplate]:
    return [
        SubTemplate(key="t", heading="Tasks"),
        SubTemplate(key="i", heading="Issues"),
        SubTemplate(key="n", heading="Notes"),
    ]


class SnitchConfig(BaseModel):
    """Configuration for captures, the tracking document and the ledger."""

    tracking_file: str = Field(default="TRACKER.md", min_length=1)
    key_prefix: str = Field(default="s", min_length=1, max_length=1)
    templates: list[SubTemplate] = Field(default_factory=_default_templates)
    submodule_independent: bool = Field(default=False)
    ledger_file: Optional[str] = Field(default=f"{CONFIG_DIR}/ledger.jsonl")

    model_config = {"frozen": False}

    @field_validator("ledger_file")
    @classmethod
    def _empty_ledger_disables(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _unique_template_keys(self) -> "SnitchConfig":
        keys = [t.key for t in self.templates]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ValueError(f"Duplicate template keys: {', '.join(duplicates)}")
        return self

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> "SnitchConfig":
        """Load configuration with the following precedence:

        1. Environment variables (SNITCH_*)
        2. Project-local .snitch/config.toml
        3. Defaults
        """
        data: dict = {}
        if project_root is not None:
            data = dict(_load_project_config_data(project_root) or {})

        if "SNITCH_TRACKING_FILE" in os.environ:
            data["tracking_file"] = os.environ["SNITCH_TRACKING_FILE"]
        if "SNITCH_KEY_PREFIX" in os.environ:
            data["key_prefix"] = os.environ["SNITCH_KEY_PREFIX"]
        if "SNITCH_LEDGER_FILE" in os.environ:
            data["ledger_file"] = os.environ["SNITCH_LEDGER_FILE"]
        data["submodule_independent"] = _env_bool(
            "SNITCH_SUBMODULE_INDEPENDENT", bool(data.get("submodule_independent", False))
        )

        return cls(**data)

    def capture_templates(self) -> list[CaptureTemplate]:
        """Capture entry points, one per sub-template, namespaced by the key prefix."""
        return [
            CaptureTemplate(
                key=f"{self.key_prefix}{sub.key}",
                heading=sub.heading,
                description=f"Project {sub.heading.lower()}",
            )
            for sub in self.templates
        ]

    def template(self, key: str) -> CaptureTemplate:
        """Look up a capture template by its full key."""
        for template in self.capture_templates():
            if template.key == key:
                return template
        raise UnknownTemplate(key)

    def in_family(self, key: Optional[str]) -> bool:
        """Whether a template key belongs to the capture flows generated here."""
        return bool(key) and key.startswith(self.key_prefix)

    def tracking_path(self, project_root: Path) -> Path:
        return project_root / self.tracking_file

    def ledger_path(self, project_root: Path) -> Optional[Path]:
        if not self.ledger_file:
            return None
        return project_root / self.ledger_file

    def to_toml_str(self) -> str:
        """Generate TOML configuration string."""
        lines = [
            "# Snitch configuration",
            "",
            f'tracking_file = "{self.tracking_file}"',
            f'key_prefix = "{self.key_prefix}"',
            f"submodule_independent = {str(self.submodule_independent).lower()}",
            f'ledger_file = "{self.ledger_file or ""}"',
        ]
        for sub in self.templates:
            lines += ["", "[[templates]]", f'key = "{sub.key}"', f'heading = "{sub.heading}"']
        return "\n".join(lines) + "\n"
