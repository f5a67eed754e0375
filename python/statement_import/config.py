"""
Import Settings

Loads pipeline settings and saved custom import templates from
config/import_settings.yaml.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .models import ColumnMapping

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"
SETTINGS_FILE = "import_settings.yaml"


@dataclass
class ImportSettings:
    """Settings for detection, reading and validation."""

    detection_prefix_rows: int = 50
    validation_sample_rows: int = 10
    encodings: tuple[str, ...] = ("utf-8-sig", "cp1252")
    templates: dict[str, ColumnMapping] = field(default_factory=dict)

    @classmethod
    def load(cls, config_dir: Path | str | None = None) -> "ImportSettings":
        """Load settings from the config directory.

        Args:
            config_dir: Directory holding import_settings.yaml

        Returns:
            ImportSettings, with defaults for anything the file omits
        """
        config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        settings_file = config_dir / SETTINGS_FILE

        if not settings_file.exists():
            logger.warning(f"Import settings not found: {settings_file}, using defaults")
            return cls()

        with open(settings_file) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "ImportSettings":
        defaults = cls()
        detection = data.get("detection") or {}
        validation = data.get("validation") or {}
        reader = data.get("reader") or {}

        templates = {}
        for name, mapping in (data.get("templates") or {}).items():
            try:
                templates[name] = ColumnMapping.from_dict(mapping)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid import template '{name}': {e}") from e

        settings = cls(
            detection_prefix_rows=int(detection.get("prefix_rows", defaults.detection_prefix_rows)),
            validation_sample_rows=int(validation.get("sample_rows", defaults.validation_sample_rows)),
            encodings=tuple(reader.get("encodings") or defaults.encodings),
            templates=templates,
        )

        if settings.detection_prefix_rows < 1:
            raise ValueError("detection.prefix_rows must be at least 1")

        logger.info(f"Loaded import settings with {len(templates)} custom templates")
        return settings

    def template(self, name: str) -> ColumnMapping:
        """Get a saved custom import template by name."""
        if name not in self.templates:
            raise KeyError(f"Unknown import template: {name}")
        return self.templates[name]
