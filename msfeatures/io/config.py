"""Import configuration for quantitative tables.

Provides a YAML-backed dataclass describing how a search-engine table is
turned into an assay: which columns hold quantities, which column names the
features, and how fields are delimited.

Example YAML::

    assay_name: psms
    sep: ","
    feature_id_col: PSM.ID
    quant_pattern: "^Reporter.intensity"
    null_values: ["", "NA", "NaN"]
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path

import yaml

from msfeatures.core.exceptions import ConfigurationError

DEFAULT_NULL_VALUES = ["", "NA", "NaN", "nan"]


@dataclass(slots=True)
class ImportConfig:
    """How to read one quantitative table.

    Attributes
    ----------
    quant_cols : list[str] | list[int] | None
        Quantitative (sample) columns, by name or position.
    quant_pattern : str | None
        Regular expression selecting quantitative columns by name. Used when
        ``quant_cols`` is None.
    feature_id_col : str | None
        Column holding unique feature identifiers. Generated when None.
    sep : str
        Field delimiter of text tables.
    assay_name : str
        Name of the assay created in the container.
    null_values : list[str]
        Strings read as missing values.
    """

    quant_cols: list[str] | list[int] | None = None
    quant_pattern: str | None = None
    feature_id_col: str | None = None
    sep: str = "\t"
    assay_name: str = "psms"
    null_values: list[str] = field(default_factory=lambda: list(DEFAULT_NULL_VALUES))

    def __post_init__(self) -> None:
        if self.quant_cols is None and self.quant_pattern is None:
            raise ConfigurationError("Either quant_cols or quant_pattern must be given")
        if self.quant_cols is not None and self.quant_pattern is not None:
            raise ConfigurationError("quant_cols and quant_pattern are mutually exclusive")
        if len(self.sep) != 1:
            raise ConfigurationError(f"sep must be a single character, got {self.sep!r}")


def check_import_keys(data: dict, config_path: Path | None = None) -> None:
    """Raise ConfigurationError if ``data`` holds keys that are not ImportConfig fields."""
    known = set(ImportConfig.__slots__)  # type: ignore[attr-defined]
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown import configuration keys {sorted(unknown)}",
            str(config_path) if config_path else None,
        )


def _parse_import_config(data: dict, config_path: Path | None = None) -> ImportConfig:
    check_import_keys(data, config_path)
    try:
        return ImportConfig(**data)
    except ConfigurationError as e:
        raise ConfigurationError(str(e), str(config_path) if config_path else None) from e


def load_import_config(config_path: str | Path) -> ImportConfig:
    """
    Load an import configuration from a YAML file.

    Raises
    ------
    ConfigurationError
        If the file is missing, not valid YAML, or holds invalid settings.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError("Configuration file not found", str(config_path))

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}", str(config_path)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a mapping", str(config_path))
    return _parse_import_config(data, config_path)


def save_import_config(config: ImportConfig, config_path: str | Path) -> None:
    """Write an import configuration to a YAML file."""
    config_path = Path(config_path)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(asdict(config), f, default_flow_style=False, sort_keys=False)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to save configuration: {e}", str(config_path)) from e
