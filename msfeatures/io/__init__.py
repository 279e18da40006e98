from .config import ImportConfig, load_import_config, save_import_config
from .exceptions import IOFormatError
from .export import long_format
from .readers import read_assay, read_features

__all__ = [
    "ImportConfig",
    "load_import_config",
    "save_import_config",
    "IOFormatError",
    "read_assay",
    "read_features",
    "long_format",
]
