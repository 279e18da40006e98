from .log import log_transform
from .normalize import NORMALIZATION_METHODS, normalize

__all__ = [
    "log_transform",
    "normalize",
    "NORMALIZATION_METHODS",
]
