"""I/O module exception hierarchy."""

from msfeatures.core.exceptions import MsFeaturesError


class IOFormatError(MsFeaturesError):
    """Table content that cannot be turned into an assay."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        if path:
            message = f"{message}: {path}"
        super().__init__(message)
