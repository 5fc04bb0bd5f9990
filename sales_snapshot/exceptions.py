"""
Pipeline Exceptions

Precondition and worker failures abort the run; row-level problems never
raise.
"""

from pathlib import Path
from typing import Iterable, Union


class SnapshotError(Exception):
    """Base class for fatal pipeline errors"""


class MissingInputError(SnapshotError, FileNotFoundError):
    """A required input file or intermediate artifact does not exist"""

    def __init__(self, paths: Iterable[Union[str, Path]], hint: str = ""):
        self.paths = [str(p) for p in paths]
        message = f"Missing required input: {', '.join(self.paths)}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class BrandAnalyticsError(SnapshotError):
    """A per-brand analytics unit failed or timed out"""

    def __init__(self, brand_code: str, reason: str):
        self.brand_code = brand_code
        self.reason = reason
        super().__init__(f"Brand analytics failed for '{brand_code}': {reason}")


def require_files(paths: Iterable[Union[str, Path]], hint: str = "") -> None:
    """Raise MissingInputError naming every path that does not exist"""
    missing = [p for p in paths if not Path(p).exists()]
    if missing:
        raise MissingInputError(missing, hint)
