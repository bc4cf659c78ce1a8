"""Key-value configuration lookup used by the run loop."""

from typing import Dict, Optional

from .schema import RunConfiguration


class Configuration:
    """Read-only lookup of run flags and output file names."""

    def __init__(self, bools: Optional[Dict[str, bool]] = None, files: Optional[Dict[str, str]] = None):
        self._bools = dict(bools or {})
        self._files = dict(files or {})

    @classmethod
    def from_settings(cls, settings: RunConfiguration) -> 'Configuration':
        """Build the lookup from the validated ``configuration`` section."""
        return cls(bools=settings.bools, files=settings.files)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Return a boolean flag, or ``default`` when it is not set."""
        return bool(self._bools.get(key, default))

    def get_file(self, key: str, default: str = "") -> str:
        """Return a file name, or ``default`` when it is not set."""
        return self._files.get(key, default)
