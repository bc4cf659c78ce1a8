"""Debug serialization and result export."""

from .debug_xml import XMLDebugWriter

__all__ = ["XMLDebugWriter"]
