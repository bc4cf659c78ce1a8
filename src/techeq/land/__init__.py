"""Regional land allocation."""

from .allocator import UNMANAGED_LAND, LandAllocator, LandLeaf

__all__ = ["LandAllocator", "LandLeaf", "UNMANAGED_LAND"]
