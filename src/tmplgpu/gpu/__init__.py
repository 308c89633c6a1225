"""
WebGPU device, kernel and buffer management.
"""

from .device import DeviceHandle, DeviceOptions, acquire_device
from .kernel import TILE_SIZE, MatchMethod, workgroup_count
from .resources import ResourceManager

__all__ = [
    "DeviceHandle",
    "DeviceOptions",
    "MatchMethod",
    "ResourceManager",
    "TILE_SIZE",
    "acquire_device",
    "workgroup_count",
]
