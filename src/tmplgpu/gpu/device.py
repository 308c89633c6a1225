from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import wgpu

from ..errors import BackendUnavailable

logger = logging.getLogger(__name__)

POWER_PREFERENCES = ("high-performance", "low-power")


@dataclass(slots=True)
class DeviceOptions:
    """
    Adapter selection knobs passed to wgpu.
    """

    power_preference: str = "high-performance"
    force_fallback_adapter: bool = False

    def __post_init__(self) -> None:
        if self.power_preference not in POWER_PREFERENCES:
            raise ValueError(
                f"power_preference must be one of {', '.join(POWER_PREFERENCES)}, got '{self.power_preference}'"
            )

    @classmethod
    def from_env(cls) -> "DeviceOptions":
        """
        Build options from TMPLGPU_POWER_PREFERENCE and TMPLGPU_FORCE_FALLBACK.
        """
        return cls(
            power_preference=os.environ.get("TMPLGPU_POWER_PREFERENCE", "high-performance"),
            force_fallback_adapter=os.environ.get("TMPLGPU_FORCE_FALLBACK", "").lower() in ("1", "true", "yes"),
        )


@dataclass(slots=True)
class DeviceHandle:
    """
    An adapter/device pair owned by one engine instance.
    """

    adapter: Any
    device: Any
    label: str = ""
    _released: bool = field(default=False, repr=False)

    @property
    def queue(self) -> Any:
        return self.device.queue

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.device.destroy()
        logger.info("Released compute device %s", self.label or "<unnamed>")


def acquire_device(options: Optional[DeviceOptions] = None) -> DeviceHandle:
    """
    Request a compute-capable adapter and device from wgpu.
    """
    options = options or DeviceOptions.from_env()
    try:
        adapter = wgpu.gpu.request_adapter_sync(
            power_preference=options.power_preference,
            force_fallback_adapter=options.force_fallback_adapter,
        )
    except (RuntimeError, OSError, wgpu.GPUError) as exc:
        raise BackendUnavailable(f"no compute adapter available: {exc}") from exc
    if adapter is None:
        raise BackendUnavailable("no compute adapter available")

    try:
        device = adapter.request_device_sync(label="tmplgpu")
    except (RuntimeError, wgpu.GPUError) as exc:
        raise BackendUnavailable(f"adapter refused to create a device: {exc}") from exc

    info = adapter.info
    label = f"{info.get('device', '?')} ({info.get('backend_type', '?')})"
    logger.info("Acquired compute device %s", label)
    return DeviceHandle(adapter=adapter, device=device, label=label)
