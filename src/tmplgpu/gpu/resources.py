"""
Device-resident buffers and pipelines for the matching kernel.

Buffers only ever grow. A buffer replaced while a job is still reading from
it is parked until the job completes and destroyed afterwards.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import wgpu

from .device import DeviceHandle
from .kernel import PARAMS_NBYTES, SHADER_SOURCE, MatchMethod, pack_params

logger = logging.getLogger(__name__)

BUFFER_ALIGNMENT = 256

_USAGES = {
    "input": wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_DST,
    "template": wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_DST,
    "result": wgpu.BufferUsage.STORAGE | wgpu.BufferUsage.COPY_SRC,
    "staging": wgpu.BufferUsage.COPY_DST | wgpu.BufferUsage.MAP_READ,
}

_LAYOUT_ENTRIES = [
    {"binding": 0, "visibility": wgpu.ShaderStage.COMPUTE, "buffer": {"type": "read-only-storage"}},
    {"binding": 1, "visibility": wgpu.ShaderStage.COMPUTE, "buffer": {"type": "read-only-storage"}},
    {"binding": 2, "visibility": wgpu.ShaderStage.COMPUTE, "buffer": {"type": "storage"}},
    {"binding": 3, "visibility": wgpu.ShaderStage.COMPUTE, "buffer": {"type": "uniform"}},
]


def _aligned(nbytes: int) -> int:
    nbytes = max(int(nbytes), 4)
    return (nbytes + BUFFER_ALIGNMENT - 1) // BUFFER_ALIGNMENT * BUFFER_ALIGNMENT


class ResourceManager:
    """
    Owns every device object used by a matcher instance.
    """

    def __init__(self, handle: DeviceHandle) -> None:
        self.handle = handle
        device = handle.device
        self._shader = device.create_shader_module(label="tmplgpu_matching", code=SHADER_SOURCE)
        self._bind_group_layout = device.create_bind_group_layout(entries=_LAYOUT_ENTRIES)
        self._pipeline_layout = device.create_pipeline_layout(bind_group_layouts=[self._bind_group_layout])
        self._pipelines: Dict[MatchMethod, Any] = {}
        self._params = device.create_buffer(
            label="params",
            size=PARAMS_NBYTES,
            usage=wgpu.BufferUsage.UNIFORM | wgpu.BufferUsage.COPY_DST,
        )
        self._buffers: Dict[str, Any] = {}
        self._bind_group: Optional[Any] = None
        self._retired: List[Any] = []
        self._in_flight = False
        self._released = False

    @property
    def device(self) -> Any:
        return self.handle.device

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def buffer(self, name: str) -> Any:
        return self._buffers[name]

    def capacity(self, name: str) -> int:
        buffer = self._buffers.get(name)
        return 0 if buffer is None else int(buffer.size)

    def pipeline(self, method: MatchMethod) -> Any:
        """
        Return the compute pipeline for ``method``, compiling it on first use.
        """
        pipeline = self._pipelines.get(method)
        if pipeline is None:
            pipeline = self.device.create_compute_pipeline(
                label=method.entry_point,
                layout=self._pipeline_layout,
                compute={"module": self._shader, "entry_point": method.entry_point},
            )
            self._pipelines[method] = pipeline
        return pipeline

    def bind_group(self) -> Any:
        if self._bind_group is None:
            buffers = [self._buffers["input"], self._buffers["template"], self._buffers["result"], self._params]
            self._bind_group = self.device.create_bind_group(
                layout=self._bind_group_layout,
                entries=[
                    {"binding": index, "resource": {"buffer": buffer, "offset": 0, "size": buffer.size}}
                    for index, buffer in enumerate(buffers)
                ],
            )
        return self._bind_group

    def ensure_buffers(self, input_bytes: int, template_bytes: int, result_bytes: int) -> bool:
        """
        Grow the device buffers to hold at least the requested sizes.

        Returns True when any buffer was reallocated.
        """
        if self._released:
            raise RuntimeError("resource manager has been released")
        requested = {
            "input": input_bytes,
            "template": template_bytes,
            "result": result_bytes,
            "staging": result_bytes,
        }
        changed = False
        for name, nbytes in requested.items():
            if self.capacity(name) >= nbytes:
                continue
            size = _aligned(nbytes)
            old = self._buffers.get(name)
            self._buffers[name] = self.device.create_buffer(label=name, size=size, usage=_USAGES[name])
            logger.debug("Grew %s buffer to %d bytes", name, size)
            if old is not None:
                self._retire(old)
            changed = True
        if changed:
            self._bind_group = None
        return changed

    def upload(self, image: np.ndarray, template: np.ndarray) -> None:
        """
        Write both grids and the parameter record into device memory.
        """
        queue = self.handle.queue
        queue.write_buffer(self._buffers["input"], 0, image)
        queue.write_buffer(self._buffers["template"], 0, template)
        image_height, image_width = image.shape
        template_height, template_width = template.shape
        queue.write_buffer(self._params, 0, pack_params(image_width, image_height, template_width, template_height))

    def mark_in_flight(self) -> None:
        self._in_flight = True

    def mark_idle(self) -> None:
        self._in_flight = False
        while self._retired:
            self._retired.pop().destroy()

    def release(self) -> None:
        """
        Destroy every owned buffer. The manager cannot be used afterwards.
        """
        if self._released:
            return
        self.mark_idle()
        for buffer in self._buffers.values():
            buffer.destroy()
        self._params.destroy()
        self._buffers.clear()
        self._pipelines.clear()
        self._bind_group = None
        self._released = True

    def _retire(self, buffer: Any) -> None:
        if self._in_flight:
            self._retired.append(buffer)
        else:
            buffer.destroy()
