from __future__ import annotations

from types import SimpleNamespace
from typing import List, Optional

import numpy as np
import pytest

from tmplgpu.gpu.device import DeviceHandle
from tmplgpu.gpu.kernel import TILE_SIZE


class FakeBuffer:
    def __init__(self, label: str, size: int, usage: int) -> None:
        self.label = label
        self.size = size
        self.usage = usage
        self.data = bytearray(size)
        self.destroyed = False
        self.mapped = False
        self.map_error: Optional[Exception] = None

    def map_sync(self, mode, offset: int = 0, size: Optional[int] = None) -> None:
        assert not self.destroyed, f"{self.label} used after destroy"
        if self.map_error is not None:
            error, self.map_error = self.map_error, None
            raise error
        self.mapped = True

    def read_mapped(self, buffer_offset: int = 0, size: Optional[int] = None) -> memoryview:
        assert self.mapped, f"{self.label} read while unmapped"
        end = self.size if size is None else buffer_offset + size
        return memoryview(bytes(self.data[buffer_offset:end]))

    def unmap(self) -> None:
        self.mapped = False

    def destroy(self) -> None:
        self.destroyed = True


class FakeQueue:
    def __init__(self, device: "FakeDevice") -> None:
        self.device = device
        self.submissions = 0

    def write_buffer(self, buffer: FakeBuffer, buffer_offset: int, data) -> None:
        assert not buffer.destroyed, f"{buffer.label} written after destroy"
        raw = data.tobytes() if isinstance(data, np.ndarray) else bytes(data)
        assert buffer_offset + len(raw) <= buffer.size, f"{buffer.label} overflow"
        buffer.data[buffer_offset : buffer_offset + len(raw)] = raw

    def submit(self, command_buffers) -> None:
        self.submissions += 1
        for commands in command_buffers:
            for command in commands:
                command()


class FakeComputePass:
    def __init__(self, encoder: "FakeEncoder") -> None:
        self.encoder = encoder
        self.pipeline = None
        self.bind_group = None

    def set_pipeline(self, pipeline) -> None:
        self.pipeline = pipeline

    def set_bind_group(self, index: int, bind_group) -> None:
        self.bind_group = bind_group

    def dispatch_workgroups(self, x: int, y: int = 1, z: int = 1) -> None:
        pipeline, bind_group = self.pipeline, self.bind_group
        device = self.encoder.device
        self.encoder.commands.append(lambda: device.run_kernel(pipeline, bind_group, (x, y, z)))

    def end(self) -> None:
        pass


class FakeEncoder:
    def __init__(self, device: "FakeDevice") -> None:
        self.device = device
        self.commands: List = []

    def begin_compute_pass(self, label: str = "") -> FakeComputePass:
        return FakeComputePass(self)

    def copy_buffer_to_buffer(self, source, source_offset, destination, destination_offset, size) -> None:
        def copy() -> None:
            chunk = source.data[source_offset : source_offset + size]
            destination.data[destination_offset : destination_offset + size] = chunk

        self.commands.append(copy)

    def finish(self) -> List:
        return list(self.commands)


class FakeDevice:
    """
    Host-side stand-in for a wgpu device that runs the matching kernel with numpy.
    """

    def __init__(self) -> None:
        self.queue = FakeQueue(self)
        self.buffers: List[FakeBuffer] = []
        self.pipelines: List[SimpleNamespace] = []
        self.bind_groups = 0
        self.dispatches: List[tuple] = []
        self.skipped_invocations = 0
        self.destroyed = False

    def create_shader_module(self, label: str = "", code: str = ""):
        return SimpleNamespace(label=label, code=code)

    def create_bind_group_layout(self, entries):
        return SimpleNamespace(entries=entries)

    def create_pipeline_layout(self, bind_group_layouts):
        return SimpleNamespace(bind_group_layouts=bind_group_layouts)

    def create_compute_pipeline(self, label: str = "", layout=None, compute=None):
        pipeline = SimpleNamespace(label=label, entry_point=compute["entry_point"])
        self.pipelines.append(pipeline)
        return pipeline

    def create_buffer(self, label: str = "", size: int = 0, usage: int = 0) -> FakeBuffer:
        buffer = FakeBuffer(label, size, usage)
        self.buffers.append(buffer)
        return buffer

    def create_bind_group(self, layout=None, entries=None):
        self.bind_groups += 1
        return {entry["binding"]: entry["resource"]["buffer"] for entry in entries}

    def create_command_encoder(self, label: str = "") -> FakeEncoder:
        return FakeEncoder(self)

    def destroy(self) -> None:
        self.destroyed = True

    def live_buffers(self, label: str) -> List[FakeBuffer]:
        return [buffer for buffer in self.buffers if buffer.label == label and not buffer.destroyed]

    def run_kernel(self, pipeline, bind_group, workgroups) -> None:
        for buffer in bind_group.values():
            assert not buffer.destroyed, f"{buffer.label} bound after destroy"
        self.dispatches.append((pipeline.entry_point, workgroups))
        input_width, input_height, template_width, template_height = (
            int(value) for value in np.frombuffer(bytes(bind_group[3].data[:16]), dtype="<u4")
        )
        result_width = input_width - template_width + 1
        result_height = input_height - template_height + 1
        image = np.frombuffer(bytes(bind_group[0].data), dtype=np.float32)[: input_width * input_height]
        image = image.reshape(input_height, input_width)
        template = np.frombuffer(bytes(bind_group[1].data), dtype=np.float32)[: template_width * template_height]
        template = template.reshape(template_height, template_width)
        result = np.frombuffer(bind_group[2].data, dtype=np.float32)

        groups_x, groups_y, _ = workgroups
        for y in range(groups_y * TILE_SIZE):
            for x in range(groups_x * TILE_SIZE):
                if x >= result_width or y >= result_height:
                    self.skipped_invocations += 1
                    continue
                diff = image[y : y + template_height, x : x + template_width] - template
                if pipeline.entry_point == "main_sad":
                    score = np.abs(diff).sum(dtype=np.float32)
                else:
                    score = (diff * diff).sum(dtype=np.float32)
                result[y * result_width + x] = score


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def fake_handle(fake_device: FakeDevice) -> DeviceHandle:
    return DeviceHandle(adapter=None, device=fake_device, label="fake")


def brute_force(image: np.ndarray, template: np.ndarray, squared: bool) -> np.ndarray:
    image = np.asarray(image, dtype=np.float64)
    template = np.asarray(template, dtype=np.float64)
    height = image.shape[0] - template.shape[0] + 1
    width = image.shape[1] - template.shape[1] + 1
    result = np.zeros((height, width), dtype=np.float64)
    for y in range(height):
        for x in range(width):
            total = 0.0
            for j in range(template.shape[0]):
                for i in range(template.shape[1]):
                    d = image[y + j, x + i] - template[j, i]
                    total += d * d if squared else abs(d)
            result[y, x] = total
    return result


@pytest.fixture
def reference():
    return brute_force
