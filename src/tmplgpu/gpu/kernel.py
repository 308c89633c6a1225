"""
WGSL compute kernel and the host-side constants that must agree with it.

Binding layout shared by both entry points:

    0  input grid, row-major f32       read-only storage
    1  template grid, row-major f32    read-only storage
    2  result grid, row-major f32      read-write storage
    3  {input_width, input_height, template_width, template_height} u32 uniform

One invocation scores one anchor. The dispatch is rounded up to whole
16x16 workgroups, so invocations past the result edge return before touching
any buffer.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple, Union

import numpy as np

TILE_SIZE = 16
PARAMS_NBYTES = 16

SHADER_SOURCE = """
struct Params {
    input_width: u32,
    input_height: u32,
    template_width: u32,
    template_height: u32,
};

@group(0) @binding(0) var<storage, read> input_data: array<f32>;
@group(0) @binding(1) var<storage, read> template_data: array<f32>;
@group(0) @binding(2) var<storage, read_write> result_data: array<f32>;
@group(0) @binding(3) var<uniform> params: Params;

fn result_width() -> u32 {
    return params.input_width - params.template_width + 1u;
}

fn result_height() -> u32 {
    return params.input_height - params.template_height + 1u;
}

fn in_range(id: vec3<u32>) -> bool {
    return id.x < result_width() && id.y < result_height();
}

@compute @workgroup_size(16, 16, 1)
fn main_sad(@builtin(global_invocation_id) id: vec3<u32>) {
    if (!in_range(id)) {
        return;
    }
    var total: f32 = 0.0;
    for (var j: u32 = 0u; j < params.template_height; j = j + 1u) {
        for (var i: u32 = 0u; i < params.template_width; i = i + 1u) {
            let a = input_data[(id.y + j) * params.input_width + id.x + i];
            let b = template_data[j * params.template_width + i];
            total = total + abs(a - b);
        }
    }
    result_data[id.y * result_width() + id.x] = total;
}

@compute @workgroup_size(16, 16, 1)
fn main_ssd(@builtin(global_invocation_id) id: vec3<u32>) {
    if (!in_range(id)) {
        return;
    }
    var total: f32 = 0.0;
    for (var j: u32 = 0u; j < params.template_height; j = j + 1u) {
        for (var i: u32 = 0u; i < params.template_width; i = i + 1u) {
            let d = input_data[(id.y + j) * params.input_width + id.x + i]
                - template_data[j * params.template_width + i];
            total = total + d * d;
        }
    }
    result_data[id.y * result_width() + id.x] = total;
}
"""


class MatchMethod(Enum):
    """
    Dissimilarity metric; each member selects one kernel entry point.
    """

    SUM_ABSOLUTE_DIFFERENCES = "main_sad"
    SUM_SQUARED_DIFFERENCES = "main_ssd"

    @property
    def entry_point(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union["MatchMethod", str]) -> "MatchMethod":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        if key in _ALIASES:
            return _ALIASES[key]
        raise ValueError(f"Unknown match method '{value}'. Available: {', '.join(sorted(_ALIASES))}")


_ALIASES = {
    "sad": MatchMethod.SUM_ABSOLUTE_DIFFERENCES,
    "sum_absolute_differences": MatchMethod.SUM_ABSOLUTE_DIFFERENCES,
    "ssd": MatchMethod.SUM_SQUARED_DIFFERENCES,
    "sum_squared_differences": MatchMethod.SUM_SQUARED_DIFFERENCES,
}


def workgroup_count(width: int, height: int) -> Tuple[int, int]:
    """
    Number of 16x16 workgroups covering a width x height result.
    """
    return (width + TILE_SIZE - 1) // TILE_SIZE, (height + TILE_SIZE - 1) // TILE_SIZE


def pack_params(input_width: int, input_height: int, template_width: int, template_height: int) -> bytes:
    return np.array(
        [input_width, input_height, template_width, template_height],
        dtype="<u4",
    ).tobytes()
