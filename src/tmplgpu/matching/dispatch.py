from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np

from ..gpu.kernel import MatchMethod, workgroup_count
from ..gpu.resources import ResourceManager
from .grid import as_grid, result_shape

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Job:
    """
    A submitted matching pass whose result waits in ``staging``.
    """

    method: MatchMethod
    width: int
    height: int
    staging: Any

    @property
    def nbytes(self) -> int:
        return self.width * self.height * np.dtype(np.float32).itemsize


class Dispatcher:
    """
    Turns an (input, template, method) triple into a submitted device job.
    """

    def __init__(self, resources: ResourceManager) -> None:
        self.resources = resources

    def validate(self, image: np.ndarray, template: np.ndarray) -> Tuple[np.ndarray, np.ndarray, int, int]:
        image = as_grid(image, "input")
        template = as_grid(template, "template")
        height, width = result_shape(image, template)
        return image, template, width, height

    def dispatch(self, image: np.ndarray, template: np.ndarray, method: MatchMethod | str) -> Job:
        """
        Upload both grids, encode the kernel and the result copy, and submit.

        Does not wait for the device.
        """
        method = MatchMethod.parse(method)
        image, template, width, height = self.validate(image, template)
        result_bytes = width * height * image.itemsize

        resources = self.resources
        resources.ensure_buffers(image.nbytes, template.nbytes, result_bytes)
        resources.upload(image, template)

        groups_x, groups_y = workgroup_count(width, height)
        device = resources.device
        encoder = device.create_command_encoder(label="tmplgpu_encoder")
        compute_pass = encoder.begin_compute_pass(label="tmplgpu_pass")
        compute_pass.set_pipeline(resources.pipeline(method))
        compute_pass.set_bind_group(0, resources.bind_group())
        compute_pass.dispatch_workgroups(groups_x, groups_y, 1)
        compute_pass.end()

        staging = resources.buffer("staging")
        encoder.copy_buffer_to_buffer(resources.buffer("result"), 0, staging, 0, result_bytes)
        device.queue.submit([encoder.finish()])
        resources.mark_in_flight()

        logger.debug(
            "Dispatched %s: result %dx%d, %dx%d workgroups",
            method.entry_point,
            width,
            height,
            groups_x,
            groups_y,
        )
        return Job(method=method, width=width, height=height, staging=staging)
