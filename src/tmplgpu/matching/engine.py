from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Tuple

import numpy as np
import wgpu

from ..errors import DeviceLost, MappingFailure, NoActiveJob
from ..gpu.device import DeviceHandle, DeviceOptions, acquire_device
from ..gpu.kernel import MatchMethod
from ..gpu.resources import ResourceManager
from .dispatch import Dispatcher, Job

logger = logging.getLogger(__name__)


class MatcherState(Enum):
    IDLE = "idle"
    DISPATCHED = "dispatched"
    READY = "ready"


class TemplateMatcher:
    """
    GPU template matcher holding at most one job in flight.

    ``submit`` returns as soon as the work is queued; ``retrieve`` blocks until
    the device is done and returns the result grid. Submitting again before
    retrieving waits for the pending job and discards its result.
    """

    def __init__(
        self,
        options: Optional[DeviceOptions] = None,
        device: Optional[DeviceHandle] = None,
    ) -> None:
        self._owns_device = device is None
        self._handle = device if device is not None else acquire_device(options)
        self._resources = ResourceManager(self._handle)
        self._dispatcher = Dispatcher(self._resources)
        self._job: Optional[Job] = None
        self._state = MatcherState.IDLE
        self._last_result_shape: Tuple[int, int] = (0, 0)

    @property
    def state(self) -> MatcherState:
        return self._state

    @property
    def last_result_shape(self) -> Tuple[int, int]:
        """
        (height, width) of the most recently submitted job.
        """
        return self._last_result_shape

    def submit(
        self,
        image: np.ndarray,
        template: np.ndarray,
        method: MatchMethod | str = MatchMethod.SUM_SQUARED_DIFFERENCES,
    ) -> None:
        """
        Queue a matching pass without waiting for it.
        """
        method = MatchMethod.parse(method)
        image, template, _, _ = self._dispatcher.validate(image, template)
        if self._state is MatcherState.DISPATCHED:
            logger.warning("Discarding result of a job that was never retrieved")
            try:
                self.retrieve()
            except MappingFailure as exc:
                logger.warning("Discarded job failed during readback: %s", exc)
        self._state = MatcherState.IDLE
        self._job = self._dispatcher.dispatch(image, template, method)
        self._last_result_shape = (self._job.height, self._job.width)
        self._state = MatcherState.DISPATCHED

    def retrieve(self) -> np.ndarray:
        """
        Wait for the pending job and return its (height, width) float32 result.
        """
        if self._state is not MatcherState.DISPATCHED or self._job is None:
            raise NoActiveJob("no matching job has been submitted since the last retrieval")

        job = self._job
        self._job = None
        try:
            result = self._read_back(job)
        except wgpu.GPUInternalError as exc:
            self._state = MatcherState.IDLE
            raise DeviceLost(f"device failed while reading back {job.method.entry_point}: {exc}") from exc
        except (wgpu.GPUError, RuntimeError) as exc:
            self._state = MatcherState.IDLE
            raise MappingFailure(f"could not map result buffer: {exc}") from exc
        finally:
            self._resources.mark_idle()

        self._state = MatcherState.READY
        return result

    def match(
        self,
        image: np.ndarray,
        template: np.ndarray,
        method: MatchMethod | str = MatchMethod.SUM_SQUARED_DIFFERENCES,
    ) -> np.ndarray:
        self.submit(image, template, method)
        return self.retrieve()

    def close(self) -> None:
        """
        Release device buffers, and the device itself when this matcher acquired it.
        """
        try:
            if self._state is MatcherState.DISPATCHED:
                self.retrieve()
        except MappingFailure as exc:
            logger.warning("Pending job failed during readback on close: %s", exc)
        finally:
            self._job = None
            self._state = MatcherState.IDLE
            self._resources.release()
            if self._owns_device:
                self._handle.release()

    def __enter__(self) -> "TemplateMatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _read_back(self, job: Job) -> np.ndarray:
        staging = job.staging
        staging.map_sync(wgpu.MapMode.READ, 0, job.nbytes)
        try:
            data = staging.read_mapped(0, job.nbytes)
            result = np.frombuffer(data, dtype=np.float32).copy()
        finally:
            staging.unmap()
        logger.debug("Read back %dx%d result", job.width, job.height)
        return result.reshape(job.height, job.width)


def match_template(
    image: np.ndarray,
    template: np.ndarray,
    method: MatchMethod | str = MatchMethod.SUM_SQUARED_DIFFERENCES,
    options: Optional[DeviceOptions] = None,
) -> np.ndarray:
    """
    Slide ``template`` over ``image`` and score every anchor in one call.

    Shorthand for creating a TemplateMatcher, matching once and closing it.
    """
    with TemplateMatcher(options=options) as matcher:
        return matcher.match(image, template, method)
