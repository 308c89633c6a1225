from __future__ import annotations

from typing import Tuple

import numpy as np

from ..errors import InvalidDimensions


def as_grid(array: np.ndarray, name: str = "grid") -> np.ndarray:
    """
    Return ``array`` as a C-contiguous float32 grid of shape (height, width).
    """
    grid = np.ascontiguousarray(array, dtype=np.float32)
    if grid.ndim != 2:
        raise InvalidDimensions(f"{name} must be a single-channel 2D array, got shape {grid.shape}")
    if grid.size == 0:
        raise InvalidDimensions(f"{name} must not be empty, got shape {grid.shape}")
    return grid


def result_shape(image: np.ndarray, template: np.ndarray) -> Tuple[int, int]:
    """
    Validate that the template fits the image and return the result (height, width).
    """
    image_height, image_width = image.shape
    template_height, template_width = template.shape
    if template_width > image_width or template_height > image_height:
        raise InvalidDimensions(
            f"template ({template_width}x{template_height}) is larger than "
            f"the input ({image_width}x{image_height})"
        )
    return image_height - template_height + 1, image_width - template_width + 1
