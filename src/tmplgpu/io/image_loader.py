from __future__ import annotations

from pathlib import Path
from typing import Union

import cv2
import numpy as np

PathLike = Union[str, Path]


def load_grayscale(path: PathLike) -> np.ndarray:
    """
    Load an image as a single-channel array, keeping its bit depth.
    """
    image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE | cv2.IMREAD_ANYDEPTH)
    if image is None:
        raise FileNotFoundError(f"Unable to load image at {path}")
    return image


def to_float_grid(image: np.ndarray) -> np.ndarray:
    """
    Convert a grayscale image to a float32 grid with intensities in [0, 1].

    Integer images are scaled by their dtype maximum; float images are passed
    through unchanged.
    """
    if image.ndim == 3 and image.shape[2] in (3, 4):
        code = cv2.COLOR_BGR2GRAY if image.shape[2] == 3 else cv2.COLOR_BGRA2GRAY
        image = cv2.cvtColor(image, code)
    if image.ndim != 2:
        raise ValueError(f"image must be a single-channel grayscale image, got shape {image.shape}")
    if np.issubdtype(image.dtype, np.integer):
        return image.astype(np.float32) / float(np.iinfo(image.dtype).max)
    return np.ascontiguousarray(image, dtype=np.float32)


def load_float_grid(path: PathLike) -> np.ndarray:
    return to_float_grid(load_grayscale(path))
