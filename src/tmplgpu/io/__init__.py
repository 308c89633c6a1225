"""
IO helpers turning image files into float grids consumed by the matcher.
"""

from .image_loader import load_float_grid, load_grayscale, to_float_grid

__all__ = ["load_float_grid", "load_grayscale", "to_float_grid"]
