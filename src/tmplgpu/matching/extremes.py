from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .grid import as_grid

Location = Tuple[int, int]


@dataclass(slots=True)
class Extremes:
    """
    Smallest and largest scores of a result grid and every (x, y) attaining them.
    """

    min_value: float
    max_value: float
    min_locations: List[Location]
    max_locations: List[Location]

    @property
    def min_location(self) -> Location:
        return self.min_locations[0]

    @property
    def max_location(self) -> Location:
        return self.max_locations[0]


def _locations(mask: np.ndarray) -> List[Location]:
    rows, cols = np.nonzero(mask)
    return [(int(x), int(y)) for y, x in zip(rows, cols)]


def find_extremes(result: np.ndarray) -> Extremes:
    """
    Find the minimum and maximum of ``result`` together with all their locations.

    Ties are all reported, in row-major order. NaN cells never compare as an
    extreme; a grid holding nothing but NaN is rejected.
    """
    grid = as_grid(result, "result")
    comparable = ~np.isnan(grid)
    if not comparable.any():
        raise ValueError("result grid contains only NaN values")
    min_value = grid[comparable].min()
    max_value = grid[comparable].max()
    return Extremes(
        min_value=float(min_value),
        max_value=float(max_value),
        min_locations=_locations(grid == min_value),
        max_locations=_locations(grid == max_value),
    )
