"""
epimatch/matching/image_grid.py

Grid based lookup of image-2 keypoints near a query point.

Each ImageGrid buckets features into square cells. A point close to a cell
border of one grid is interior to a cell of a grid shifted by half a cell,
so SpatialIndex queries several staggered grids and returns the union.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, List, Sequence, Set, Tuple

import numpy as np

Cell = Tuple[int, int]


class ImageGrid:
    """Single grid with square cells of side cell_size, shifted by (offset_x, offset_y)."""

    def __init__(self, cell_size: float, offset_x: float, offset_y: float):
        if not cell_size > 0:
            raise ValueError(f"cell_size must be > 0, got {cell_size}")
        self.cell_size = float(cell_size)
        self.offset_x = float(offset_x)
        self.offset_y = float(offset_y)
        self._cells: Dict[Cell, List[int]] = defaultdict(list)

    def __len__(self) -> int:
        return sum(len(v) for v in self._cells.values())

    @property
    def num_cells(self) -> int:
        return len(self._cells)

    def _u(self, x: float, y: float) -> Tuple[float, float]:
        return (x - self.offset_x) / self.cell_size, (y - self.offset_y) / self.cell_size

    def add_feature(self, feature_index: int, x: float, y: float) -> None:
        ux, uy = self._u(x, y)
        self._cells[(math.floor(ux), math.floor(uy))].append(int(feature_index))

    def get_closest_cell_center(self, x: float, y: float) -> Cell:
        # Centre of cell k is at k + 0.5; a point on a border is equidistant
        # from two centres and goes to the lower one.
        ux, uy = self._u(x, y)
        return math.ceil(ux) - 1, math.ceil(uy) - 1

    def get_features_in_cell(self, cell: Cell) -> List[int]:
        # .get keeps the defaultdict from growing on misses
        return list(self._cells.get((int(cell[0]), int(cell[1])), ()))

    def cell_center_xy(self, cell: Cell) -> Tuple[float, float]:
        return (
            self.offset_x + (cell[0] + 0.5) * self.cell_size,
            self.offset_y + (cell[1] + 0.5) * self.cell_size,
        )


def staggered_offsets(cell_size: float, num_grids: int) -> List[Tuple[float, float]]:
    half = 0.5 * cell_size
    if num_grids == 1:
        return [(0.0, 0.0)]
    if num_grids == 2:
        return [(0.0, 0.0), (half, half)]
    if num_grids == 4:
        return [(0.0, 0.0), (half, 0.0), (0.0, half), (half, half)]
    raise ValueError(f"num_grids must be 1, 2 or 4, got {num_grids}")


class SpatialIndex:
    """
    Several staggered ImageGrids behaving as one index.

    Usage:
        index = SpatialIndex(cell_size=4.0, origin=(0.0, 0.0), num_grids=4)
        index.add_features(range(len(xy)), xy)
        near = index.features_near(120.5, 33.0)
    """

    def __init__(self, cell_size: float, origin: Sequence[float] = (0.0, 0.0), num_grids: int = 4):
        ox, oy = float(origin[0]), float(origin[1])
        self.cell_size = float(cell_size)
        self.grids: List[ImageGrid] = [
            ImageGrid(cell_size, ox - dx, oy - dy)
            for dx, dy in staggered_offsets(cell_size, num_grids)
        ]

    def __len__(self) -> int:
        return len(self.grids[0]) if self.grids else 0

    def add_feature(self, feature_index: int, x: float, y: float) -> None:
        for grid in self.grids:
            grid.add_feature(feature_index, x, y)

    def add_features(self, indices, xy: np.ndarray) -> None:
        xy = np.asarray(xy, dtype=np.float64).reshape(-1, 2)
        for idx, (x, y) in zip(indices, xy):
            self.add_feature(int(idx), float(x), float(y))

    def features_near(self, x: float, y: float) -> Set[int]:
        """Union over all grids of the features in the closest cell."""
        out: Set[int] = set()
        for grid in self.grids:
            out.update(grid.get_features_in_cell(grid.get_closest_cell_center(x, y)))
        return out
