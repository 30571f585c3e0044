from typing import Iterator, Optional, Tuple

from mosaic.models import BoundingBox, Tile


class TileStore:
    """
    Ordered, append-only collection of registered tiles.
    A tile's index is its insertion position.
    """

    def __init__(self):
        self._tiles: list[Tile] = []

    def __len__(self) -> int:
        return len(self._tiles)

    def __iter__(self) -> Iterator[Tile]:
        return iter(tuple(self._tiles))

    def __getitem__(self, index: int) -> Tile:
        return self._tiles[index]

    @property
    def is_empty(self) -> bool:
        return not self._tiles

    @property
    def next_index(self) -> int:
        return len(self._tiles)

    def snapshot(self) -> Tuple[Tile, ...]:
        """Immutable view of the tiles in insertion order."""
        return tuple(self._tiles)

    def append(self, tile: Tile) -> None:
        if tile.index != len(self._tiles):
            raise ValueError(f"Tile index {tile.index} does not match next slot {len(self._tiles)}")
        self._tiles.append(tile)

    def bounds(self) -> Optional[BoundingBox]:
        """Union of all tile bounding boxes, None when empty."""
        result: Optional[BoundingBox] = None
        for tile in self._tiles:
            result = tile.bounding_box.union(result)
        return result
