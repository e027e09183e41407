# chemoscape/space/__init__.py
from .neighbor_grid import BoundingBoxProvider, NeighborGrid

__all__ = [
    "BoundingBoxProvider",
    "NeighborGrid",
]
