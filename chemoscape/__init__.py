# chemoscape/__init__.py
from .core.field import DiffusionField
from .core.registry import SubstanceRegistry
from .errors import ChemoscapeError, InvalidArgumentError, InvalidStateError, OutOfBoundsError

__version__ = "0.1.0"

__all__ = [
    "DiffusionField",
    "SubstanceRegistry",
    "ChemoscapeError",
    "InvalidArgumentError",
    "InvalidStateError",
    "OutOfBoundsError",
]
