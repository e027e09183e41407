# chemoscape/errors.py
from __future__ import annotations


class ChemoscapeError(Exception):
    """Base class for errors raised by chemoscape."""


class InvalidStateError(ChemoscapeError, RuntimeError):
    """Operation called out of lifecycle order (e.g. a second initialize)."""


class InvalidArgumentError(ChemoscapeError, ValueError):
    """Malformed bounds, spacing, amounts or time steps."""


class OutOfBoundsError(ChemoscapeError, IndexError):
    """Cell coordinate or real-space position outside the current domain."""
