"""Seam to an external 3D reconstruction engine.

The engine itself (distance geometry, restrained minimisation, ...) lives
outside this package.  Anything with a ``reconstruct`` method matching
:class:`ReconstructionEngine` can be plugged in; :func:`run_engine` is
the only place the core calls it, and turns every failure into an
:class:`~rig_consensus.errors.ExternalEngineError` that carries the
constraints that were attempted.
"""

from __future__ import annotations

import logging
from typing import List, Protocol, Sequence, runtime_checkable

from .constraints import Constraint
from .errors import ExternalEngineError
from .structure import Structure

logger = logging.getLogger(__name__)

__all__ = [
    "ReconstructionEngine",
    "run_engine",
]


@runtime_checkable
class ReconstructionEngine(Protocol):
    """Protocol for a constraint-driven structure builder."""

    def reconstruct(
        self,
        constraints: Sequence[Constraint],
        sequence_length: int,
    ) -> List[Structure]:
        """Return candidate structures satisfying *constraints*."""
        ...


def run_engine(
    engine: ReconstructionEngine,
    constraints: Sequence[Constraint],
    sequence_length: int,
) -> List[Structure]:
    """Call *engine* and validate what comes back.

    Raises
    ------
    ExternalEngineError
        If the engine raises, or returns no structures.
    """
    constraints = list(constraints)
    logger.info(
        f"Running {type(engine).__name__} with {len(constraints)} constraints "
        f"on {sequence_length} residues")
    try:
        structures = engine.reconstruct(constraints, sequence_length)
    except ExternalEngineError:
        raise
    except Exception as exc:
        raise ExternalEngineError(
            f"{type(engine).__name__} failed: {exc}", constraints) from exc
    structures = list(structures or [])
    if not structures:
        raise ExternalEngineError(
            f"{type(engine).__name__} returned no structures", constraints)
    logger.info(f"{type(engine).__name__} returned {len(structures)} structures")
    return structures
