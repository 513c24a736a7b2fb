"""Exception hierarchy for rig_consensus.

Construction-time invariant violations are fatal and raised at once;
statistical and geometric gaps (no voters, missing atoms) get their own
types so callers can tell "bad input" from "nothing to say here".
"""

from __future__ import annotations

from typing import Sequence, Tuple

__all__ = [
    "RigConsensusError",
    "ConstructionError",
    "EmptyInputError",
    "ConsensusStateError",
    "ExternalEngineError",
    "GeometryMismatchError",
]


class RigConsensusError(Exception):
    """Base class for all errors raised by this package."""


class ConstructionError(RigConsensusError, ValueError):
    """An object was built from inputs that break its invariants."""


class EmptyInputError(RigConsensusError, ValueError):
    """A consensus was requested from zero voters."""


class ConsensusStateError(RigConsensusError, RuntimeError):
    """Operation not allowed in the consensus interval's current state."""


class ExternalEngineError(RigConsensusError, RuntimeError):
    """The reconstruction engine failed or produced no usable structure.

    ``constraints`` holds exactly what was handed to the engine so the
    caller can retry with relaxed force constants or widened bounds.
    """

    def __init__(self, message: str, constraints: Sequence = ()):
        super().__init__(message)
        self.constraints = tuple(constraints)


class GeometryMismatchError(RigConsensusError, KeyError):
    """A structure lacks atoms needed to measure a constraint."""

    def __init__(self, residue: int, atom: str):
        super().__init__(residue, atom)
        self.residue = residue
        self.atom = atom

    @property
    def key(self) -> Tuple[int, str]:
        return (self.residue, self.atom)

    def __str__(self) -> str:
        return f"residue {self.residue} has no {self.atom} atom"
