"""Consensus intervals — vote-weighted ranges with voter provenance.

Each structural model ("voter") contributes one value for a quantity, such
as a phi angle, a psi angle or a Cα–Cα distance.  A :class:`ConsensusInterval`
keeps every contribution (who voted and with which value, in vote order)
and, once finalised, a plain integer :class:`Interval` summarising them.
A :class:`ConsensusSquare` pairs two intervals over the same voters,
e.g. a region of the Ramachandran plot.

Lifecycle
---------
``Empty -> Accumulating -> Finalized``

* :meth:`ConsensusInterval.add_voter` appends; allowed until finalised.
* :meth:`ConsensusInterval.recenter_interval` finalises.  The bounds are
  a pure function of the recorded values, the period and the margin, so
  re-running it on a reloaded interval gives identical bounds.

Wrap rule
---------
With ``span = max(values) - min(values)``:

* ``span <= period`` — normal case, ``[ceil(min - m), ceil(max + m)]``
* ``span > period``  — the cluster straddles the periodic boundary and
  the tight arc is the complement, ``[ceil(max - m), ceil(min + m)]``

Distances are routed through the normal case by passing
``period=math.inf``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .config import DEFAULT_PARAMETERS
from .errors import ConsensusStateError, ConstructionError, EmptyInputError

__all__ = [
    "Interval",
    "ConsensusState",
    "ConsensusInterval",
    "ConsensusSquare",
    "DEFAULT_MARGIN",
    "ANGLE_PERIOD",
    "angle_distance",
    "to_first_cycle",
    "unwrap_angle",
]

DEFAULT_MARGIN: float = DEFAULT_PARAMETERS["consensus.margin"]
ANGLE_PERIOD: float = DEFAULT_PARAMETERS["consensus.angle_period"]


# ═══════════════════════════════════════════════════════════════════
# Angle helpers
# ═══════════════════════════════════════════════════════════════════

def to_first_cycle(angle: float) -> float:
    """Map any angle (any sign, any cycle) into ``[0, 360)``."""
    return ((angle % 360.0) + 360.0) % 360.0


def unwrap_angle(angle: float) -> float:
    """Map an angle in ``[0, 360)`` back to ``(-180, 180]``."""
    if angle > 180.0:
        return angle - 360.0
    return angle


def angle_distance(a1: float, a2: float) -> float:
    """Shorter arc between two angles, in ``[0, 180]``.

    >>> angle_distance(350, 10)
    20.0
    """
    return min(to_first_cycle(a2 - a1), to_first_cycle(a1 - a2))


# ═══════════════════════════════════════════════════════════════════
# Interval
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True, order=True)
class Interval:
    """Closed integer interval ``[beg, end]`` ordered by ``(beg, end)``.

    ``beg > end`` only occurs for a wrapped angular interval, which
    covers ``[beg, 180] ∪ [-180, end]``.
    """

    beg: int
    end: int

    def compare(self, other: "Interval") -> int:
        """-1, 0 or 1, lexicographic on ``(beg, end)``."""
        a = (self.beg, self.end)
        b = (other.beg, other.end)
        return (a > b) - (a < b)

    def contains(self, point: float) -> bool:
        return self.beg <= point <= self.end

    @property
    def is_wrapped(self) -> bool:
        return self.beg > self.end

    @property
    def length(self) -> int:
        return self.end - self.beg

    def contains_angle(self, angle: float) -> bool:
        """Membership test for an angle, honouring wrapped intervals."""
        a = unwrap_angle(to_first_cycle(angle))
        if not self.is_wrapped:
            # an interval reaching past ±180 also covers the wrapped image
            return (self.contains(a) or self.contains(a + 360.0)
                    or self.contains(a - 360.0))
        return a >= self.beg or a <= self.end


# ═══════════════════════════════════════════════════════════════════
# ConsensusInterval
# ═══════════════════════════════════════════════════════════════════

class ConsensusState(Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"


class ConsensusInterval:
    """Voter-tracking interval over one quantity.

    ``voters``, ``voter_indices`` and ``values`` are parallel and kept in
    vote order.  Equality ignores that order: two intervals are equal
    when they have the same vote count, the same set of voters and the
    same set of values.  Finalised bounds do not take part in equality.
    """

    __hash__ = None  # mutable while accumulating

    def __init__(self):
        self._voters: List[str] = []
        self._voter_indices: List[int] = []
        self._values: List[float] = []
        self._interval: Optional[Interval] = None
        self._finalized_with: Optional[Tuple[float, float]] = None

    @classmethod
    def from_votes(
        cls,
        voters: Sequence[str],
        values: Sequence[float],
        voter_indices: Optional[Sequence[int]] = None,
    ) -> "ConsensusInterval":
        """Build an accumulating interval from parallel sequences."""
        if voter_indices is None:
            voter_indices = range(len(voters))
        if not (len(voters) == len(values) == len(voter_indices)):
            raise ConstructionError(
                f"Parallel voter sequences differ in length: "
                f"{len(voters)} voters, {len(values)} values, "
                f"{len(voter_indices)} indices")
        ci = cls()
        for idx, name, value in zip(voter_indices, voters, values):
            ci.add_voter(idx, name, value)
        return ci

    # ── accumulation ────────────────────────────────────────────

    def add_voter(self, voter_index: int, voter_name: str, value: float):
        """Record one model's value.  Not allowed after finalisation."""
        if self._interval is not None:
            raise ConsensusStateError(
                f"Cannot add voter {voter_name!r}: interval already "
                f"finalised as [{self._interval.beg}, {self._interval.end}]")
        value = float(value)
        if math.isnan(value):
            raise ConstructionError(
                f"Voter {voter_name!r} contributed NaN")
        self._voters.append(voter_name)
        self._voter_indices.append(int(voter_index))
        self._values.append(value)

    # ── read ────────────────────────────────────────────────────

    @property
    def vote_count(self) -> int:
        return len(self._voters)

    @property
    def voters(self) -> Tuple[str, ...]:
        return tuple(self._voters)

    @property
    def voter_indices(self) -> Tuple[int, ...]:
        return tuple(self._voter_indices)

    @property
    def values(self) -> Tuple[float, ...]:
        return tuple(self._values)

    @property
    def state(self) -> ConsensusState:
        if self._interval is not None:
            return ConsensusState.FINALIZED
        if self._voters:
            return ConsensusState.ACCUMULATING
        return ConsensusState.EMPTY

    @property
    def is_finalized(self) -> bool:
        return self._interval is not None

    @property
    def interval(self) -> Interval:
        if self._interval is None:
            raise ConsensusStateError(
                "Interval bounds are undefined until recenter_interval() "
                "has been called")
        return self._interval

    @property
    def finalized_with(self) -> Optional[Tuple[float, float]]:
        """``(period, margin)`` of the last finalisation, or ``None``."""
        return self._finalized_with

    @property
    def beg(self) -> int:
        return self.interval.beg

    @property
    def end(self) -> int:
        return self.interval.end

    def contains(self, voter_name: str) -> bool:
        """True if *voter_name* voted for this interval."""
        return voter_name in self._voters

    # ── finalisation ────────────────────────────────────────────

    def compute_bounds(
        self, period: float, margin: Optional[float] = None,
    ) -> Interval:
        """Return the bounds :meth:`recenter_interval` would set.

        Does not change the state of this interval.

        Raises
        ------
        EmptyInputError
            If nobody has voted.
        """
        if not self._values:
            raise EmptyInputError(
                "Cannot recentre a consensus interval with zero voters")
        if margin is None:
            margin = DEFAULT_MARGIN
        max_v = max(self._values)
        min_v = min(self._values)
        if (max_v - min_v) <= period:
            return Interval(math.ceil(min_v - margin),
                            math.ceil(max_v + margin))
        # wrapping: the tight cluster is the complementary arc
        return Interval(math.ceil(max_v - margin),
                        math.ceil(min_v + margin))

    def recenter_interval(
        self, period: float, margin: Optional[float] = None,
    ) -> Interval:
        """Finalise the interval and return its bounds."""
        if margin is None:
            margin = DEFAULT_MARGIN
        self._interval = self.compute_bounds(period, margin)
        self._finalized_with = (float(period), float(margin))
        return self._interval

    # ── dunder ──────────────────────────────────────────────────

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConsensusInterval):
            return NotImplemented
        return (self.vote_count == other.vote_count
                and set(self._voters) == set(other._voters)
                and set(self._values) == set(other._values))

    def __repr__(self) -> str:
        bounds = (f"[{self._interval.beg}, {self._interval.end}]"
                  if self._interval is not None else self.state.value)
        return f"ConsensusInterval({bounds}, votes={self.vote_count})"


# ═══════════════════════════════════════════════════════════════════
# ConsensusSquare
# ═══════════════════════════════════════════════════════════════════

class ConsensusSquare:
    """Joint consensus over two dimensions sharing one voter set.

    Raises
    ------
    ConstructionError
        If the two intervals differ in vote count or voter set.
    """

    __hash__ = None

    def __init__(self, dim1: ConsensusInterval, dim2: ConsensusInterval):
        if dim1.vote_count != dim2.vote_count:
            raise ConstructionError(
                f"ConsensusSquare dimensions have different vote counts "
                f"({dim1.vote_count} vs {dim2.vote_count})")
        if set(dim1.voters) != set(dim2.voters):
            only1 = sorted(set(dim1.voters) - set(dim2.voters))
            only2 = sorted(set(dim2.voters) - set(dim1.voters))
            raise ConstructionError(
                f"ConsensusSquare dimensions have different voters: "
                f"{only1} only in dim1, {only2} only in dim2")
        self.dim1 = dim1
        self.dim2 = dim2

    @classmethod
    def from_votes(
        cls,
        voters: Sequence[str],
        values1: Sequence[float],
        values2: Sequence[float],
        voter_indices: Optional[Sequence[int]] = None,
    ) -> "ConsensusSquare":
        """Build both dimensions from one per-model iteration."""
        return cls(
            ConsensusInterval.from_votes(voters, values1, voter_indices),
            ConsensusInterval.from_votes(voters, values2, voter_indices),
        )

    @property
    def vote_count(self) -> int:
        return self.dim1.vote_count

    @property
    def voters(self) -> Tuple[str, ...]:
        return self.dim1.voters

    @property
    def is_finalized(self) -> bool:
        return self.dim1.is_finalized and self.dim2.is_finalized

    def contains(self, voter_name: str) -> bool:
        return self.dim1.contains(voter_name)

    def recenter(
        self, period: float = ANGLE_PERIOD, margin: Optional[float] = None,
    ) -> Tuple[Interval, Interval]:
        """Finalise both dimensions with the same period and margin."""
        return (self.dim1.recenter_interval(period, margin),
                self.dim2.recenter_interval(period, margin))

    def compute_bounds(
        self, period: float = ANGLE_PERIOD, margin: Optional[float] = None,
    ) -> Tuple[Interval, Interval]:
        return (self.dim1.compute_bounds(period, margin),
                self.dim2.compute_bounds(period, margin))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConsensusSquare):
            return NotImplemented
        return self.dim1 == other.dim1 and self.dim2 == other.dim2

    def __repr__(self) -> str:
        return f"ConsensusSquare({self.dim1!r}, {self.dim2!r})"
