"""ConstraintDeriver — consensus data to solver bounds.

Turns consensus intervals into the ``(lower, upper, force constant)``
restraints an external geometry engine consumes:

* a distance :class:`~rig_consensus.consensus.ConsensusInterval` on a
  residue pair gives one ``DISTANCE`` constraint.  Distances are not
  periodic, so bounds are computed with ``period = inf`` (the wrap branch
  can never fire);
* a :class:`~rig_consensus.consensus.ConsensusSquare` gives an
  ``ANGLE_DIM1`` and an ``ANGLE_DIM2`` constraint (phi and psi for a
  backbone square), bounds computed with ``period = 360``.

Intervals that were already finalised (e.g. by
:class:`~rig_consensus.phipsi.PhiPsiAverager`, which finalises with its
clustering window) keep their bounds.  Derivation never mutates its
inputs.

Output is sorted by ``(i, j)`` and, within a pair, by kind, so two runs
over the same consensus diff cleanly.

Usage
-----
>>> deriver = ConstraintDeriver(force_constant_angle=2.0)
>>> constraints = deriver.derive(distances={(3, 17): ci},
...                              angles={12: phipsi_square})
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .config import DEFAULT_PARAMETERS, ParameterRegistry
from .consensus import ConsensusInterval, ConsensusSquare, Interval
from .errors import ConstructionError
from .graph import WeightedGraph

logger = logging.getLogger(__name__)

__all__ = [
    "ConstraintKind",
    "Constraint",
    "ConstraintDeriver",
]

PairKey = Union[int, Tuple[int, int]]


class ConstraintKind(Enum):
    DISTANCE = "distance"
    ANGLE_DIM1 = "angle_dim1"
    ANGLE_DIM2 = "angle_dim2"

    @property
    def is_angle(self) -> bool:
        return self is not ConstraintKind.DISTANCE


_KIND_ORDER = {
    ConstraintKind.DISTANCE: 0,
    ConstraintKind.ANGLE_DIM1: 1,
    ConstraintKind.ANGLE_DIM2: 2,
}


@dataclass(frozen=True)
class Constraint:
    """One restraint for the reconstruction engine.

    For backbone torsions keyed by a single residue, ``i == j``.
    Angular bounds are in degrees; a wrapped angular constraint has
    ``lower_bound > upper_bound``.
    """

    i: int
    j: int
    lower_bound: float
    upper_bound: float
    kind: ConstraintKind
    force_constant: float

    @property
    def sort_key(self) -> Tuple[int, int, int]:
        return (self.i, self.j, _KIND_ORDER[self.kind])

    def to_dict(self) -> Dict[str, object]:
        return {
            "i": self.i,
            "j": self.j,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "kind": self.kind.value,
            "force_constant": self.force_constant,
        }


def _pair(key: PairKey) -> Tuple[int, int]:
    if isinstance(key, tuple):
        i, j = key
        return (i, j) if i <= j else (j, i)
    return (key, key)


def _canonical_keys(mapping: Mapping[PairKey, object],
                    what: str) -> List[Tuple[Tuple[int, int], object]]:
    """Items of *mapping* keyed by canonical pair, rejecting collisions."""
    seen: Dict[Tuple[int, int], PairKey] = {}
    out = []
    for key, value in mapping.items():
        pair = _pair(key)
        if pair in seen:
            raise ConstructionError(
                f"{what} keys {seen[pair]!r} and {key!r} both map to pair {pair}")
        seen[pair] = key
        out.append((pair, value))
    return out


class ConstraintDeriver:
    """Emit :class:`Constraint` objects from consensus data.

    Parameters
    ----------
    force_constant_distance, force_constant_angle : float, optional
        Per-category force constants.  Default to
        ``constraints.force_constant_distance`` and
        ``constraints.force_constant_angle`` of *params*.
    margin : float, optional
        Padding used when bounds still have to be computed.  Defaults to
        ``consensus.margin``.
    params : ParameterRegistry
        Source of defaults.
    """

    def __init__(
        self,
        force_constant_distance: Optional[float] = None,
        force_constant_angle: Optional[float] = None,
        margin: Optional[float] = None,
        params: ParameterRegistry = DEFAULT_PARAMETERS,
    ):
        self.params = params
        self.force_constant_distance = (
            params["constraints.force_constant_distance"]
            if force_constant_distance is None else float(force_constant_distance))
        self.force_constant_angle = (
            params["constraints.force_constant_angle"]
            if force_constant_angle is None else float(force_constant_angle))
        self.margin = params["consensus.margin"] if margin is None else float(margin)
        self.angle_period = params["consensus.angle_period"]

    def __repr__(self) -> str:
        return (f"ConstraintDeriver(distance_k={self.force_constant_distance}, "
                f"angle_k={self.force_constant_angle}, margin={self.margin})")

    # ── bounds ──────────────────────────────────────────────────

    def _bounds(self, ci: ConsensusInterval, period: float) -> Interval:
        if ci.is_finalized:
            return ci.interval
        return ci.compute_bounds(period, self.margin)

    def distance_bounds(self, ci: ConsensusInterval) -> Interval:
        """Non-wrapping bounds of a distance interval."""
        return self._bounds(ci, math.inf)

    def angle_bounds(self, square: ConsensusSquare) -> Tuple[Interval, Interval]:
        return (self._bounds(square.dim1, self.angle_period),
                self._bounds(square.dim2, self.angle_period))

    # ── derivation ──────────────────────────────────────────────

    def derive(
        self,
        distances: Optional[Mapping[PairKey, ConsensusInterval]] = None,
        angles: Optional[Mapping[PairKey, ConsensusSquare]] = None,
    ) -> List[Constraint]:
        """Constraints for every distance interval and angle square.

        Keys are residue pairs ``(i, j)``; an ``int`` key ``i`` stands
        for the single-residue pair ``(i, i)``.

        Raises
        ------
        ConstructionError
            If two keys of one mapping name the same pair, e.g. ``(1, 3)``
            and ``(3, 1)``, or ``5`` and ``(5, 5)``.
        EmptyInputError
            If an interval has no voters.
        """
        out: List[Constraint] = []
        for (i, j), ci in _canonical_keys(distances or {}, "Distance"):
            b = self.distance_bounds(ci)
            out.append(Constraint(i, j, float(b.beg), float(b.end),
                                  ConstraintKind.DISTANCE,
                                  self.force_constant_distance))
        for (i, j), square in _canonical_keys(angles or {}, "Angle"):
            b1, b2 = self.angle_bounds(square)
            out.append(Constraint(i, j, float(b1.beg), float(b1.end),
                                  ConstraintKind.ANGLE_DIM1,
                                  self.force_constant_angle))
            out.append(Constraint(i, j, float(b2.beg), float(b2.end),
                                  ConstraintKind.ANGLE_DIM2,
                                  self.force_constant_angle))
        out.sort(key=lambda c: c.sort_key)
        logger.info(
            f"Derived {len(out)} constraints "
            f"({len(distances or {})} distance intervals, "
            f"{len(angles or {})} angle squares)")
        return out

    def from_contact_graph(
        self,
        graph: WeightedGraph,
        backbone: bool = True,
    ) -> List[Constraint]:
        """Distance constraints straight from a contact graph.

        Each contact ``(i, j)`` with ``j > i + 1`` becomes
        ``[constraints.min_distance, graph.cutoff]``.  With *backbone*,
        every consecutive residue pair is fixed at
        ``constraints.backbone_ca_distance``.

        Raises
        ------
        ConstructionError
            If the graph has no positive cutoff.
        """
        if graph.cutoff <= 0:
            raise ConstructionError(
                f"Graph {graph.identifier!r} has no distance cutoff")
        lower = self.params["constraints.min_distance"]
        ca_ca = self.params["constraints.backbone_ca_distance"]
        k = self.force_constant_distance

        bounds: Dict[Tuple[int, int], Tuple[float, float]] = {}
        for edge in graph.edges:
            if edge.j > edge.i + 1:
                bounds[edge.pair] = (lower, graph.cutoff)
        if backbone:
            nodes = graph.nodes
            for a, b in zip(nodes, nodes[1:]):
                if b == a + 1:
                    bounds[(a, b)] = (ca_ca, ca_ca)
        return [
            Constraint(i, j, lo, hi, ConstraintKind.DISTANCE, k)
            for (i, j), (lo, hi) in sorted(bounds.items())
        ]
