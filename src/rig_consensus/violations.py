"""ViolationChecker — how well does a structure honour its contacts?

A contact ``(i, j)`` of a reference graph is violated in a candidate
structure when the representative atoms of ``i`` and ``j`` are further
apart than ``cutoff + tolerance``.  The same check runs on the mirror
image to pick the right chirality, since distance restraints alone
cannot tell a fold from its reflection.

Missing atoms
-------------
A contact whose atoms are absent cannot be judged.  It is excluded from
both the violation count and the measured count and listed in the
report's ``missing`` / ``unmeasurable`` fields.  With ``strict=True`` the
first missing atom raises
:class:`~rig_consensus.errors.GeometryMismatchError` instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

from .config import DEFAULT_PARAMETERS, ParameterRegistry
from .consensus import Interval
from .constraints import Constraint, ConstraintKind
from .errors import ConstructionError, GeometryMismatchError
from .graph import WeightedGraph
from .structure import Structure, representative_atom

logger = logging.getLogger(__name__)

__all__ = [
    "ViolationReport",
    "ViolationChecker",
]

_PHI_ATOMS = ((-1, "C"), (0, "N"), (0, "CA"), (0, "C"))
_PSI_ATOMS = ((0, "N"), (0, "CA"), (0, "C"), (1, "N"))


@dataclass(frozen=True)
class ViolationReport:
    """Outcome of one violation check.

    Attributes
    ----------
    violated : tuple
        Violated items in input order, one entry per violated input:
        residue pairs ``(i, j)`` for a graph check, the
        :class:`~rig_consensus.constraints.Constraint` objects for a
        constraint check.  Repeated inputs are counted each time.
    n_measured : int
        Items that could be measured (the ratio denominator).
    missing : dict
        ``{residue: (atom, ...)}`` of atoms that were needed but absent.
    unmeasurable : tuple
        Items skipped because of missing atoms.
    """

    violated: Tuple[Hashable, ...]
    n_measured: int
    missing: Dict[int, Tuple[str, ...]] = field(default_factory=dict)
    unmeasurable: Tuple[Hashable, ...] = ()

    @property
    def count(self) -> int:
        return len(self.violated)

    @property
    def ratio(self) -> float:
        """Violated fraction of the measured items (0 when none measured)."""
        if self.n_measured == 0:
            return 0.0
        return self.count / self.n_measured

    def summary(self) -> str:
        text = f"{self.count}/{self.n_measured} violated ({self.ratio:.1%})"
        if self.unmeasurable:
            text += f", {len(self.unmeasurable)} unmeasurable"
        return text


class _MissingAtoms:
    """Collects absent atoms while a check runs."""

    def __init__(self, strict: bool):
        self.strict = strict
        self._atoms: Dict[int, set] = {}

    def find(self, structure: Structure,
             keys: Sequence[Tuple[int, str]]) -> bool:
        """Record the absent atoms among *keys*; True if any was absent."""
        absent = [(s, a) for s, a in keys if not structure.has_atom(s, a)]
        for serial, atom in absent:
            if self.strict:
                raise GeometryMismatchError(serial, atom)
            self._atoms.setdefault(serial, set()).add(atom)
        return bool(absent)

    def as_dict(self) -> Dict[int, Tuple[str, ...]]:
        return {s: tuple(sorted(a)) for s, a in sorted(self._atoms.items())}


class ViolationChecker:
    """Count violated contacts or constraints on candidate structures.

    Parameters
    ----------
    tolerance : float, optional
        Slack in Å added to every distance bound.  Defaults to
        ``violations.tolerance``.
    strict : bool
        Raise on missing atoms instead of reporting them.
    params : ParameterRegistry
        Source of defaults.
    """

    def __init__(self, tolerance: Optional[float] = None, strict: bool = False,
                 params: ParameterRegistry = DEFAULT_PARAMETERS):
        self.tolerance = (params["violations.tolerance"]
                          if tolerance is None else float(tolerance))
        self.strict = strict

    def __repr__(self) -> str:
        return f"ViolationChecker(tolerance={self.tolerance}, strict={self.strict})"

    # ── contact graphs ──────────────────────────────────────────

    def check(self, graph: WeightedGraph, structure: Structure,
              contact_type: Optional[str] = None) -> ViolationReport:
        """Contacts of *graph* whose distance exceeds ``cutoff + tolerance``.

        Raises
        ------
        ConstructionError
            If *graph* has no positive cutoff or a multi-atom contact type.
        GeometryMismatchError
            On a missing atom, in strict mode only.
        """
        if graph.cutoff <= 0:
            raise ConstructionError(
                f"Graph {graph.identifier!r} has no distance cutoff")
        atom = representative_atom(contact_type or graph.contact_type)
        limit = graph.cutoff + self.tolerance
        missing = _MissingAtoms(self.strict)

        violated: List[Tuple[int, int]] = []
        unmeasurable: List[Tuple[int, int]] = []
        n_measured = 0
        for edge in graph.edges:
            if missing.find(structure, ((edge.i, atom), (edge.j, atom))):
                unmeasurable.append(edge.pair)
                continue
            n_measured += 1
            if structure.distance(edge.i, edge.j, atom) > limit:
                violated.append(edge.pair)

        report = ViolationReport(tuple(violated), n_measured,
                                 missing.as_dict(), tuple(unmeasurable))
        logger.debug(f"{structure.identifier or 'structure'}: {report.summary()}")
        return report

    def best_chirality(self, graph: WeightedGraph, structure: Structure,
                       constraints: Sequence[Constraint] = (),
                       contact_type: Optional[str] = None,
                       ) -> Tuple[Structure, ViolationReport]:
        """*structure* or its mirror, whichever violates fewer contacts.

        Contact distances are the same in both images, so only the
        torsion constraints among *constraints* can separate them.  The
        violation count is the graph count plus the constraint count.
        Ties keep *structure* as given.

        Returns
        -------
        structure : Structure
            The chosen image.
        report : ViolationReport
            Its contact-graph report.
        """
        mirrored = structure.mirror()
        report = self.check(graph, structure, contact_type)
        mirror_report = self.check(graph, mirrored, contact_type)
        total = report.count
        mirror_total = mirror_report.count
        if constraints:
            total += self.check_constraints(constraints, structure).count
            mirror_total += self.check_constraints(constraints, mirrored).count
        if mirror_total < total:
            logger.info(
                f"{structure.identifier or 'structure'}: mirror image fits "
                f"better ({mirror_total} vs {total} violations)")
            return mirrored, mirror_report
        return structure, report

    # ── derived constraints ─────────────────────────────────────

    def check_constraints(self, constraints: Sequence[Constraint],
                          structure: Structure,
                          atom: str = "CA") -> ViolationReport:
        """Constraints not met by *structure*.

        Distance constraints are met inside
        ``[lower - tolerance, upper + tolerance]``, measured between
        *atom* of both residues.  ``ANGLE_DIM1`` / ``ANGLE_DIM2``
        constraints are read as phi / psi of residue ``i`` and are met
        when the dihedral lies in the (possibly wrapped) bounds.
        """
        missing = _MissingAtoms(self.strict)
        violated: List[Constraint] = []
        unmeasurable: List[Constraint] = []
        n_measured = 0

        for c in constraints:
            if c.kind is ConstraintKind.DISTANCE:
                if missing.find(structure, ((c.i, atom), (c.j, atom))):
                    unmeasurable.append(c)
                    continue
                d = structure.distance(c.i, c.j, atom)
                ok = (c.lower_bound - self.tolerance
                      <= d <= c.upper_bound + self.tolerance)
            else:
                offsets = (_PHI_ATOMS if c.kind is ConstraintKind.ANGLE_DIM1
                           else _PSI_ATOMS)
                keys = [(c.i + off, name) for off, name in offsets]
                if missing.find(structure, keys):
                    unmeasurable.append(c)
                    continue
                angle = (structure.phi(c.i) if c.kind is ConstraintKind.ANGLE_DIM1
                         else structure.psi(c.i))
                ok = Interval(c.lower_bound, c.upper_bound).contains_angle(angle)
            n_measured += 1
            if not ok:
                violated.append(c)

        report = ViolationReport(tuple(violated), n_measured,
                                 missing.as_dict(), tuple(unmeasurable))
        logger.debug(
            f"{structure.identifier or 'structure'} constraints: {report.summary()}")
        return report
