"""Coordinate provider — the narrow view of a 3D structure the core needs.

A :class:`Structure` answers "where is atom *A* of residue *i*?" and
nothing more: it can be mirrored, copied, turned into a contact graph
and asked for backbone dihedrals.  File parsing is someone else's job;
structures are built from numpy arrays or ``{(serial, atom): xyz}``
mappings (see :mod:`rig_consensus.fetch` for a thin RCSB loader).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
from scipy.spatial.distance import pdist, squareform

from .config import DEFAULT_PARAMETERS
from .errors import ConstructionError
from .graph import WeightedGraph

__all__ = [
    "Structure",
    "dihedral",
    "representative_atom",
    "SINGLE_ATOM_CONTACT_TYPES",
]

SINGLE_ATOM_CONTACT_TYPES: Dict[str, str] = {
    "Ca": "CA",
    "Cb": "CB",
    "C": "C",
    "N": "N",
    "O": "O",
}


def representative_atom(contact_type: str) -> str:
    """Atom name measured for a single-atom contact type.

    Raises
    ------
    ConstructionError
        For multi-atom contact types (``"ALL"``, ``"BB"``, ...).
    """
    try:
        return SINGLE_ATOM_CONTACT_TYPES[contact_type]
    except KeyError:
        raise ConstructionError(
            f"Contact type {contact_type!r} is not a single-atom type; "
            f"valid: {sorted(SINGLE_ATOM_CONTACT_TYPES)}") from None


def dihedral(p0, p1, p2, p3) -> float:
    """Torsion angle in degrees, in ``(-180, 180]``, for four points."""
    p0, p1, p2, p3 = (np.asarray(p, dtype=float) for p in (p0, p1, p2, p3))
    b0 = p0 - p1
    b1 = p2 - p1
    b2 = p3 - p2
    b1 = b1 / np.linalg.norm(b1)
    v = b0 - np.dot(b0, b1) * b1
    w = b2 - np.dot(b2, b1) * b1
    x = np.dot(v, w)
    y = np.dot(np.cross(b1, v), w)
    return float(np.degrees(np.arctan2(y, x)))


class Structure:
    """Atom coordinates keyed by ``(residue serial, atom name)``.

    Parameters
    ----------
    atoms : mapping
        ``{(serial, atom_name): (x, y, z)}``.
    sequence : str
        One-letter sequence, residue serials starting at 1.
    identifier : str
        Label, e.g. the model name.
    """

    def __init__(
        self,
        atoms: Mapping[Tuple[int, str], Iterable[float]],
        sequence: str = "",
        identifier: str = "",
    ):
        self._atoms: Dict[Tuple[int, str], np.ndarray] = {}
        for (serial, atom), xyz in atoms.items():
            arr = np.asarray(xyz, dtype=float)
            if arr.shape != (3,):
                raise ConstructionError(
                    f"Coordinate for {serial}:{atom} has shape {arr.shape}, "
                    f"expected (3,)")
            self._atoms[(int(serial), atom)] = arr
        self.sequence = sequence
        self.identifier = identifier

    @classmethod
    def from_ca_coords(
        cls,
        coords: np.ndarray,
        sequence: str = "",
        *,
        first_serial: int = 1,
        identifier: str = "",
    ) -> "Structure":
        """Cα-only structure from an ``(N, 3)`` array."""
        coords = np.asarray(coords, dtype=float)
        if coords.ndim != 2 or coords.shape[1] != 3:
            raise ConstructionError(
                f"Expected an (N, 3) coordinate array, got {coords.shape}")
        atoms = {
            (first_serial + k, "CA"): coords[k] for k in range(len(coords))
        }
        return cls(atoms, sequence=sequence, identifier=identifier)

    # ── lookup ──────────────────────────────────────────────────

    def atom_coord(self, serial: int, atom: str) -> Optional[np.ndarray]:
        """Coordinates of *atom* in residue *serial*, or ``None``."""
        xyz = self._atoms.get((serial, atom))
        return None if xyz is None else xyz.copy()

    def has_atom(self, serial: int, atom: str) -> bool:
        return (serial, atom) in self._atoms

    @property
    def residues(self) -> List[int]:
        return sorted({serial for serial, _ in self._atoms})

    def atom_names(self, serial: int) -> List[str]:
        return sorted(a for s, a in self._atoms if s == serial)

    def distance(self, i: int, j: int, atom_i: str = "CA",
                 atom_j: Optional[str] = None) -> Optional[float]:
        """Euclidean distance between two atoms, ``None`` if either is missing."""
        a = self._atoms.get((i, atom_i))
        b = self._atoms.get((j, atom_j or atom_i))
        if a is None or b is None:
            return None
        return float(np.linalg.norm(a - b))

    # ── transforms ──────────────────────────────────────────────

    def mirror(self) -> "Structure":
        """Point reflection through the origin (flips chirality)."""
        return Structure(
            {k: -v for k, v in self._atoms.items()},
            sequence=self.sequence,
            identifier=self.identifier,
        )

    def copy(self) -> "Structure":
        return Structure(dict(self._atoms), sequence=self.sequence,
                         identifier=self.identifier)

    # ── derived data ────────────────────────────────────────────

    def contact_graph(
        self,
        cutoff: Optional[float] = None,
        contact_type: str = "Ca",
        min_range: int = 1,
    ) -> WeightedGraph:
        """Residue-interaction graph: an edge iff the representative atoms
        of two residues are within *cutoff* Å.

        Edge weights are the measured distances.
        """
        if cutoff is None:
            cutoff = DEFAULT_PARAMETERS["graph.default_cutoff"]
        atom = representative_atom(contact_type)
        serials = [s for s in self.residues if (s, atom) in self._atoms]
        graph = WeightedGraph(
            self.sequence,
            identifier=self.identifier,
            contact_type=contact_type,
            cutoff=cutoff,
        )
        if len(serials) < 2:
            return graph
        coords = np.array([self._atoms[(s, atom)] for s in serials])
        D = squareform(pdist(coords))
        rows, cols = np.where(np.triu(D <= cutoff, k=1))
        for r, c in zip(rows, cols):
            i, j = serials[r], serials[c]
            if abs(i - j) >= min_range:
                graph.add_edge(i, j, float(D[r, c]))
        return graph

    def phi(self, serial: int) -> Optional[float]:
        """Backbone phi: C(i-1), N(i), CA(i), C(i)."""
        return self._torsion(((serial - 1, "C"), (serial, "N"),
                              (serial, "CA"), (serial, "C")))

    def psi(self, serial: int) -> Optional[float]:
        """Backbone psi: N(i), CA(i), C(i), N(i+1)."""
        return self._torsion(((serial, "N"), (serial, "CA"),
                              (serial, "C"), (serial + 1, "N")))

    def _torsion(self, keys) -> Optional[float]:
        points = [self._atoms.get(k) for k in keys]
        if any(p is None for p in points):
            return None
        return dihedral(*points)

    def __len__(self) -> int:
        return len(self.residues)

    def __repr__(self) -> str:
        return (f"Structure({self.identifier!r}, {len(self.residues)} residues, "
                f"{len(self._atoms)} atoms)")
