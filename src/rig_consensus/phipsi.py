"""Phi/psi consensus across an ensemble of models.

For every residue, the models' (phi, psi) pairs are clustered into a
Ramachandran "square": a phi window of fixed width holding more than
``threshold`` of the models, whose psi values also fit one window.

Algorithm (per residue)
-----------------------
1. Collect ``(phi, psi)`` from each model that has the residue.  A model
   with the residue but without measurable angles (chain termini,
   unobserved neighbours) counts towards the column size with NaN and
   can never vote.
2. Sort the phi values; append ``phi + 360`` for every phi within one
   window of -180 so windows can run across the ±180 seam.
3. From each start value, gather every value within ``window`` degrees.
   Windows with more than ``int(n * threshold)`` voters are phi
   candidates; they are finalised with ``period = window``, so clusters
   spanning the seam come out as wrapped intervals.
4. A candidate survives if the psi values of the same voters are all
   within ``window`` of each other (max pairwise
   :func:`~rig_consensus.consensus.angle_distance`).
5. The surviving square with the most votes wins; ties go to the first
   found.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Mapping, Optional, Tuple

from .config import DEFAULT_PARAMETERS
from .consensus import ConsensusInterval, ConsensusSquare, angle_distance, unwrap_angle
from .errors import ConstructionError
from .structure import Structure

logger = logging.getLogger(__name__)

__all__ = [
    "PhiPsiAverager",
    "phipsi_from_structure",
]

NAN = float("nan")


def phipsi_from_structure(structure: Structure) -> Dict[int, Tuple[float, float]]:
    """``{serial: (phi, psi)}`` for every residue of *structure*.

    Angles that cannot be computed are NaN.
    """
    out = {}
    for serial in structure.residues:
        phi = structure.phi(serial)
        psi = structure.psi(serial)
        out[serial] = (NAN if phi is None else phi, NAN if psi is None else psi)
    return out


class PhiPsiAverager:
    """Consensus phi/psi squares from per-model backbone angles.

    Parameters
    ----------
    angles : mapping
        ``{model_tag: {residue_serial: (phi, psi)}}``.  Voter indices
        follow the sorted tag order.
    """

    def __init__(self, angles: Mapping[str, Mapping[int, Tuple[float, float]]]):
        if not angles:
            raise ConstructionError("No models given for phi/psi averaging")
        self.tags: List[str] = sorted(angles)
        self._angles = {tag: dict(angles[tag]) for tag in self.tags}
        for tag in self.tags:
            if not any(not math.isnan(phi) for phi, _ in self._angles[tag].values()):
                logger.warning(f"Model {tag} has no usable phi/psi angles")

    @classmethod
    def from_structures(cls, structures: Mapping[str, Structure]) -> "PhiPsiAverager":
        return cls({tag: phipsi_from_structure(s) for tag, s in structures.items()})

    @property
    def residues(self) -> List[int]:
        serials = set()
        for per_model in self._angles.values():
            serials.update(per_model)
        return sorted(serials)

    def consensus_phipsi(
        self,
        threshold: Optional[float] = None,
        window: Optional[float] = None,
    ) -> Dict[int, ConsensusSquare]:
        """``{residue: ConsensusSquare}`` for residues with a consensus.

        Raises
        ------
        ConstructionError
            If *threshold* is below 0.5.
        """
        if threshold is None:
            threshold = DEFAULT_PARAMETERS["consensus.vote_threshold"]
        if window is None:
            window = DEFAULT_PARAMETERS["consensus.angle_window"]
        if threshold < 0.5:
            raise ConstructionError(
                f"Phi/psi consensus threshold must be >= 0.5, got {threshold}")

        squares: Dict[int, ConsensusSquare] = {}
        for serial in self.residues:
            column = {
                idx: self._angles[tag][serial]
                for idx, tag in enumerate(self.tags)
                if serial in self._angles[tag]
            }
            square = self._best_square(column, threshold, window)
            if square is None:
                logger.debug(f"No phi/psi consensus at residue {serial}")
                continue
            squares[serial] = square
        logger.info(
            f"Phi/psi consensus at {len(squares)} of {len(self.residues)} residues "
            f"(threshold={threshold}, window={window})")
        return squares

    # ── internals ───────────────────────────────────────────────

    def _best_square(self, column: Dict[int, Tuple[float, float]],
                     threshold: float, window: float) -> Optional[ConsensusSquare]:
        candidates = []
        for phi_interval in self._phi_candidates(column, threshold, window):
            square = self._match_psi(column, phi_interval, window)
            if square is not None:
                candidates.append(square)
        if not candidates:
            return None
        # stable sort keeps discovery order among equal vote counts
        candidates.sort(key=lambda sq: -sq.vote_count)
        return candidates[0]

    def _phi_candidates(self, column, threshold, window) -> List[ConsensusInterval]:
        vote_threshold = int(len(column) * threshold)
        ordered = sorted(
            ((phi, idx) for idx, (phi, _) in column.items() if not math.isnan(phi)),
        )
        ordered += [(phi + 360.0, idx) for phi, idx in ordered
                    if phi < -180.0 + window]

        found = []
        for start in range(len(ordered)):
            start_value = ordered[start][0]
            ci = ConsensusInterval()
            for value, idx in ordered[start:]:
                if value - start_value > window:
                    break
                ci.add_voter(idx, self.tags[idx], unwrap_angle(value))
            if ci.vote_count > vote_threshold:
                ci.recenter_interval(window)
                found.append(ci)
        return found

    def _match_psi(self, column, phi_interval: ConsensusInterval,
                   window: float) -> Optional[ConsensusSquare]:
        psi_values = [column[idx][1] for idx in phi_interval.voter_indices]
        if any(math.isnan(v) for v in psi_values):
            return None
        max_dist = max(
            angle_distance(a, b)
            for k, a in enumerate(psi_values) for b in psi_values[k:]
        )
        if max_dist > window:
            return None
        psi_interval = ConsensusInterval.from_votes(
            phi_interval.voters, psi_values, phi_interval.voter_indices)
        psi_interval.recenter_interval(window)
        return ConsensusSquare(phi_interval, psi_interval)
