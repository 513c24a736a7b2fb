"""Tests for phi/psi consensus (PhiPsiAverager)."""

import math

import pytest

from rig_consensus.errors import ConstructionError
from rig_consensus.phipsi import PhiPsiAverager, phipsi_from_structure
from rig_consensus.structure import Structure


# ── Fixtures ────────────────────────────────────────────────────

@pytest.fixture
def helix_models():
    """Three models agreeing on an alpha-helical residue 5."""
    return {
        "m1": {5: (-60.0, -45.0)},
        "m2": {5: (-65.0, -40.0)},
        "m3": {5: (-62.0, -42.0)},
    }


@pytest.fixture
def seam_models():
    """Phi values clustered around ±180."""
    return {
        "m1": {7: (178.0, 150.0)},
        "m2": {7: (-178.0, 155.0)},
        "m3": {7: (179.0, 152.0)},
    }


# ═══════════════════════════════════════════════════════════════════
# Consensus squares
# ═══════════════════════════════════════════════════════════════════

class TestPhiPsiConsensus:

    def test_helix_square(self, helix_models):
        squares = PhiPsiAverager(helix_models).consensus_phipsi()
        assert set(squares) == {5}
        sq = squares[5]
        assert sq.vote_count == 3
        assert sq.is_finalized
        assert (sq.dim1.beg, sq.dim1.end) == (-67, -58)
        assert (sq.dim2.beg, sq.dim2.end) == (-47, -38)

    def test_voter_indices_follow_tag_order(self, helix_models):
        sq = PhiPsiAverager(helix_models).consensus_phipsi()[5]
        assert set(sq.dim1.voter_indices) == {0, 1, 2}
        assert dict(zip(sq.dim1.voters, sq.dim1.voter_indices)) == {
            "m1": 0, "m2": 1, "m3": 2}

    def test_cluster_across_seam_wraps(self, seam_models):
        sq = PhiPsiAverager(seam_models).consensus_phipsi()[7]
        assert sq.vote_count == 3
        assert (sq.dim1.beg, sq.dim1.end) == (177, -176)
        assert sq.dim1.interval.is_wrapped
        assert (sq.dim2.beg, sq.dim2.end) == (148, 157)

    def test_no_consensus(self):
        models = {
            "m1": {3: (-60.0, -45.0)},
            "m2": {3: (60.0, 40.0)},
            "m3": {3: (180.0, 120.0)},
        }
        assert PhiPsiAverager(models).consensus_phipsi() == {}

    def test_psi_disagreement_shrinks_square(self):
        models = {
            "m1": {4: (-60.0, -45.0)},
            "m2": {4: (-62.0, 135.0)},
            "m3": {4: (-61.0, -40.0)},
        }
        sq = PhiPsiAverager(models).consensus_phipsi()[4]
        assert sq.vote_count == 2
        assert set(sq.voters) == {"m1", "m3"}

    def test_missing_angles_count_towards_column(self):
        nan = float("nan")
        models = {
            "m1": {2: (-60.0, -45.0)},
            "m2": {2: (-61.0, -44.0)},
            "m3": {2: (nan, nan)},
            "m4": {2: (60.0, 45.0)},
        }
        assert PhiPsiAverager(models).consensus_phipsi() == {}

    def test_low_threshold_rejected(self, helix_models):
        with pytest.raises(ConstructionError):
            PhiPsiAverager(helix_models).consensus_phipsi(threshold=0.3)

    def test_no_models_rejected(self):
        with pytest.raises(ConstructionError):
            PhiPsiAverager({})

    def test_residues_union(self):
        avg = PhiPsiAverager({"a": {1: (0.0, 0.0)}, "b": {2: (0.0, 0.0)}})
        assert avg.residues == [1, 2]


# ═══════════════════════════════════════════════════════════════════
# Angles from coordinates
# ═══════════════════════════════════════════════════════════════════

class TestPhiPsiFromStructure:

    def test_termini_are_nan(self):
        atoms = {
            (1, "N"): (0.0, 1.0, 0.0),
            (1, "CA"): (0.0, 0.0, 0.0),
            (1, "C"): (1.0, 0.0, 0.0),
            (2, "N"): (1.0, 1.0, 0.0),
            (2, "CA"): (2.0, 1.0, 0.0),
            (2, "C"): (2.0, 1.0, 1.0),
        }
        angles = phipsi_from_structure(Structure(atoms))
        assert math.isnan(angles[1][0])
        assert angles[1][1] == pytest.approx(0.0, abs=1e-9)
        assert angles[2][0] == pytest.approx(-90.0)
        assert math.isnan(angles[2][1])

    def test_from_structures(self):
        atoms = {(1, "CA"): (0.0, 0.0, 0.0)}
        avg = PhiPsiAverager.from_structures({"m1": Structure(atoms)})
        assert avg.tags == ["m1"]
        assert avg.consensus_phipsi() == {}
