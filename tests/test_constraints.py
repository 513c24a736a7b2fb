"""Tests for ConstraintDeriver."""

import pytest

from rig_consensus.consensus import ConsensusInterval, ConsensusSquare
from rig_consensus.constraints import Constraint, ConstraintDeriver, ConstraintKind
from rig_consensus.errors import ConstructionError, EmptyInputError
from rig_consensus.graph import WeightedGraph


# ── Fixtures ────────────────────────────────────────────────────

@pytest.fixture
def distance_ci():
    return ConsensusInterval.from_votes(["m1", "m2", "m3"], [5.2, 6.9, 6.1])


@pytest.fixture
def helix_square():
    return ConsensusSquare.from_votes(
        ["m1", "m2"], [-60.0, -65.0], [-45.0, -40.0])


@pytest.fixture
def seam_square():
    return ConsensusSquare.from_votes(
        ["m1", "m2"], [-175.0, 175.0], [150.0, 155.0])


# ═══════════════════════════════════════════════════════════════════
# derive()
# ═══════════════════════════════════════════════════════════════════

class TestDerive:

    def test_distance_constraint(self, distance_ci):
        (c,) = ConstraintDeriver().derive(distances={(3, 17): distance_ci})
        assert c == Constraint(3, 17, 4.0, 9.0, ConstraintKind.DISTANCE, 100.0)

    def test_angle_constraints_single_residue(self, helix_square):
        out = ConstraintDeriver().derive(angles={12: helix_square})
        assert [c.kind for c in out] == [ConstraintKind.ANGLE_DIM1,
                                        ConstraintKind.ANGLE_DIM2]
        phi, psi = out
        assert (phi.i, phi.j) == (12, 12)
        assert (phi.lower_bound, phi.upper_bound) == (-67.0, -58.0)
        assert (psi.lower_bound, psi.upper_bound) == (-47.0, -38.0)
        assert phi.force_constant == 1.0

    def test_wrapped_angle_bounds(self, seam_square):
        phi, _ = ConstraintDeriver().derive(angles={3: seam_square})
        assert (phi.lower_bound, phi.upper_bound) == (-177.0, 177.0)

    def test_ordering(self, distance_ci, helix_square):
        out = ConstraintDeriver().derive(
            distances={(5, 9): distance_ci, (2, 8): distance_ci,
                       (5, 5): distance_ci},
            angles={5: helix_square, 1: helix_square},
        )
        assert [(c.i, c.j, c.kind) for c in out] == [
            (1, 1, ConstraintKind.ANGLE_DIM1),
            (1, 1, ConstraintKind.ANGLE_DIM2),
            (2, 8, ConstraintKind.DISTANCE),
            (5, 5, ConstraintKind.DISTANCE),
            (5, 5, ConstraintKind.ANGLE_DIM1),
            (5, 5, ConstraintKind.ANGLE_DIM2),
            (5, 9, ConstraintKind.DISTANCE),
        ]

    def test_pair_keys_canonicalised(self, distance_ci):
        (c,) = ConstraintDeriver().derive(distances={(17, 3): distance_ci})
        assert (c.i, c.j) == (3, 17)

    def test_colliding_pair_keys_rejected(self, distance_ci, helix_square):
        with pytest.raises(ConstructionError, match=r"\(1, 3\)"):
            ConstraintDeriver().derive(
                distances={(1, 3): distance_ci, (3, 1): distance_ci})
        with pytest.raises(ConstructionError):
            ConstraintDeriver().derive(angles={5: helix_square, (5, 5): helix_square})

    def test_same_pair_in_both_mappings_allowed(self, distance_ci, helix_square):
        out = ConstraintDeriver().derive(distances={(5, 5): distance_ci},
                                         angles={5: helix_square})
        assert len(out) == 3

    def test_inputs_not_mutated(self, distance_ci, helix_square):
        ConstraintDeriver().derive(distances={(1, 4): distance_ci},
                                   angles={2: helix_square})
        assert not distance_ci.is_finalized
        assert not helix_square.is_finalized

    def test_finalised_bounds_are_kept(self, distance_ci):
        distance_ci.recenter_interval(float("inf"), margin=0.0)
        (c,) = ConstraintDeriver().derive(distances={(1, 4): distance_ci})
        assert (c.lower_bound, c.upper_bound) == (6.0, 7.0)

    def test_force_constant_override(self, distance_ci, helix_square):
        deriver = ConstraintDeriver(force_constant_distance=10.0,
                                    force_constant_angle=2.5)
        out = deriver.derive(distances={(1, 4): distance_ci},
                             angles={2: helix_square})
        assert {c.kind: c.force_constant for c in out} == {
            ConstraintKind.DISTANCE: 10.0,
            ConstraintKind.ANGLE_DIM1: 2.5,
            ConstraintKind.ANGLE_DIM2: 2.5,
        }

    def test_margin_override(self, distance_ci):
        (c,) = ConstraintDeriver(margin=1.0).derive(distances={(1, 4): distance_ci})
        assert (c.lower_bound, c.upper_bound) == (5.0, 8.0)

    def test_empty_interval_raises(self):
        with pytest.raises(EmptyInputError):
            ConstraintDeriver().derive(distances={(1, 4): ConsensusInterval()})

    def test_nothing_in_nothing_out(self):
        assert ConstraintDeriver().derive() == []

    def test_to_dict(self, distance_ci):
        (c,) = ConstraintDeriver().derive(distances={(1, 4): distance_ci})
        assert c.to_dict()["kind"] == "distance"
        assert not c.kind.is_angle


# ═══════════════════════════════════════════════════════════════════
# from_contact_graph()
# ═══════════════════════════════════════════════════════════════════

class TestFromContactGraph:

    @pytest.fixture
    def graph(self):
        g = WeightedGraph("ACDEF", cutoff=8.0)
        g.add_edge(1, 2, 3.8)
        g.add_edge(1, 4, 6.0)
        g.add_edge(2, 5, 7.0)
        return g

    def test_contacts_and_backbone(self, graph):
        out = ConstraintDeriver().from_contact_graph(graph)
        assert [(c.i, c.j, c.lower_bound, c.upper_bound) for c in out] == [
            (1, 2, 3.8, 3.8),
            (1, 4, 3.0, 8.0),
            (2, 3, 3.8, 3.8),
            (2, 5, 3.0, 8.0),
            (3, 4, 3.8, 3.8),
            (4, 5, 3.8, 3.8),
        ]
        assert all(c.kind is ConstraintKind.DISTANCE for c in out)

    def test_without_backbone(self, graph):
        out = ConstraintDeriver().from_contact_graph(graph, backbone=False)
        assert [(c.i, c.j) for c in out] == [(1, 4), (2, 5)]

    def test_graph_without_cutoff(self):
        with pytest.raises(ConstructionError):
            ConstraintDeriver().from_contact_graph(WeightedGraph("AC"))
