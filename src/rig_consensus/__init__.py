"""rig-consensus: Consensus Residue-Interaction Graphs for Protein Models.

Aggregates an ensemble of structural models of one protein into consensus
data: which contacts most models agree on, which distance range and which
phi/psi region each contact or residue occupies.  The consensus becomes
bounded restraints for an external reconstruction engine, and rebuilt
structures are scored by how many consensus contacts they violate.

The core is pure in-memory computation on :class:`WeightedGraph` and
:class:`ConsensusInterval`; coordinates come in through
:class:`Structure`.
"""
from .consensus import (
    Interval, ConsensusState, ConsensusInterval, ConsensusSquare,
    angle_distance, to_first_cycle, unwrap_angle,
)
from .graph import Edge, WeightedGraph, canonical_pair
from .structure import Structure, dihedral, representative_atom
from .fetch import fetch_ca_structure, parse_mmcif_backbone

# Ensemble aggregation
from .averaging import GraphAverager, shared_sequence
from .phipsi import PhiPsiAverager, phipsi_from_structure

# Constraints, engine seam, scoring
from .constraints import Constraint, ConstraintKind, ConstraintDeriver
from .reconstruction import ReconstructionEngine, run_engine
from .violations import ViolationChecker, ViolationReport

# Configuration & errors
from .config import ParameterRegistry, DEFAULT_PARAMETERS
from .errors import (
    RigConsensusError, ConstructionError, EmptyInputError,
    ConsensusStateError, ExternalEngineError, GeometryMismatchError,
)

# Persistence
from .serialization import (
    ConsensusStore, StoredChain, graph_to_dict, graph_from_dict,
    consensus_to_json, consensus_from_json,
)

__version__ = "0.1.0"

__all__ = [
    # Consensus primitives
    "Interval", "ConsensusState", "ConsensusInterval", "ConsensusSquare",
    "angle_distance", "to_first_cycle", "unwrap_angle",
    # Graphs & structures
    "Edge", "WeightedGraph", "canonical_pair",
    "Structure", "dihedral", "representative_atom",
    "fetch_ca_structure", "parse_mmcif_backbone",
    # Ensemble aggregation
    "GraphAverager", "shared_sequence",
    "PhiPsiAverager", "phipsi_from_structure",
    # Constraints, engine seam, scoring
    "Constraint", "ConstraintKind", "ConstraintDeriver",
    "ReconstructionEngine", "run_engine",
    "ViolationChecker", "ViolationReport",
    # Configuration & errors
    "ParameterRegistry", "DEFAULT_PARAMETERS",
    "RigConsensusError", "ConstructionError", "EmptyInputError",
    "ConsensusStateError", "ExternalEngineError", "GeometryMismatchError",
    # Persistence
    "ConsensusStore", "StoredChain", "graph_to_dict", "graph_from_dict",
    "consensus_to_json", "consensus_from_json",
]
