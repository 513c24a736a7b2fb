"""JSON persistence for graphs and consensus data.

Graphs are stored as nodes, canonical weighted edges and metadata.
Consensus intervals are stored as their raw votes (voters, voter
indices, values) plus, if finalised, the period and margin used.  The
bounds are written for readability but re-derived on load, so a reloaded
interval recentres to exactly what was saved.

A :class:`ConsensusStore` keeps one JSON file per ``(pdb_id, chain)``,
holding a consensus graph together with its distance intervals and
phi/psi squares.

Workflow
--------
>>> store = ConsensusStore("~/.rig_consensus/store")
>>> store.save("1UBQ", "A", graph, distances=intervals, angles=squares)
>>> graph, distances, angles, meta = store.load("1UBQ", "A")
>>> [(e.pdb_id, e.chain, e.n_contacts) for e in store.entries()]
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .consensus import ConsensusInterval, ConsensusSquare
from .errors import ConstructionError
from .graph import WeightedGraph

logger = logging.getLogger(__name__)

__all__ = [
    "ConsensusStore",
    "StoredChain",
    "graph_to_dict",
    "graph_from_dict",
    "interval_to_dict",
    "interval_from_dict",
    "square_to_dict",
    "square_from_dict",
    "consensus_to_json",
    "consensus_from_json",
]

FORMAT_VERSION = 1

StoredConsensus = Tuple[
    WeightedGraph,
    Dict[Tuple[int, int], ConsensusInterval],
    Dict[int, ConsensusSquare],
    Dict[str, Any],
]


# ═══════════════════════════════════════════════════════════════════
# Serialisation helpers
# ═══════════════════════════════════════════════════════════════════

def _numpy_safe(obj: Any) -> Any:
    """Recursively convert numpy scalars/arrays to native Python types."""
    if isinstance(obj, dict):
        return {k: _numpy_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_numpy_safe(v) for v in obj]
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


def graph_to_dict(graph: WeightedGraph) -> Dict[str, Any]:
    """Convert a WeightedGraph to a JSON-serialisable dict."""
    return _numpy_safe({
        "metadata": graph.metadata,
        "nodes": [[s, graph.residue_type(s)] for s in graph.nodes],
        "edges": [[e.i, e.j, e.weight] for e in graph.edges],
    })


def graph_from_dict(d: Dict[str, Any]) -> WeightedGraph:
    """Reconstruct a WeightedGraph from a dict."""
    meta = dict(d.get("metadata", {}))
    sequence = meta.pop("sequence", "")
    graph = WeightedGraph(sequence, **meta)
    for serial, residue_type in d.get("nodes", []):
        graph.add_node(int(serial), residue_type)
    for i, j, weight in d.get("edges", []):
        graph.add_edge(int(i), int(j), float(weight))
    return graph


def interval_to_dict(ci: ConsensusInterval) -> Dict[str, Any]:
    """Raw votes of *ci*, plus finalisation parameters if finalised."""
    d: Dict[str, Any] = {
        "voters": list(ci.voters),
        "voter_indices": list(ci.voter_indices),
        "values": list(ci.values),
    }
    if ci.finalized_with is not None:
        period, margin = ci.finalized_with
        d["finalized"] = {
            # JSON has no infinity; a missing period means "not periodic"
            "period": None if math.isinf(period) else period,
            "margin": margin,
            "beg": ci.beg,
            "end": ci.end,
        }
    return _numpy_safe(d)


def interval_from_dict(d: Dict[str, Any]) -> ConsensusInterval:
    """Rebuild a ConsensusInterval, recentring it if it was finalised.

    Raises
    ------
    ConstructionError
        If the re-derived bounds differ from the stored ones.
    """
    ci = ConsensusInterval.from_votes(d["voters"], d["values"],
                                      d["voter_indices"])
    fin = d.get("finalized")
    if fin is not None:
        period = math.inf if fin["period"] is None else fin["period"]
        bounds = ci.recenter_interval(period, fin["margin"])
        if "beg" in fin and (bounds.beg, bounds.end) != (fin["beg"], fin["end"]):
            raise ConstructionError(
                f"Stored bounds [{fin['beg']}, {fin['end']}] do not match "
                f"re-derived [{bounds.beg}, {bounds.end}]")
    return ci


def square_to_dict(square: ConsensusSquare) -> Dict[str, Any]:
    return {"dim1": interval_to_dict(square.dim1),
            "dim2": interval_to_dict(square.dim2)}


def square_from_dict(d: Dict[str, Any]) -> ConsensusSquare:
    return ConsensusSquare(interval_from_dict(d["dim1"]),
                           interval_from_dict(d["dim2"]))


def _consensus_payload(
    graph: WeightedGraph,
    distances: Optional[Mapping[Tuple[int, int], ConsensusInterval]],
    angles: Optional[Mapping[int, ConsensusSquare]],
    metadata: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "version": FORMAT_VERSION,
        "graph": graph_to_dict(graph),
        "distances": [
            {"i": i, "j": j, "interval": interval_to_dict(ci)}
            for (i, j), ci in sorted((distances or {}).items())
        ],
        "angles": [
            {"residue": residue, "square": square_to_dict(sq)}
            for residue, sq in sorted((angles or {}).items())
        ],
    }
    if metadata:
        payload["metadata"] = _numpy_safe(metadata)
    return payload


def consensus_to_json(
    graph: WeightedGraph,
    distances: Optional[Mapping[Tuple[int, int], ConsensusInterval]] = None,
    angles: Optional[Mapping[int, ConsensusSquare]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> str:
    """Serialise a consensus graph with its intervals to a JSON string."""
    return json.dumps(_consensus_payload(graph, distances, angles, metadata),
                      indent=2)


def consensus_from_json(text: str) -> StoredConsensus:
    """Deserialise from a JSON string.

    Returns
    -------
    graph : WeightedGraph
    distances : dict[(int, int), ConsensusInterval]
    angles : dict[int, ConsensusSquare]
    metadata : dict
    """
    payload = json.loads(text)
    version = payload.get("version")
    if version != FORMAT_VERSION:
        raise ConstructionError(
            f"Unsupported consensus file version {version!r} "
            f"(expected {FORMAT_VERSION})")
    graph = graph_from_dict(payload["graph"])
    distances = {
        (int(rec["i"]), int(rec["j"])): interval_from_dict(rec["interval"])
        for rec in payload.get("distances", [])
    }
    angles = {
        int(rec["residue"]): square_from_dict(rec["square"])
        for rec in payload.get("angles", [])
    }
    return graph, distances, angles, payload.get("metadata", {})


# ═══════════════════════════════════════════════════════════════════
# ConsensusStore — disk-backed store keyed by (pdb_id, chain)
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StoredChain:
    """What one stored file holds, read without rebuilding the graph."""

    pdb_id: str
    chain: str
    graph_id: str
    n_residues: int
    n_contacts: int
    n_distances: int
    n_angles: int


class ConsensusStore:
    """Disk store for consensus results.

    Holds one JSON file per protein chain under ``store_dir``, named
    ``<PDBID>_<chain>.json``.  Chain membership is tested with
    ``(pdb_id, chain) in store``.

    Parameters
    ----------
    store_dir : str or Path
        Directory for stored results.  Created on first write.
    """

    def __init__(self, store_dir: str | Path = "~/.rig_consensus/store"):
        self.store_dir = Path(store_dir).expanduser()

    def _file(self, pdb_id: str, chain: str) -> Path:
        return self.store_dir / f"{pdb_id.upper()}_{chain}.json"

    def __contains__(self, entry: Tuple[str, str]) -> bool:
        return self._file(*entry).exists()

    def save(
        self,
        pdb_id: str,
        chain: str,
        graph: WeightedGraph,
        distances: Optional[Mapping[Tuple[int, int], ConsensusInterval]] = None,
        angles: Optional[Mapping[int, ConsensusSquare]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Path:
        """Write one chain's consensus, replacing what was stored.

        Returns the file path.
        """
        self.store_dir.mkdir(parents=True, exist_ok=True)
        path = self._file(pdb_id, chain)
        payload = _consensus_payload(graph, distances, angles, metadata)
        payload["entry"] = {"pdb_id": pdb_id.upper(), "chain": chain}
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.debug(
            f"Stored consensus for {pdb_id}:{chain} "
            f"({graph.edge_count} contacts) at {path}")
        return path

    def load(self, pdb_id: str, chain: str) -> StoredConsensus:
        """Read one chain's consensus.

        Raises
        ------
        FileNotFoundError
            If nothing is stored for this chain.
        """
        path = self._file(pdb_id, chain)
        if not path.exists():
            raise FileNotFoundError(
                f"No stored consensus for {pdb_id}:{chain} at {path}")
        return consensus_from_json(path.read_text(encoding="utf-8"))

    def entries(self) -> List[StoredChain]:
        """Summaries of every stored chain, sorted by ``(pdb_id, chain)``.

        Files that are not consensus payloads are logged and skipped.
        """
        if not self.store_dir.exists():
            return []
        result = []
        for path in sorted(self.store_dir.glob("*.json")):
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
                entry = payload["entry"]
                graph = payload["graph"]
                result.append(StoredChain(
                    pdb_id=entry["pdb_id"],
                    chain=entry["chain"],
                    graph_id=graph.get("metadata", {}).get("identifier", ""),
                    n_residues=len(graph.get("nodes", [])),
                    n_contacts=len(graph.get("edges", [])),
                    n_distances=len(payload.get("distances", [])),
                    n_angles=len(payload.get("angles", [])),
                ))
            except (json.JSONDecodeError, KeyError, TypeError) as exc:
                logger.warning(f"Skipping {path.name}: not a consensus file ({exc!r})")
        return sorted(result, key=lambda e: (e.pdb_id, e.chain))

    def discard(self, pdb_id: str, chain: str) -> bool:
        """Delete one chain's file.  Returns False if nothing was stored."""
        path = self._file(pdb_id, chain)
        if not path.exists():
            return False
        path.unlink()
        logger.debug(f"Discarded stored consensus for {pdb_id}:{chain}")
        return True
