"""Consensus contact graphs from an ensemble of per-model graphs.

Every model of the same protein gets one vote per contact.  From the
vote table :class:`GraphAverager` derives

* a **consensus graph** — contacts present in at least
  ``ceil(n_models * threshold)`` models,
* an **average graph** — every voted contact, weighted by the fraction
  of models containing it,
* per-model **consensus scores** — how much a model agrees with the
  ensemble, a rough quality estimate also used to prune the ensemble,
* **overlap** counts — contacts shared by two models, or by every pair,
* per-contact **distance consensus** — one
  :class:`~rig_consensus.consensus.ConsensusInterval` per contact,
  voters being the models and values their measured distances.

All models must share residue numbering; :func:`shared_sequence` checks
that before any vote is counted.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Dict, List, Mapping, Optional, Tuple

from .config import DEFAULT_PARAMETERS
from .consensus import ConsensusInterval
from .errors import ConstructionError
from .graph import WeightedGraph
from .structure import Structure, representative_atom

logger = logging.getLogger(__name__)

__all__ = [
    "GraphAverager",
    "shared_sequence",
]


def shared_sequence(graphs: Mapping[str, WeightedGraph]) -> str:
    """Return the sequence common to all *graphs*.

    Raises
    ------
    ConstructionError
        If *graphs* is empty or the sequences differ.
    """
    if not graphs:
        raise ConstructionError("No graphs given")
    by_sequence: Dict[str, List[str]] = defaultdict(list)
    for tag in sorted(graphs):
        by_sequence[graphs[tag].sequence].append(tag)
    if len(by_sequence) > 1:
        detail = "; ".join(
            f"{tags} -> length {len(seq)}" for seq, tags in by_sequence.items())
        raise ConstructionError(f"Graphs do not share a sequence: {detail}")
    return next(iter(by_sequence))


class GraphAverager:
    """Vote table over an ensemble of residue-interaction graphs.

    Parameters
    ----------
    graphs : mapping of str to WeightedGraph
        One graph per model, keyed by model tag.  Voter indices follow
        the sorted tag order.
    sequence : str, optional
        Expected target sequence; must match the graphs' sequence.
    """

    def __init__(self, graphs: Mapping[str, WeightedGraph],
                 sequence: Optional[str] = None):
        common = shared_sequence(graphs)
        if sequence is not None and sequence != common:
            raise ConstructionError(
                "Target sequence does not match the sequence of the graphs")
        self.sequence = common
        self.tags: List[str] = sorted(graphs)
        self._graphs = dict(graphs)
        first = self._graphs[self.tags[0]]
        self.contact_type = first.contact_type
        self.cutoff = first.cutoff

        self._voters: Dict[Tuple[int, int], List[str]] = defaultdict(list)
        for tag in self.tags:
            for edge in self._graphs[tag].edges:
                self._voters[edge.pair].append(tag)
        logger.info(
            f"Counted votes of {len(self.tags)} models: "
            f"{len(self._voters)} distinct contacts")

    @property
    def n_models(self) -> int:
        return len(self.tags)

    @property
    def contact_votes(self) -> Dict[Tuple[int, int], int]:
        """``{(i, j): number of models containing the contact}``."""
        return {pair: len(v) for pair, v in sorted(self._voters.items())}

    def voters(self, i: int, j: int) -> List[str]:
        """Model tags that contain contact ``(i, j)``."""
        key = (i, j) if i <= j else (j, i)
        return list(self._voters.get(key, ()))

    def _new_graph(self, identifier: str) -> WeightedGraph:
        return WeightedGraph(self.sequence, identifier=identifier,
                             contact_type=self.contact_type, cutoff=self.cutoff)

    def consensus_graph(self, threshold: Optional[float] = None) -> WeightedGraph:
        """Contacts voted by at least ``ceil(n_models * threshold)`` models.

        Edge weights are vote fractions.
        """
        if threshold is None:
            threshold = DEFAULT_PARAMETERS["consensus.vote_threshold"]
        if not 0.0 < threshold <= 1.0:
            raise ValueError(f"threshold must be in (0, 1], got {threshold}")
        min_votes = math.ceil(self.n_models * threshold)
        graph = self._new_graph(f"consensus_{threshold:g}")
        for (i, j), tags in sorted(self._voters.items()):
            if len(tags) >= min_votes:
                graph.add_edge(i, j, len(tags) / self.n_models)
        return graph

    def average_graph(self) -> WeightedGraph:
        """Union of all contacts weighted by vote fraction."""
        graph = self._new_graph("average")
        for (i, j), tags in sorted(self._voters.items()):
            graph.add_edge(i, j, len(tags) / self.n_models)
        return graph

    def consensus_score(self, tag: str, normalize_by_nodes: bool = False,
                        normalize_by_models: bool = False) -> float:
        """Sum over the edges of model *tag* of the ensemble votes they got.

        Normalising by node count and ensemble size makes scores
        comparable across targets.
        """
        graph = self._graphs[tag]
        score = float(sum(len(self._voters[e.pair]) for e in graph.edges))
        if normalize_by_nodes:
            score /= max(len(self.sequence), graph.vertex_count, 1)
        if normalize_by_models:
            score /= self.n_models
        return score

    def ensemble_consensus_score(self) -> float:
        """Sum of the positive fully normalised consensus scores."""
        scores = (self.consensus_score(tag, True, True) for tag in self.tags)
        return sum(s for s in scores if s > 0)

    def filter_by_consensus_score(self, min_score: float) -> GraphAverager:
        """New averager over the models scoring at least *min_score*.

        Scores are normalised by node count and ensemble size of this
        averager.  ``self`` is left unchanged.

        Raises
        ------
        ConstructionError
            If no model reaches *min_score*.
        """
        kept = {tag: self._graphs[tag] for tag in self.tags
                if self.consensus_score(tag, True, True) >= min_score}
        if not kept:
            raise ConstructionError(
                f"No model has a consensus score >= {min_score}")
        logger.info(
            f"Kept {len(kept)} of {self.n_models} models with "
            f"consensus score >= {min_score}")
        return GraphAverager(kept, sequence=self.sequence)

    # ── overlap ─────────────────────────────────────────────────

    def pairwise_overlap(self, tag1: str, tag2: str) -> int:
        """Number of contacts of model *tag1* also present in *tag2*."""
        other = self._graphs[tag2]
        return sum(1 for e in self._graphs[tag1].edges if other.has_edge(e.i, e.j))

    def sum_of_pairs_overlap(self) -> int:
        """:meth:`pairwise_overlap` summed over all unordered model pairs."""
        return sum(self.pairwise_overlap(a, b)
                   for k, a in enumerate(self.tags) for b in self.tags[k + 1:])

    def top_contacts_graph(self, n: int) -> WeightedGraph:
        """The *n* most voted contacts, each with weight 1.

        Ties are broken by residue pair.  Fewer than *n* edges come back
        when the ensemble has fewer distinct contacts.
        """
        if n < 0:
            raise ValueError(f"n must be non-negative, got {n}")
        ranked = sorted(self._voters.items(), key=lambda kv: (-len(kv[1]), kv[0]))
        graph = self._new_graph(f"top_{n}")
        for (i, j), _ in ranked[:n]:
            graph.add_edge(i, j, 1.0)
        return graph

    # ── distances ───────────────────────────────────────────────

    def distance_consensus(
        self,
        structures: Mapping[str, Structure],
        graph: Optional[WeightedGraph] = None,
        contact_type: Optional[str] = None,
    ) -> Dict[Tuple[int, int], ConsensusInterval]:
        """One distance interval per contact of *graph*.

        Each model tag with a structure votes with its measured distance
        between the representative atoms.  Models missing an atom do not
        vote; contacts nobody could measure are left out.  The intervals
        are returned unfinalised.
        """
        if graph is None:
            graph = self.consensus_graph()
        atom = representative_atom(contact_type or self.contact_type)
        out: Dict[Tuple[int, int], ConsensusInterval] = {}
        for edge in graph.edges:
            ci = ConsensusInterval()
            for idx, tag in enumerate(self.tags):
                structure = structures.get(tag)
                if structure is None:
                    continue
                d = structure.distance(edge.i, edge.j, atom)
                if d is None:
                    logger.debug(f"{tag}: no {atom} for contact {edge.pair}")
                    continue
                ci.add_voter(idx, tag, d)
            if ci.vote_count == 0:
                logger.warning(
                    f"Contact {edge.pair} could not be measured in any model")
                continue
            out[edge.pair] = ci
        return out
