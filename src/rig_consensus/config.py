"""ParameterRegistry — the tunable numbers of the consensus pipeline.

Margins, vote thresholds, force constants and tolerances have no
derivation beyond "this is what worked"; they are configuration
defaults, not laws of nature.  They live here as dotted keys so a
caller can:

* **read** — ``params["consensus.margin"]``
* **override** — ``params.replace({"consensus.margin": 3.0})``
* **compare** — ``params.diff(DEFAULT_PARAMETERS)``

Usage
-----
>>> from rig_consensus.config import DEFAULT_PARAMETERS
>>> DEFAULT_PARAMETERS["violations.tolerance"]
0.5
>>> loose = DEFAULT_PARAMETERS.replace({"violations.tolerance": 1.0},
...                                    name="loose")
>>> loose.diff(DEFAULT_PARAMETERS)
{'violations.tolerance': (1.0, 0.5)}
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

__all__ = [
    "ParameterRegistry",
    "DEFAULT_PARAMETERS",
]


# ═══════════════════════════════════════════════════════════════════
# ParameterRegistry
# ═══════════════════════════════════════════════════════════════════

class ParameterRegistry:
    """Read-only mapping of ``"section.name"`` keys to float values.

    Parameters
    ----------
    data : dict[str, float]
        Parameter values.
    name : str, optional
        Label shown in ``repr`` (e.g. ``"default"``, ``"loose"``).
    """

    def __init__(self, data: Dict[str, float], *, name: str = "custom"):
        self._values: Dict[str, float] = {k: float(v) for k, v in data.items()}
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def __getitem__(self, key: str) -> float:
        return self._values[key]

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __setitem__(self, key: str, value: float):
        raise TypeError(
            f"ParameterRegistry {self._name!r} is read-only; "
            f"use .replace({{{key!r}: ...}})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParameterRegistry):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"ParameterRegistry({self._name!r}, {len(self._values)} keys)"

    def get(self, key: str, default: Optional[float] = None) -> Optional[float]:
        return self._values.get(key, default)

    def to_dict(self) -> Dict[str, float]:
        """Return a mutable copy."""
        return dict(self._values)

    def replace(
        self,
        overrides: Dict[str, float],
        *,
        name: Optional[str] = None,
    ) -> "ParameterRegistry":
        """Return a new registry with *overrides* applied.

        Raises
        ------
        KeyError
            If an override names a key this registry does not define.
        """
        unknown = sorted(k for k in overrides if k not in self._values)
        if unknown:
            raise KeyError(
                f"Unknown parameter key(s) {unknown}. "
                f"Valid keys: {sorted(self._values)}")
        values = dict(self._values)
        values.update(overrides)
        return ParameterRegistry(values, name=name or f"{self._name}+")

    def diff(
        self, other: "ParameterRegistry",
    ) -> Dict[str, Tuple[Optional[float], Optional[float]]]:
        """Return ``{key: (mine, theirs)}`` for every key that differs."""
        out = {}
        for key in sorted(set(self._values) | set(other._values)):
            mine = self._values.get(key)
            theirs = other._values.get(key)
            if mine != theirs:
                out[key] = (mine, theirs)
        return out

    def section(self, prefix: str) -> Dict[str, float]:
        """All keys under ``prefix.``, e.g. ``section("constraints")``."""
        return {
            k: v for k, v in self._values.items()
            if k.startswith(prefix + ".")
        }


# ═══════════════════════════════════════════════════════════════════
# DEFAULT_PARAMETERS
# ═══════════════════════════════════════════════════════════════════

_DEFAULT_DATA: Dict[str, float] = {

    # ── consensus: interval finalisation and voting ────────────
    "consensus.margin": 2.0,            # padding on both interval ends
    "consensus.angle_period": 360.0,    # dihedral period (degrees)
    "consensus.vote_threshold": 0.5,    # minimum fraction of voters
    "consensus.angle_window": 20.0,     # phi/psi clustering window

    # ── constraints: bound derivation ──────────────────────────
    "constraints.force_constant_distance": 100.0,
    "constraints.force_constant_angle": 1.0,
    "constraints.min_distance": 3.0,            # hard-sphere Cα lower bound
    "constraints.backbone_ca_distance": 3.8,    # consecutive Cα–Cα

    # ── violations ─────────────────────────────────────────────
    "violations.tolerance": 0.5,        # Å added to the nominal cutoff

    # ── graph ──────────────────────────────────────────────────
    "graph.default_weight": 1.0,
    "graph.default_cutoff": 8.0,        # Å, Cα contact definition
}


DEFAULT_PARAMETERS: ParameterRegistry = ParameterRegistry(
    _DEFAULT_DATA, name="default",
)
"""Defaults used when no registry is passed explicitly."""
