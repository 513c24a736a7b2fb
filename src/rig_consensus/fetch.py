"""Backbone coordinates from RCSB.

Pulls the mmCIF file for a PDB entry and keeps the backbone atoms
(N, CA, C, O) of one chain as a :class:`~rig_consensus.structure.Structure`.
Only alternate location ``A`` is kept; ligands and insertion codes are
ignored.
"""

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
import requests

from .structure import Structure

logger = logging.getLogger(__name__)

RCSB_DOWNLOAD_URL = "https://files.rcsb.org/download/{pdb_id}.cif"
BACKBONE_ATOMS = ("N", "CA", "C", "O")

_THREE_TO_ONE: Dict[str, str] = {
    "ALA": "A", "ARG": "R", "ASN": "N", "ASP": "D", "CYS": "C",
    "GLN": "Q", "GLU": "E", "GLY": "G", "HIS": "H", "ILE": "I",
    "LEU": "L", "LYS": "K", "MET": "M", "PHE": "F", "PRO": "P",
    "SER": "S", "THR": "T", "TRP": "W", "TYR": "Y", "VAL": "V",
}


def fetch_ca_structure(pdb_id: str, chain: Optional[str] = None,
                       atoms: Tuple[str, ...] = BACKBONE_ATOMS,
                       timeout: float = 15.0) -> Optional[Structure]:
    """Download *pdb_id* and return the backbone of *chain*.

    Parameters
    ----------
    pdb_id : str
        4-character PDB identifier.
    chain : str, optional
        ``label_asym_id`` of the chain.  Defaults to the first chain.
    atoms : tuple of str
        Atom names to keep.

    Returns
    -------
    Structure or None
        ``None`` if the download fails or no matching atoms are found.
    """
    url = RCSB_DOWNLOAD_URL.format(pdb_id=pdb_id)
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning(f"Download of {pdb_id} failed: {exc}")
        return None
    if resp.status_code != 200:
        logger.warning(f"Download of {pdb_id} returned HTTP {resp.status_code}")
        return None
    return parse_mmcif_backbone(resp.text, chain=chain, atoms=atoms,
                                identifier=pdb_id.upper())


def parse_mmcif_backbone(text: str, chain: Optional[str] = None,
                         atoms: Tuple[str, ...] = BACKBONE_ATOMS,
                         identifier: str = "") -> Optional[Structure]:
    """Parse the ``_atom_site`` loop of an mmCIF document."""
    records: List[Dict[str, str]] = []
    col_names: List[str] = []
    in_atom_site = False

    for line in text.split("\n"):
        if line.startswith("_atom_site."):
            in_atom_site = True
            col_names.append(line.strip().split(".", 1)[1])
            continue
        if in_atom_site and line.startswith(("_", "#", "loop_")):
            break  # end of the _atom_site loop
        if in_atom_site and line.startswith("ATOM"):
            parts = line.split()
            if len(parts) >= len(col_names):
                records.append(dict(zip(col_names, parts)))

    selected: Dict[Tuple[int, str], np.ndarray] = {}
    residues: Dict[int, str] = {}
    chains = sorted({r.get("label_asym_id", "A") for r in records})
    if chain is None and chains:
        chain = chains[0]

    for rec in records:
        if rec.get("label_asym_id", "A") != chain:
            continue
        if rec.get("label_atom_id") not in atoms:
            continue
        if rec.get("label_alt_id", ".") not in (".", "A"):
            continue
        try:
            serial = int(rec["label_seq_id"])
            xyz = np.array([float(rec["Cartn_x"]), float(rec["Cartn_y"]),
                            float(rec["Cartn_z"])])
        except (KeyError, ValueError):
            continue
        selected.setdefault((serial, rec["label_atom_id"]), xyz)
        residues.setdefault(serial, _THREE_TO_ONE.get(
            rec.get("label_comp_id", ""), "X"))

    if not selected:
        logger.warning(f"No {'/'.join(atoms)} atoms for {identifier}:{chain}")
        return None

    sequence = ""
    if residues and min(residues) == 1 and max(residues) == len(residues):
        sequence = "".join(residues[s] for s in sorted(residues))
    return Structure(selected, sequence=sequence,
                     identifier=f"{identifier}{chain or ''}")
