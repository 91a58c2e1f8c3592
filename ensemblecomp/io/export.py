"""
Result export for ensemble comparisons.

Writes eta tables in the plain tab-separated layout used by the classic
GROMACS ensemble comparison tools, so existing plotting scripts keep
working:

Per-atom table (1-based atom ids)::

    # ATOM	ETA
    1	0.412500
    2	0.387500

Per-residue table (residue number and name run together)::

    # RES	NATOMS	ETA
    1MET	19	0.462500
    2GLN	17	0.350000

A JSON export of the complete result, including the hyperparameters used,
is also available.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Union

from ..core.models import AtomEta, EtaResult, ResidueEta

logger = logging.getLogger(__name__)

ATOM_HEADER = "# ATOM\tETA"
RESIDUE_HEADER = "# RES\tNATOMS\tETA"


def format_atom_line(atom: AtomEta) -> str:
    """One per-atom table line; the stored 0-based index is written 1-based."""
    return f"{atom.output_id}\t{atom.eta:f}"


def format_residue_line(residue: ResidueEta) -> str:
    """One per-residue table line."""
    return f"{residue.label}\t{residue.n_atoms}\t{residue.eta:f}"


def export_atom_eta(
    atoms: Iterable[AtomEta],
    filepath: Union[str, Path],
) -> Path:
    """
    Write the per-atom eta table.

    Args:
        atoms: Atom eta records, in the order they should appear
        filepath: Output file path

    Returns:
        Path to created file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Saving eta values to {filepath}...")
    n = 0
    with open(filepath, "w") as f:
        f.write(ATOM_HEADER + "\n")
        for atom in atoms:
            f.write(format_atom_line(atom) + "\n")
            n += 1

    logger.debug(f"Wrote {n} atom eta values")
    return filepath


def export_residue_eta(
    residues: Iterable[ResidueEta],
    filepath: Union[str, Path],
) -> Path:
    """
    Write the per-residue eta table.

    Args:
        residues: Residue eta records, in topology order
        filepath: Output file path

    Returns:
        Path to created file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Saving residue eta values to {filepath}...")
    n = 0
    with open(filepath, "w") as f:
        f.write(RESIDUE_HEADER + "\n")
        for residue in residues:
            f.write(format_residue_line(residue) + "\n")
            n += 1

    logger.debug(f"Wrote {n} residue eta values")
    return filepath


def export_json(result: EtaResult, filepath: Union[str, Path]) -> Path:
    """Write the complete result, parameters included, as JSON."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    filepath.write_text(result.model_dump_json(indent=2))
    logger.info(f"Result saved to {filepath}")
    return filepath


def export_result(
    result: EtaResult,
    atom_path: Union[str, Path, None] = None,
    residue_path: Union[str, Path, None] = None,
    json_path: Union[str, Path, None] = None,
) -> dict[str, Path]:
    """
    Write every requested output of a run.

    Tables are only written when the result contains the matching values
    and a path was given.

    Returns:
        Mapping from output kind ("atom", "residue", "json") to path
    """
    written: dict[str, Path] = {}

    if atom_path is not None and result.atoms:
        written["atom"] = export_atom_eta(result.atoms, atom_path)
    if residue_path is not None and result.residues:
        written["residue"] = export_residue_eta(result.residues, residue_path)
    if json_path is not None:
        written["json"] = export_json(result, json_path)

    return written


def read_eta_table(filepath: Union[str, Path]) -> list[tuple[str, float]]:
    """
    Read back the identifier and eta columns of an eta table.

    Works for both table kinds: the identifier is the first column and eta
    the last one. Comment lines are skipped.
    """
    rows = []
    for line in Path(filepath).read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        fields = line.split("\t")
        rows.append((fields[0], float(fields[-1])))
    return rows
