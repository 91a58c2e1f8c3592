"""
Result emission for EnsembleComp.

Per-atom and per-residue eta tables in the tab-separated layout of the
GROMACS ensemble comparison tools, plus a JSON dump of complete results.
"""

from .export import (
    ATOM_HEADER,
    RESIDUE_HEADER,
    export_atom_eta,
    export_json,
    export_residue_eta,
    export_result,
    format_atom_line,
    format_residue_line,
    read_eta_table,
)

__all__ = [
    "export_atom_eta",
    "export_residue_eta",
    "export_json",
    "export_result",
    "format_atom_line",
    "format_residue_line",
    "read_eta_table",
    "ATOM_HEADER",
    "RESIDUE_HEADER",
]
