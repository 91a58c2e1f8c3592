"""
Command-line interface for EnsembleComp.

The CLI runs a complete comparison from trajectory files without any
Python programming. It's designed for:

1. **Comparison**: Per-atom and per-residue eta tables for two trajectories
2. **Inspection**: Frame, atom and residue counts of input files
3. **Index groups**: Listing the groups available in a GROMACS index file

Usage patterns:
    ensemblecomp compare open.xtc closed.xtc -s protein.pdb
    ensemblecomp inspect open.xtc closed.xtc protein.pdb
    ensemblecomp groups index.ndx
"""

from .main import cli, main

__all__ = ["cli", "main"]
