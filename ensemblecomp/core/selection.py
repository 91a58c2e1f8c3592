"""
Index-group handling for EnsembleComp.

Index groups restrict a comparison to an explicit, ordered subset of atoms.
They are read from GROMACS ``.ndx`` files, a plain-text format made of
``[ name ]`` headers each followed by whitespace-separated 1-based atom
numbers:

    [ Protein ]
       1    2    3    4    5
       6    7    8

Atom numbers are converted to the 0-based indexing used everywhere else
in the package.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Union

import numpy as np

from .errors import DataInconsistencyError, UnsupportedFormatError
from .models import AtomSelection

logger = logging.getLogger(__name__)

INDEX_SUFFIXES = {".ndx"}

_HEADER = re.compile(r"^\[\s*(.+?)\s*\]$")


def parse_index_groups(text: str) -> dict[str, AtomSelection]:
    """
    Parse the contents of an index file.

    Args:
        text: File contents

    Returns:
        Ordered mapping from group name to selection (0-based indices)

    Raises:
        DataInconsistencyError: If atom numbers appear before any group
            header or are not positive integers
    """
    groups: dict[str, list[int]] = {}
    current: Optional[str] = None

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.split(";", 1)[0].strip()
        if not line:
            continue

        header = _HEADER.match(line)
        if header:
            current = header.group(1)
            # Repeated names are merged, as GROMACS appends to the group
            groups.setdefault(current, [])
            continue

        if current is None:
            raise DataInconsistencyError(
                f"Line {line_no}: atom numbers found before any [ group ] header"
            )

        for token in line.split():
            try:
                number = int(token)
            except ValueError as e:
                raise DataInconsistencyError(
                    f"Line {line_no}: invalid atom number {token!r} in group {current!r}"
                ) from e
            if number < 1:
                raise DataInconsistencyError(
                    f"Line {line_no}: atom numbers are 1-based, got {number}"
                )
            groups[current].append(number - 1)

    return {
        name: AtomSelection(np.array(ids, dtype=np.int64), name=name)
        for name, ids in groups.items()
    }


def read_index_groups(path: Union[str, Path]) -> dict[str, AtomSelection]:
    """
    Read all groups from an index file.

    Args:
        path: Path to a ``.ndx`` file

    Returns:
        Ordered mapping from group name to selection

    Raises:
        UnsupportedFormatError: If the file is not a ``.ndx`` file
    """
    path = Path(path)
    if path.suffix.lower() not in INDEX_SUFFIXES:
        raise UnsupportedFormatError(
            f"Index groups must be read from a .ndx file, got: {path}"
        )

    groups = parse_index_groups(path.read_text())
    logger.debug(f"Read {len(groups)} index group(s) from {path}")
    return groups


def read_index_group(
    path: Union[str, Path],
    group: Optional[str] = None,
) -> AtomSelection:
    """
    Read one atom selection from an index file.

    Args:
        path: Path to a ``.ndx`` file
        group: Group name (None = first group in the file)

    Returns:
        AtomSelection with 0-based atom indices

    Raises:
        DataInconsistencyError: If the file has no groups, the group is
            unknown, or the group is empty
    """
    groups = read_index_groups(path)

    if not groups:
        raise DataInconsistencyError(f"No index groups found in {path}")

    if group is None:
        group = next(iter(groups))
    elif group not in groups:
        raise DataInconsistencyError(
            f"Group '{group}' not found in {path}. Available: {list(groups)}"
        )

    selection = groups[group]
    if len(selection) == 0:
        raise DataInconsistencyError(f"Index group '{group}' in {path} is empty")

    logger.info(f"Using index group '{group}' ({len(selection)} atoms) from {path}")
    return selection


def check_selection_bounds(selection: AtomSelection, n_atoms: int, label: str) -> None:
    """
    Verify that every index of a selection addresses an existing atom.

    Raises:
        DataInconsistencyError: If an index is negative or >= n_atoms
    """
    if len(selection) == 0:
        return
    lo, hi = int(selection.indices.min()), int(selection.indices.max())
    if lo < 0 or hi >= n_atoms:
        raise DataInconsistencyError(
            f"Index group '{selection.name}' for {label} references atom {hi + 1 if hi >= n_atoms else lo + 1}, "
            f"but the trajectory has only {n_atoms} atoms"
        )
