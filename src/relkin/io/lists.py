"""Plain-text side inputs: id lists, id maps and range lists.

All three are whitespace-delimited, header-less, with "#" comments.
"""

from collections.abc import Iterable, Mapping
from pathlib import Path

import numpy as np
from loguru import logger

from relkin.core.site_filter import GenomicRange, parse_range


def read_id_list(path: Path) -> list[str]:
    """First column of an id file, one individual per line."""
    column = np.loadtxt(path, dtype=str, usecols=(0,), ndmin=1, comments="#")
    return column.tolist()


def read_id_map(path: Path) -> dict[str, str]:
    """Old id -> new id from the first two columns of a file.

    Raises:
        ValueError: If an old id appears twice.
    """
    table = np.loadtxt(path, dtype=str, usecols=(0, 1), ndmin=2, comments="#")
    id_map: dict[str, str] = {}
    for old, new in table:
        if old in id_map:
            raise ValueError(f"Id {old!r} is remapped twice in {path}")
        id_map[old] = new
    return id_map


def read_range_file(path: Path) -> tuple[GenomicRange, ...]:
    """One chr:begin-end range per line (first column)."""
    column = np.loadtxt(path, dtype=str, usecols=(0,), ndmin=1, comments="#")
    return tuple(parse_range(text) for text in column)


def update_ids(ids: Iterable[str], id_map: Mapping[str, str]) -> list[str]:
    """Rename ids found in id_map and keep the others."""
    ids = list(ids)
    updated = [id_map.get(i, i) for i in ids]
    n_updated = sum(old != new for old, new in zip(ids, updated))
    logger.info(f"{n_updated} of {len(ids)} individuals have updated ids")
    return updated
