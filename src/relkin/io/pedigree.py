"""Pedigree loading from PLINK .ped/.fam style tables.

Only the first four whitespace-delimited columns are used: family id,
individual id, father id, mother id. "0", "-9", "NA" and "." mark an
unknown parent.
"""

from pathlib import Path

import numpy as np
from loguru import logger

from relkin.kinship.pedigree import Pedigree, Person

UNKNOWN_PARENT = frozenset({"0", "-9", "NA", "."})


def _parent(value: str) -> str | None:
    return None if value in UNKNOWN_PARENT else value


def read_pedigree(path: Path) -> Pedigree:
    """Load a pedigree, adding undeclared parents as founders.

    A parent referenced in the father/mother columns but without its own
    row is added as a founder of the child's family, after all declared
    individuals.

    Args:
        path: Path to a .ped or .fam file (header-less, whitespace-delimited).

    Returns:
        Pedigree with declared individuals first, in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file has fewer than four columns.
        PedigreeError: On duplicate individuals or a directed loop.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pedigree file not found: {path}")

    table = np.loadtxt(path, dtype=str, usecols=(0, 1, 2, 3), ndmin=2, comments="#")

    people = [
        Person(family_id=fid, person_id=iid, father=_parent(pat), mother=_parent(mat))
        for fid, iid, pat, mat in table
    ]

    declared = {p.key for p in people}
    implied: dict[tuple[str, str], Person] = {}
    for person in people:
        for parent in (person.father, person.mother):
            key = (person.family_id, parent)
            if parent is not None and key not in declared and key not in implied:
                implied[key] = Person(family_id=person.family_id, person_id=parent)

    if implied:
        logger.info(f"Added {len(implied)} undeclared parents as founders")

    pedigree = Pedigree([*people, *implied.values()])
    logger.info(
        f"Loaded pedigree: {len(pedigree)} individuals, "
        f"{len(set(pedigree.family_ids))} families"
    )
    return pedigree
