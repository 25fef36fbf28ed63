"""Theoretical kinship from a declared pedigree.

Kinship coefficients follow the classical recurrence for diploids:

- founder self-kinship is 0.5 and unrelated founders have kinship 0;
- a non-founder's self-kinship is 0.5 + 0.5 * k(father, mother);
- a non-founder's kinship with anyone else is the mean of its parents'
  kinships with that individual.

Individuals are visited in topological order so both parents of any
non-founder are resolved before the individual itself. A person with only
one recorded parent is treated as having an unknown, unrelated founder as
the other parent.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import numpy as np
from loguru import logger

from relkin.core.errors import PedigreeError
from relkin.core.matrix import SymmetricMatrix


@dataclass(frozen=True)
class Person:
    """A pedigree record.

    Attributes:
        family_id: Family identifier (FID).
        person_id: Individual identifier (IID), unique within the family.
        father: IID of the father within the same family, or None.
        mother: IID of the mother within the same family, or None.
    """

    family_id: str
    person_id: str
    father: str | None = None
    mother: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.family_id, self.person_id)

    @property
    def is_founder(self) -> bool:
        return self.father is None and self.mother is None


class Pedigree:
    """Ordered collection of Person records with resolved parent links.

    Args:
        people: Records in output order. Parents must be present in the
            collection under the same family id.

    Raises:
        PedigreeError: On a duplicate (family_id, person_id) or a parent
            reference that is not in the collection.
    """

    def __init__(self, people: Iterable[Person]) -> None:
        self._people = list(people)
        self._index: dict[tuple[str, str], int] = {}
        for i, person in enumerate(self._people):
            if person.key in self._index:
                raise PedigreeError(
                    f"Duplicate person {person.person_id!r} "
                    f"in family {person.family_id!r}"
                )
            self._index[person.key] = i

        self._parents = np.full((len(self._people), 2), -1, dtype=np.int64)
        for i, person in enumerate(self._people):
            for slot, parent in enumerate((person.father, person.mother)):
                if parent is None:
                    continue
                key = (person.family_id, parent)
                if key not in self._index:
                    raise PedigreeError(
                        f"Parent {parent!r} of {person.person_id!r} "
                        f"not found in family {person.family_id!r}"
                    )
                self._parents[i, slot] = self._index[key]

    def __len__(self) -> int:
        return len(self._people)

    def __iter__(self) -> Iterator[Person]:
        return iter(self._people)

    def __getitem__(self, i: int) -> Person:
        return self._people[i]

    @property
    def people(self) -> list[Person]:
        return list(self._people)

    @property
    def family_ids(self) -> list[str]:
        return [p.family_id for p in self._people]

    @property
    def person_ids(self) -> list[str]:
        return [p.person_id for p in self._people]

    def index_of(self, family_id: str, person_id: str) -> int:
        """Position of a person in the pedigree order.

        Raises:
            KeyError: If the person is not in the pedigree.
        """
        return self._index[(family_id, person_id)]

    def parent_indices(self) -> np.ndarray:
        """(n, 2) array of father/mother positions, -1 for unknown."""
        return self._parents.copy()

    def founders(self) -> list[Person]:
        return [p for p in self._people if p.is_founder]

    def iteration_order(self) -> np.ndarray:
        """Topological order placing both parents before each child.

        Counts children per person, seeds the order with childless people,
        peels parents off as their last child is placed, then reverses.

        Raises:
            PedigreeError: If the pedigree contains a directed loop.
        """
        n = len(self._people)
        parent = self._parents
        n_children = np.zeros(n, dtype=np.int64)
        for i in range(n):
            for p in parent[i]:
                if p >= 0:
                    n_children[p] += 1

        order = np.empty(n, dtype=np.int64)
        insert = 0
        # reverse seed order keeps input order stable once reversed
        for i in range(n - 1, -1, -1):
            if n_children[i] == 0:
                order[insert] = i
                insert += 1

        i = 0
        while i < insert:
            c = order[i]
            i += 1
            for p in parent[c]:
                if p >= 0:
                    n_children[p] -= 1
                    if n_children[p] == 0:
                        order[insert] = p
                        insert += 1

        if i < n:
            raise PedigreeError("Pedigree contains a directed loop")
        return order[::-1].copy()


def compute_pedigree_kinship(pedigree: Pedigree) -> SymmetricMatrix:
    """Build the full theoretical kinship matrix of a pedigree.

    Rows and columns follow the pedigree's own order, not the iteration
    order.

    Args:
        pedigree: Loaded pedigree.

    Returns:
        Symmetric n x n kinship matrix.

    Raises:
        PedigreeError: If the pedigree contains a directed loop.

    Example:
        >>> ped = Pedigree([Person("f", "dad"), Person("f", "mom"),
        ...                 Person("f", "kid", "dad", "mom")])
        >>> compute_pedigree_kinship(ped)[0, 2]
        0.25
    """
    parent = pedigree.parent_indices()
    order = pedigree.iteration_order()
    n = len(pedigree)
    kinship = np.zeros((n, n), dtype=np.float64)

    for idx in range(n):
        i = order[idx]
        p, q = parent[i]
        if p >= 0 and q >= 0:
            kinship[i, i] = 0.5 + 0.5 * kinship[p, q]
        else:
            kinship[i, i] = 0.5

        prev = order[:idx]
        row = np.zeros(idx)
        for par in (p, q):
            if par >= 0:
                row += kinship[par, prev]
        kinship[i, prev] = kinship[prev, i] = 0.5 * row

    n_founders = len(pedigree.founders())
    logger.debug(
        f"Pedigree kinship: {n} individuals, {n_founders} founders, "
        f"{n - n_founders} non-founders"
    )
    return SymmetricMatrix.from_array(kinship)
