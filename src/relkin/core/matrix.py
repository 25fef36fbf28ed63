"""Resizable symmetric matrix used as kinship accumulator and result.

Estimators only populate the lower triangle (row >= col) while streaming;
mirror_lower() restores full symmetry when the result is finalized.
"""

from __future__ import annotations

import numpy as np

from relkin.core.errors import DimensionMismatchError


class SymmetricMatrix:
    """Square float64 matrix indexed as ``M[row, col]``.

    Args:
        n: Initial dimension. The matrix starts zero-filled.

    Example:
        >>> m = SymmetricMatrix(2)
        >>> m[1, 0] = 0.25
        >>> m.mirror_lower()
        >>> m[0, 1]
        0.25
    """

    def __init__(self, n: int = 0) -> None:
        self._data = np.zeros((n, n), dtype=np.float64)

    @classmethod
    def from_array(cls, values: np.ndarray) -> SymmetricMatrix:
        """Build a matrix holding a copy of a square array.

        Raises:
            DimensionMismatchError: If ``values`` is not a square 2-D array.
        """
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 2 or values.shape[0] != values.shape[1]:
            raise DimensionMismatchError(
                f"Matrix must be square, got shape {values.shape}"
            )
        m = cls()
        m._data = values.copy()
        return m

    @property
    def data(self) -> np.ndarray:
        """The underlying array (live view, not a copy)."""
        return self._data

    @data.setter
    def data(self, values: np.ndarray) -> None:
        values = np.asarray(values, dtype=np.float64)
        if values.shape != self._data.shape:
            raise DimensionMismatchError(
                f"Cannot assign array of shape {values.shape} "
                f"to matrix of shape {self._data.shape}"
            )
        self._data = values

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def n_rows(self) -> int:
        return self._data.shape[0]

    @property
    def n_cols(self) -> int:
        return self._data.shape[1]

    def __len__(self) -> int:
        return self.n_rows

    def __getitem__(self, key: tuple[int, int]) -> float:
        return float(self._data[key])

    def __setitem__(self, key: tuple[int, int], value: float) -> None:
        self._data[key] = value

    def __repr__(self) -> str:
        return f"SymmetricMatrix(n={self.n_rows})"

    def resize(self, n: int) -> None:
        """Reallocate to an n x n zero matrix."""
        self._data = np.zeros((n, n), dtype=np.float64)

    def clear(self) -> None:
        """Zero every cell, keeping the current size."""
        self._data.fill(0.0)

    def mirror_lower(self) -> None:
        """Copy the lower triangle over the upper triangle."""
        lower = np.tril(self._data)
        self._data = lower + np.tril(self._data, k=-1).T

    def is_symmetric(self, rtol: float = 0.0, atol: float = 0.0) -> bool:
        return bool(np.allclose(self._data, self._data.T, rtol=rtol, atol=atol))

    def to_numpy(self) -> np.ndarray:
        """Return a copy of the matrix contents."""
        return self._data.copy()
