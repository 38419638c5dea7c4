################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""
Types and helpers for the EKF

Matrices are stored as a single row-major list of floats together with an
explicit row and column count. Element (r, c) of a matrix with ``cols``
columns is stored at ``data[r * cols + c]``. Vectors are column matrices with
``cols == 1``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from typing import Sequence


# Reject reasons reported by TinyEkf.update()
REJECT_DIMENSION_MISMATCH: str = "dimension_mismatch"
REJECT_INVALID_MEASUREMENT: str = "invalid_measurement"
REJECT_INVALID_PREDICTION: str = "invalid_prediction"
REJECT_SINGULAR_INNOVATION: str = "singular_innovation_covariance"


@dataclass(slots=True)
class EkfMatrix:
    """
    Dense row-major matrix with explicit shape

    Fields:
        rows: Number of rows in the matrix
        cols: Number of columns in the matrix
        data: Row-major matrix entries, length rows * cols

    A released matrix (see mat_free) has rows == cols == 0 and no data.
    """

    rows: int
    cols: int
    data: list[float]

    def __post_init__(self) -> None:
        if self.rows < 0 or self.cols < 0:
            raise ValueError("rows and cols must be non-negative")
        if len(self.data) != self.rows * self.cols:
            raise ValueError(
                f"data must have length {self.rows * self.cols} "
                f"for {self.rows}x{self.cols}"
            )

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> EkfMatrix:
        """Build a matrix from a nested sequence of rows."""
        if len(rows) == 0 or len(rows[0]) == 0:
            raise ValueError("rows must be non-empty")
        cols: int = len(rows[0])
        data: list[float] = []
        for row in rows:
            if len(row) != cols:
                raise ValueError("rows must all have the same length")
            data.extend(float(value) for value in row)
        return cls(rows=len(rows), cols=cols, data=data)

    @classmethod
    def column(cls, values: Sequence[float]) -> EkfMatrix:
        """Build a column vector from a flat sequence."""
        if len(values) == 0:
            raise ValueError("values must be non-empty")
        return cls(rows=len(values), cols=1, data=[float(v) for v in values])

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def released(self) -> bool:
        return self.rows == 0 and self.cols == 0

    def get(self, r: int, c: int) -> float:
        """Return the entry at (r, c)."""
        self._check_index(r, c)
        return self.data[r * self.cols + c]

    def set(self, r: int, c: int, value: float) -> None:
        """Set the entry at (r, c)."""
        self._check_index(r, c)
        self.data[r * self.cols + c] = float(value)

    def copy(self) -> EkfMatrix:
        return EkfMatrix(rows=self.rows, cols=self.cols, data=list(self.data))

    def to_rows(self) -> list[list[float]]:
        """Return the entries as a list of row lists."""
        return [
            self.data[r * self.cols : (r + 1) * self.cols] for r in range(self.rows)
        ]

    def to_list(self) -> list[float]:
        """Return a flat row-major copy of the entries."""
        return list(self.data)

    def _check_index(self, r: int, c: int) -> None:
        if r < 0 or r >= self.rows or c < 0 or c >= self.cols:
            raise IndexError("row or column index out of range")


@dataclass(frozen=True)
class EkfUpdateResult:
    """
    Outcome of a successful correction step

    Fields:
        state: A-posteriori state estimate X, n x 1
        covariance: A-posteriori covariance P, n x n
        gain: Kalman gain G used for the correction, n x m
    """

    state: EkfMatrix
    covariance: EkfMatrix
    gain: EkfMatrix


@dataclass(frozen=True)
class EkfUpdateReport:
    """
    Diagnostics payload delivered after every update attempt

    Fields:
        accepted: True when the correction was committed
        reject_reason: Reason string when the update is rejected, else None
        z: Measurement vector, as received
        z_hat: Predicted measurement g(Xp), empty if not yet available
        nu: Innovation z - z_hat, empty if not yet available
        s: Innovation covariance H Pp H^T + R, None if not yet available
        gain: Kalman gain, None on rejection
        pp_asymmetry: max |Pp - Pp^T| of the predicted covariance, 0.0 when
            Pp was not computed
        p_asymmetry: max |P - P^T| of the covariance after the attempt
    """

    accepted: bool
    reject_reason: Optional[str]
    z: list[float]
    z_hat: list[float]
    nu: list[float]
    s: Optional[EkfMatrix]
    gain: Optional[EkfMatrix]
    pp_asymmetry: float
    p_asymmetry: float
