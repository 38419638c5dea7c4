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
Dense linear-algebra kernel for the EKF

Matrices are EkfMatrix containers: one row-major list of floats plus explicit
row and column counts. Shapes are always read from the container and never
inferred from the buffer length. Every operation validates its operands
before touching any element and raises DimensionMismatchError on a mismatch.

Inversion uses Gauss-Jordan elimination with full pivoting. At each step the
pivot is the largest-magnitude element of the rows and columns not yet
reduced. Pivots below ``pivot_eps * max|a_ij|`` raise SingularMatrixError.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Optional

from tinyekf.ekf_errors import DimensionMismatchError
from tinyekf.ekf_errors import SingularMatrixError
from tinyekf.ekf_types import EkfMatrix


_LOG: logging.Logger = logging.getLogger(__name__)

# Default relative pivot threshold for mat_invert()
DEFAULT_PIVOT_EPS: float = 1.0e-12


def _validate_live(a: EkfMatrix, name: str) -> None:
    if a.released:
        raise DimensionMismatchError(f"{name} has been released")
    if len(a.data) != a.rows * a.cols:
        raise DimensionMismatchError(
            f"{name} must have length {a.rows * a.cols} for {a.rows}x{a.cols}"
        )


def _validate_same_shape(a: EkfMatrix, b: EkfMatrix) -> None:
    _validate_live(a, "a")
    _validate_live(b, "b")
    if a.rows != b.rows or a.cols != b.cols:
        raise DimensionMismatchError(
            f"shape mismatch: {a.rows}x{a.cols} vs {b.rows}x{b.cols}"
        )


def mat_alloc(rows: int, cols: int) -> EkfMatrix:
    """Allocate a zero-initialized matrix.

    Args:
        rows: Number of rows, must be positive
        cols: Number of columns, must be positive

    Returns:
        Zero matrix with shape (rows, cols)

    Raises:
        ValueError: If rows or cols is not positive
    """
    if rows <= 0 or cols <= 0:
        raise ValueError("rows and cols must be positive")
    return EkfMatrix(rows=rows, cols=cols, data=[0.0] * (rows * cols))


def mat_free(a: EkfMatrix) -> None:
    """Release the storage of a matrix.

    The container is left with shape 0x0 and any later kernel operation on it
    raises DimensionMismatchError. Releasing twice is a no-op.
    """
    a.data.clear()
    a.rows = 0
    a.cols = 0


def mat_identity(n: int) -> EkfMatrix:
    """Return the n x n identity matrix."""
    out: EkfMatrix = mat_alloc(n, n)
    for i in range(n):
        out.data[i * n + i] = 1.0
    return out


def mat_mul(a: EkfMatrix, b: EkfMatrix) -> EkfMatrix:
    """Multiply two matrices.

    Args:
        a: Left matrix with shape (a.rows, a.cols)
        b: Right matrix with shape (a.cols, b.cols)

    Returns:
        Matrix product with shape (a.rows, b.cols)

    Raises:
        DimensionMismatchError: If the inner dimensions differ
    """
    _validate_live(a, "a")
    _validate_live(b, "b")
    if a.cols != b.rows:
        raise DimensionMismatchError(
            f"cannot multiply {a.rows}x{a.cols} by {b.rows}x{b.cols}"
        )
    a_rows: int = a.rows
    a_cols: int = a.cols
    b_cols: int = b.cols
    a_data: list[float] = a.data
    b_data: list[float] = b.data
    out: list[float] = [0.0] * (a_rows * b_cols)
    for r in range(a_rows):
        row_base: int = r * a_cols
        for c in range(b_cols):
            total: float = 0.0
            for k in range(a_cols):
                total += a_data[row_base + k] * b_data[k * b_cols + c]
            out[r * b_cols + c] = total
    return EkfMatrix(rows=a_rows, cols=b_cols, data=out)


def mat_transpose(a: EkfMatrix) -> EkfMatrix:
    """Return the transpose of a matrix, with shape (a.cols, a.rows)."""
    _validate_live(a, "a")
    rows: int = a.rows
    cols: int = a.cols
    out: list[float] = [0.0] * (rows * cols)
    for r in range(rows):
        for c in range(cols):
            out[c * rows + r] = a.data[r * cols + c]
    return EkfMatrix(rows=cols, cols=rows, data=out)


def mat_add(a: EkfMatrix, b: EkfMatrix) -> None:
    """Add ``b`` into ``a`` in place.

    Raises:
        DimensionMismatchError: If the shapes differ
    """
    _validate_same_shape(a, b)
    a_data: list[float] = a.data
    for i, bi in enumerate(b.data):
        a_data[i] += bi


def mat_sub(a: EkfMatrix, b: EkfMatrix) -> EkfMatrix:
    """Return ``a - b`` as a new matrix.

    Raises:
        DimensionMismatchError: If the shapes differ
    """
    _validate_same_shape(a, b)
    return EkfMatrix(
        rows=a.rows,
        cols=a.cols,
        data=[ai - bi for ai, bi in zip(a.data, b.data, strict=True)],
    )


def mat_invert(a: EkfMatrix, pivot_eps: float = DEFAULT_PIVOT_EPS) -> EkfMatrix:
    """Invert a square matrix by Gauss-Jordan elimination with full pivoting.

    The input is left untouched. Row swaps move each pivot onto the diagonal
    and the column permutation they imply is undone on the result at the end.

    The pivot threshold is ``pivot_eps * max|a_ij|``, one scale for the whole
    matrix. A matrix whose entries span more than ``1 / pivot_eps`` in
    magnitude, such as ``diag(1e6, 1e-7)`` with the default threshold, is
    reported as singular even though it is invertible. Rescale the state or
    measurement units, or pass a smaller ``pivot_eps``, when S mixes units
    that far apart.

    Args:
        a: Square matrix to invert
        pivot_eps: Relative pivot threshold, scaled by the largest entry
            magnitude of ``a``

    Returns:
        Inverse of ``a``

    Raises:
        DimensionMismatchError: If ``a`` is not square
        SingularMatrixError: If a pivot magnitude falls below the threshold
        ValueError: If ``a`` holds non-finite values or pivot_eps <= 0
    """
    _validate_live(a, "a")
    if a.rows != a.cols:
        raise DimensionMismatchError(f"cannot invert non-square {a.rows}x{a.cols}")
    if pivot_eps <= 0.0:
        raise ValueError("pivot_eps must be positive")
    if not is_finite_seq(a.data):
        raise ValueError("a must contain only finite values")

    n: int = a.rows
    work: list[list[float]] = a.to_rows()

    scale: float = max(abs(value) for value in a.data)
    threshold: float = pivot_eps * scale if scale > 0.0 else pivot_eps

    used: list[bool] = [False] * n
    pivot_rows: list[int] = [0] * n
    pivot_cols: list[int] = [0] * n

    for step in range(n):
        big: float = -1.0
        irow: int = 0
        icol: int = 0
        for j in range(n):
            if used[j]:
                continue
            row_j: list[float] = work[j]
            for k in range(n):
                if used[k]:
                    continue
                mag: float = abs(row_j[k])
                if mag > big:
                    big = mag
                    irow = j
                    icol = k
        used[icol] = True

        if irow != icol:
            work[irow], work[icol] = work[icol], work[irow]
        pivot_rows[step] = irow
        pivot_cols[step] = icol

        pivot_row: list[float] = work[icol]
        pivot: float = pivot_row[icol]
        if abs(pivot) < threshold:
            raise SingularMatrixError(
                f"pivot {pivot:.3e} at step {step} is below {threshold:.3e}"
            )

        inv_pivot: float = 1.0 / pivot
        # Replace the pivot in place so the inverse accumulates in ``work``
        pivot_row[icol] = 1.0
        for c in range(n):
            pivot_row[c] *= inv_pivot

        for r in range(n):
            if r == icol:
                continue
            row_r: list[float] = work[r]
            factor: float = row_r[icol]
            if factor == 0.0:
                continue
            row_r[icol] = 0.0
            for c in range(n):
                row_r[c] -= factor * pivot_row[c]

    for step in reversed(range(n)):
        irow = pivot_rows[step]
        icol = pivot_cols[step]
        if irow == icol:
            continue
        for row in work:
            row[irow], row[icol] = row[icol], row[irow]

    return EkfMatrix.from_rows(work)


def mat_max_asymmetry(a: EkfMatrix) -> float:
    """Return ``max |a_ij - a_ji|`` for a square matrix."""
    _validate_live(a, "a")
    if a.rows != a.cols:
        raise DimensionMismatchError("asymmetry requires a square matrix")
    n: int = a.rows
    worst: float = 0.0
    for r in range(n):
        for c in range(r + 1, n):
            worst = max(worst, abs(a.data[r * n + c] - a.data[c * n + r]))
    return worst


def is_finite_seq(values: Sequence[float]) -> bool:
    """Return True when all values are finite."""
    return all(math.isfinite(value) for value in values)


def mat_format(a: EkfMatrix, precision: int = 6) -> str:
    """Format a matrix as aligned text rows."""
    if a.released:
        return "<released>"
    lines: list[str] = []
    for row in a.to_rows():
        lines.append(" ".join(f"{value:+.{precision}e}" for value in row))
    return "\n".join(lines)


def mat_dump(
    a: EkfMatrix,
    name: str = "matrix",
    logger: Optional[logging.Logger] = None,
) -> None:
    """Write a matrix to the debug log.

    This is an observability hook only. It has no effect on control flow.
    """
    log: logging.Logger = logger if logger is not None else _LOG
    if not log.isEnabledFor(logging.DEBUG):
        return
    log.debug("%s (%dx%d):\n%s", name, a.rows, a.cols, mat_format(a))
