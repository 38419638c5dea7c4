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
Model interfaces injected into the EKF

A process model maps the current state X to the one-step prediction Xp and
the Jacobian fy = df/dX evaluated at Xp. A measurement model maps Xp to the
predicted measurement g(Xp) and the Jacobian H = dg/dX evaluated at Xp.

Any callable with the matching signature satisfies the protocols: plain
functions, closures, bound methods, or objects defining ``__call__``.
Predicted vectors may be returned either as column EkfMatrix values or as
flat float sequences.
"""

from __future__ import annotations

from typing import Protocol
from typing import Sequence
from typing import Union

from tinyekf.ekf_linalg import mat_mul
from tinyekf.ekf_types import EkfMatrix


VectorLike = Union[EkfMatrix, Sequence[float]]


class ProcessModel(Protocol):
    """Protocol for state-transition models."""

    def __call__(self, state: EkfMatrix) -> tuple[VectorLike, EkfMatrix]: ...


class MeasurementModel(Protocol):
    """Protocol for measurement models."""

    def __call__(
        self, predicted_state: EkfMatrix
    ) -> tuple[VectorLike, EkfMatrix]: ...


class LinearProcessModel:
    """
    Linear state transition ``Xp = F X`` with constant Jacobian ``F``
    """

    def __init__(self, f: EkfMatrix) -> None:
        if f.rows != f.cols or f.rows <= 0:
            raise ValueError("f must be a non-empty square matrix")
        self._f: EkfMatrix = f.copy()

    @property
    def f(self) -> EkfMatrix:
        return self._f.copy()

    def __call__(self, state: EkfMatrix) -> tuple[VectorLike, EkfMatrix]:
        return mat_mul(self._f, state), self._f.copy()


class LinearMeasurementModel:
    """
    Linear measurement ``z_hat = H Xp`` with constant Jacobian ``H``
    """

    def __init__(self, h: EkfMatrix) -> None:
        if h.rows <= 0 or h.cols <= 0:
            raise ValueError("h must be non-empty")
        self._h: EkfMatrix = h.copy()

    @property
    def h(self) -> EkfMatrix:
        return self._h.copy()

    def __call__(self, predicted_state: EkfMatrix) -> tuple[VectorLike, EkfMatrix]:
        return mat_mul(self._h, predicted_state), self._h.copy()
