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
Extended Kalman Filter correction engine

Each call to TinyEkf.update() runs one predict+correct cycle:

1. ``Xp, fy = f(X)``: one step projection, also the linearization point,
   with ``fy`` the Jacobian of the process model at ``Xp``
2. ``gXp, H = g(Xp)``: predicted measurement and the Jacobian of the
   measurement model at ``Xp``
3. ``Pp = fy P fy^T + Q``: covariance of ``Xp``
4. ``S = H Pp H^T + R``: innovation covariance
5. ``G = Pp H^T S^{-1}``: Kalman gain
6. ``X = Xp + G (Z - gXp)``: a-posteriori state
7. ``P = (I - G H) Pp``: a-posteriori covariance

Every intermediate quantity is computed into scratch before anything is
committed, so a failed update leaves X, P and the last gain untouched.
"""

from __future__ import annotations

import logging
from typing import Callable
from typing import Optional
from typing import Sequence
from typing import Union

from tinyekf.ekf_config import DEFAULT_SYMMETRY_TOL
from tinyekf.ekf_config import EkfConfig
from tinyekf.ekf_errors import DimensionMismatchError
from tinyekf.ekf_errors import SingularMatrixError
from tinyekf.ekf_linalg import DEFAULT_PIVOT_EPS
from tinyekf.ekf_linalg import is_finite_seq
from tinyekf.ekf_linalg import mat_add
from tinyekf.ekf_linalg import mat_alloc
from tinyekf.ekf_linalg import mat_dump
from tinyekf.ekf_linalg import mat_free
from tinyekf.ekf_linalg import mat_identity
from tinyekf.ekf_linalg import mat_invert
from tinyekf.ekf_linalg import mat_max_asymmetry
from tinyekf.ekf_linalg import mat_mul
from tinyekf.ekf_linalg import mat_sub
from tinyekf.ekf_linalg import mat_transpose
from tinyekf.ekf_models import MeasurementModel
from tinyekf.ekf_models import ProcessModel
from tinyekf.ekf_models import VectorLike
from tinyekf.ekf_types import REJECT_DIMENSION_MISMATCH
from tinyekf.ekf_types import REJECT_INVALID_MEASUREMENT
from tinyekf.ekf_types import REJECT_INVALID_PREDICTION
from tinyekf.ekf_types import REJECT_SINGULAR_INNOVATION
from tinyekf.ekf_types import EkfMatrix
from tinyekf.ekf_types import EkfUpdateReport
from tinyekf.ekf_types import EkfUpdateResult


_LOG: logging.Logger = logging.getLogger(__name__)


MatrixLike = Union[EkfMatrix, Sequence[Sequence[float]]]
DiagnosticsCallback = Callable[[EkfUpdateReport], None]


def _as_column(value: VectorLike, size: int, name: str) -> EkfMatrix:
    if isinstance(value, EkfMatrix):
        if value.released:
            raise DimensionMismatchError(f"{name} has been released")
        if value.rows != size or value.cols != 1:
            raise DimensionMismatchError(
                f"{name} must be {size}x1, got {value.rows}x{value.cols}"
            )
        return value.copy()
    data: list[float]
    try:
        data = [float(v) for v in value]
    except (TypeError, ValueError) as exc:
        raise DimensionMismatchError(
            f"{name} must be a flat sequence of {size} floats"
        ) from exc
    if len(data) != size:
        raise DimensionMismatchError(f"{name} must have length {size}")
    return EkfMatrix(rows=size, cols=1, data=data)


def _as_matrix(value: MatrixLike, rows: int, cols: int, name: str) -> EkfMatrix:
    mat: EkfMatrix
    if isinstance(value, EkfMatrix):
        if value.released:
            raise DimensionMismatchError(f"{name} has been released")
        mat = value.copy()
    else:
        try:
            mat = EkfMatrix.from_rows(value)
        except (TypeError, ValueError) as exc:
            raise DimensionMismatchError(f"{name}: {exc}") from exc
    if mat.rows != rows or mat.cols != cols:
        raise DimensionMismatchError(
            f"{name} must be {rows}x{cols}, got {mat.rows}x{mat.cols}"
        )
    return mat


def _flatten(value: object) -> list[float]:
    if isinstance(value, EkfMatrix):
        return list(value.data)
    try:
        return [float(v) for v in value]  # type: ignore[attr-defined]
    except (TypeError, ValueError):
        return []


class TinyEkf:
    """
    EKF engine owning the state, covariance and noise matrices

    The state dimension ``n`` and measurement dimension ``m`` are fixed at
    construction. X, P, Q and R start zero-initialized and are set through
    the set_* methods or from an EkfConfig.

    An instance is not safe for concurrent use. Run one instance per logical
    filter; independent instances share no state.
    """

    def __init__(
        self,
        n: int,
        m: int,
        process_model: ProcessModel,
        measurement_model: MeasurementModel,
        *,
        pivot_eps: float = DEFAULT_PIVOT_EPS,
        symmetry_tol: float = DEFAULT_SYMMETRY_TOL,
        diagnostics_callback: Optional[DiagnosticsCallback] = None,
    ) -> None:
        if n <= 0 or m <= 0:
            raise ValueError("n and m must be positive")
        if not pivot_eps > 0.0:
            raise ValueError("pivot_eps must be positive")
        if not symmetry_tol > 0.0:
            raise ValueError("symmetry_tol must be positive")

        self._n: int = n
        self._m: int = m
        self._process_model: ProcessModel = process_model
        self._measurement_model: MeasurementModel = measurement_model
        self._pivot_eps: float = pivot_eps
        self._symmetry_tol: float = symmetry_tol
        self._diagnostics_callback: Optional[DiagnosticsCallback] = (
            diagnostics_callback
        )

        self._x: EkfMatrix = mat_alloc(n, 1)
        self._p: EkfMatrix = mat_alloc(n, n)
        self._q: EkfMatrix = mat_alloc(n, n)
        self._r: EkfMatrix = mat_alloc(m, m)
        self._gain: Optional[EkfMatrix] = None
        self._closed: bool = False

    @classmethod
    def from_config(
        cls,
        config: EkfConfig,
        process_model: ProcessModel,
        measurement_model: MeasurementModel,
        diagnostics_callback: Optional[DiagnosticsCallback] = None,
    ) -> TinyEkf:
        """Build an engine and apply the configured initial values."""
        config.validate()
        ekf: TinyEkf = cls(
            config.state_dim,
            config.meas_dim,
            process_model,
            measurement_model,
            pivot_eps=config.pivot_eps,
            symmetry_tol=config.symmetry_tol,
            diagnostics_callback=diagnostics_callback,
        )
        ekf.set_state(config.x0)
        ekf.set_covariance(config.p0)
        ekf.set_process_noise(config.q)
        ekf.set_measurement_noise(config.r)
        return ekf

    @property
    def n(self) -> int:
        return self._n

    @property
    def m(self) -> int:
        return self._m

    @property
    def state(self) -> EkfMatrix:
        """Copy of the current state estimate X, n x 1."""
        self._check_open()
        return self._x.copy()

    @property
    def covariance(self) -> EkfMatrix:
        """Copy of the current covariance P, n x n."""
        self._check_open()
        return self._p.copy()

    @property
    def gain(self) -> Optional[EkfMatrix]:
        """Copy of the last Kalman gain, or None before the first update."""
        self._check_open()
        return self._gain.copy() if self._gain is not None else None

    @property
    def process_noise(self) -> EkfMatrix:
        self._check_open()
        return self._q.copy()

    @property
    def measurement_noise(self) -> EkfMatrix:
        self._check_open()
        return self._r.copy()

    def set_state(self, x: VectorLike) -> None:
        """Replace the state estimate X."""
        self._check_open()
        x_new: EkfMatrix = _as_column(x, self._n, "x")
        if not is_finite_seq(x_new.data):
            raise ValueError("x must contain only finite values")
        mat_free(self._x)
        self._x = x_new

    def set_covariance(self, p: MatrixLike) -> None:
        """Replace the state covariance P."""
        self._check_open()
        p_new: EkfMatrix = self._checked_covariance(p, self._n, "p")
        mat_free(self._p)
        self._p = p_new

    def set_process_noise(self, q: MatrixLike) -> None:
        """Replace the process noise covariance Q."""
        self._check_open()
        q_new: EkfMatrix = self._checked_covariance(q, self._n, "q")
        mat_free(self._q)
        self._q = q_new

    def set_measurement_noise(self, r: MatrixLike) -> None:
        """Replace the measurement noise covariance R."""
        self._check_open()
        r_new: EkfMatrix = self._checked_covariance(r, self._m, "r")
        mat_free(self._r)
        self._r = r_new

    def update(self, z: VectorLike) -> EkfUpdateResult:
        """
        Fuse a measurement and return the a-posteriori state and covariance

        Args:
            z: Measurement, an m x 1 EkfMatrix or a length-m float sequence

        Returns:
            Copies of the new state, covariance and the Kalman gain

        Raises:
            DimensionMismatchError: If z or a model output has the wrong shape
            SingularMatrixError: If the innovation covariance is singular
            ValueError: If z, a model output or the innovation is not finite
            RuntimeError: If the engine has been closed
        """
        self._check_open()
        n: int = self._n

        z_vec: EkfMatrix
        try:
            z_vec = _as_column(z, self._m, "z")
        except DimensionMismatchError as exc:
            self._reject(REJECT_DIMENSION_MISMATCH, str(exc), z=_flatten(z))
            raise
        if not is_finite_seq(z_vec.data):
            self._reject(
                REJECT_INVALID_MEASUREMENT, "non-finite measurement", z=z_vec.data
            )
            raise ValueError("z must contain only finite values")

        x_pred: EkfMatrix
        fy: EkfMatrix
        z_hat: EkfMatrix
        h: EkfMatrix
        try:
            # 1
            x_pred_raw, fy_raw = self._process_model(self._x.copy())
            x_pred = _as_column(x_pred_raw, n, "predicted state")
            fy = _as_matrix(fy_raw, n, n, "process jacobian")

            # 2
            z_hat_raw, h_raw = self._measurement_model(x_pred.copy())
            z_hat = _as_column(z_hat_raw, self._m, "predicted measurement")
            h = _as_matrix(h_raw, self._m, n, "measurement jacobian")
        except DimensionMismatchError as exc:
            self._reject(REJECT_DIMENSION_MISMATCH, str(exc), z=z_vec.data)
            raise

        for part in (x_pred, fy, z_hat, h):
            if not is_finite_seq(part.data):
                self._reject(
                    REJECT_INVALID_PREDICTION,
                    "non-finite model output",
                    z=z_vec.data,
                    z_hat=z_hat.data,
                )
                raise ValueError("model outputs must contain only finite values")

        # 3
        pp: EkfMatrix = mat_mul(mat_mul(fy, self._p), mat_transpose(fy))
        mat_add(pp, self._q)
        pp_asymmetry: float = mat_max_asymmetry(pp)

        # 4
        h_t: EkfMatrix = mat_transpose(h)
        pp_h_t: EkfMatrix = mat_mul(pp, h_t)
        s: EkfMatrix = mat_mul(h, pp_h_t)
        mat_add(s, self._r)
        nu: EkfMatrix = mat_sub(z_vec, z_hat)

        if not (is_finite_seq(s.data) and is_finite_seq(nu.data)):
            self._reject(
                REJECT_INVALID_PREDICTION,
                "non-finite innovation",
                z=z_vec.data,
                z_hat=z_hat.data,
                nu=nu.data,
                s=s,
                pp_asymmetry=pp_asymmetry,
            )
            raise ValueError("innovation or its covariance is not finite")

        # 5
        s_inv: EkfMatrix
        try:
            s_inv = mat_invert(s, self._pivot_eps)
        except SingularMatrixError as exc:
            self._reject(
                REJECT_SINGULAR_INNOVATION,
                str(exc),
                z=z_vec.data,
                z_hat=z_hat.data,
                nu=nu.data,
                s=s,
                pp_asymmetry=pp_asymmetry,
            )
            raise
        gain: EkfMatrix = mat_mul(pp_h_t, s_inv)

        # 6
        x_new: EkfMatrix = x_pred
        mat_add(x_new, mat_mul(gain, nu))

        # 7
        i_minus_gh: EkfMatrix = mat_sub(mat_identity(n), mat_mul(gain, h))
        p_new: EkfMatrix = mat_mul(i_minus_gh, pp)

        mat_free(self._x)
        mat_free(self._p)
        if self._gain is not None:
            mat_free(self._gain)
        self._x = x_new
        self._p = p_new
        self._gain = gain

        p_asymmetry: float = mat_max_asymmetry(p_new)
        _LOG.debug(
            "EKF update accepted, max |Pp - Pp^T| %.3e, max |P - P^T| %.3e",
            pp_asymmetry,
            p_asymmetry,
        )
        mat_dump(gain, "Kalman gain", _LOG)

        self._report(
            EkfUpdateReport(
                accepted=True,
                reject_reason=None,
                z=list(z_vec.data),
                z_hat=list(z_hat.data),
                nu=list(nu.data),
                s=s.copy(),
                gain=gain.copy(),
                pp_asymmetry=pp_asymmetry,
                p_asymmetry=p_asymmetry,
            )
        )

        return EkfUpdateResult(
            state=x_new.copy(),
            covariance=p_new.copy(),
            gain=gain.copy(),
        )

    def close(self) -> None:
        """Release every buffer owned by the engine."""
        if self._closed:
            return
        for mat in (self._x, self._p, self._q, self._r):
            mat_free(mat)
        if self._gain is not None:
            mat_free(self._gain)
            self._gain = None
        self._closed = True

    def __enter__(self) -> TinyEkf:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("TinyEkf has been closed")

    def _checked_covariance(self, value: MatrixLike, dim: int, name: str) -> EkfMatrix:
        mat: EkfMatrix = _as_matrix(value, dim, dim, name)
        if not is_finite_seq(mat.data):
            raise ValueError(f"{name} must contain only finite values")
        if any(mat.get(i, i) < 0.0 for i in range(dim)):
            raise ValueError(f"{name} diagonal must be >= 0")
        if mat_max_asymmetry(mat) > self._symmetry_tol:
            raise ValueError(f"{name} must be symmetric")
        return mat

    def _reject(
        self,
        reason: str,
        detail: str,
        *,
        z: Sequence[float],
        z_hat: Sequence[float] = (),
        nu: Sequence[float] = (),
        s: Optional[EkfMatrix] = None,
        pp_asymmetry: float = 0.0,
    ) -> None:
        _LOG.warning("Rejecting EKF update, %s: %s", reason, detail)
        self._report(
            EkfUpdateReport(
                accepted=False,
                reject_reason=reason,
                z=list(z),
                z_hat=list(z_hat),
                nu=list(nu),
                s=s.copy() if s is not None else None,
                gain=None,
                pp_asymmetry=pp_asymmetry,
                p_asymmetry=mat_max_asymmetry(self._p),
            )
        )

    def _report(self, report: EkfUpdateReport) -> None:
        # Diagnostics never change the outcome of an update
        if self._diagnostics_callback is None:
            return
        try:
            self._diagnostics_callback(report)
        except Exception:
            _LOG.exception("EKF diagnostics callback failed")
