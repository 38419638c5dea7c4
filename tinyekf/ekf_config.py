################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping
from typing import Sequence

from tinyekf.ekf_linalg import DEFAULT_PIVOT_EPS


# Default tolerance for max |A - A^T| on covariance inputs
DEFAULT_SYMMETRY_TOL: float = 1.0e-9


@dataclass(frozen=True, slots=True)
class EkfConfig:
    """Configuration container for a TinyEkf instance.

    Data contract:
        state_dim:
            State dimension n, fixed for the filter lifetime, > 0
        meas_dim:
            Measurement dimension m, fixed for the filter lifetime, > 0
        x0:
            Initial state estimate, length n
        p0:
            Initial state covariance, n x n, symmetric with diagonal >= 0
        q:
            Process noise covariance, n x n, symmetric with diagonal >= 0
        r:
            Measurement noise covariance, m x m, symmetric with diagonal >= 0
        pivot_eps:
            Relative pivot threshold for the Gauss-Jordan inversion, > 0
        symmetry_tol:
            Largest accepted max |A - A^T| for covariance inputs, > 0

    Determinism and edge cases:
        - Configuration is immutable once constructed.
        - Matrices are nested row lists so they can be loaded from YAML or
          JSON without conversion.
        - Invalid values raise ValueError from validate().
    """

    state_dim: int
    meas_dim: int
    x0: list[float]
    p0: list[list[float]]
    q: list[list[float]]
    r: list[list[float]]
    pivot_eps: float = DEFAULT_PIVOT_EPS
    symmetry_tol: float = DEFAULT_SYMMETRY_TOL

    @classmethod
    def defaults(cls, state_dim: int, meas_dim: int) -> EkfConfig:
        """Return a zero state, identity covariance and zero noise."""
        if state_dim <= 0 or meas_dim <= 0:
            raise ValueError("state_dim and meas_dim must be > 0")
        config: EkfConfig = cls(
            state_dim=state_dim,
            meas_dim=meas_dim,
            x0=[0.0] * state_dim,
            p0=cls._diag(state_dim, 1.0),
            q=cls._diag(state_dim, 0.0),
            r=cls._diag(meas_dim, 0.0),
        )
        config.validate()
        return config

    @classmethod
    def from_params(cls, params: EkfConfig | Mapping[str, object]) -> EkfConfig:
        """Construct a validated configuration from a config or a mapping."""
        config: EkfConfig
        if isinstance(params, EkfConfig):
            config = params
        elif isinstance(params, Mapping):
            config = cls.from_dict(params)
        else:
            raise ValueError("params must be EkfConfig or mapping")
        config.validate()
        return config

    @classmethod
    def from_dict(cls, params: Mapping[str, object]) -> EkfConfig:
        """Construct a configuration from a mapping, rejecting unknown keys."""
        unknown_keys: list[str] = sorted(set(params.keys()) - set(cls._field_order()))
        if unknown_keys:
            raise ValueError(f"unknown parameter: {unknown_keys[0]}")
        if "state_dim" not in params or "meas_dim" not in params:
            raise ValueError("state_dim and meas_dim are required")
        state_dim: int = cls._as_int("state_dim", params["state_dim"])
        meas_dim: int = cls._as_int("meas_dim", params["meas_dim"])
        defaults: EkfConfig = cls.defaults(state_dim, meas_dim)
        return cls(
            state_dim=state_dim,
            meas_dim=meas_dim,
            x0=cls._as_vector("x0", params.get("x0", defaults.x0)),
            p0=cls._as_matrix("p0", params.get("p0", defaults.p0)),
            q=cls._as_matrix("q", params.get("q", defaults.q)),
            r=cls._as_matrix("r", params.get("r", defaults.r)),
            pivot_eps=cls._as_float(
                "pivot_eps", params.get("pivot_eps", defaults.pivot_eps)
            ),
            symmetry_tol=cls._as_float(
                "symmetry_tol", params.get("symmetry_tol", defaults.symmetry_tol)
            ),
        )

    def validate(self) -> None:
        """Validate configuration and raise ValueError on failure."""
        if self.state_dim <= 0:
            raise ValueError("state_dim must be > 0")
        if self.meas_dim <= 0:
            raise ValueError("meas_dim must be > 0")
        if not self.pivot_eps > 0.0:
            raise ValueError("pivot_eps must be > 0")
        if not self.symmetry_tol > 0.0:
            raise ValueError("symmetry_tol must be > 0")
        if len(self.x0) != self.state_dim:
            raise ValueError(f"x0 must have length {self.state_dim}")
        if not all(math.isfinite(value) for value in self.x0):
            raise ValueError("x0 must be finite")
        self._validate_covariance("p0", self.p0, self.state_dim)
        self._validate_covariance("q", self.q, self.state_dim)
        self._validate_covariance("r", self.r, self.meas_dim)

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict representation."""
        return {
            "state_dim": self.state_dim,
            "meas_dim": self.meas_dim,
            "x0": list(self.x0),
            "p0": [list(row) for row in self.p0],
            "q": [list(row) for row in self.q],
            "r": [list(row) for row in self.r],
            "pivot_eps": self.pivot_eps,
            "symmetry_tol": self.symmetry_tol,
        }

    def _validate_covariance(
        self, name: str, matrix: Sequence[Sequence[float]], dim: int
    ) -> None:
        if len(matrix) != dim or any(len(row) != dim for row in matrix):
            raise ValueError(f"{name} must be {dim}x{dim}")
        for i in range(dim):
            if not all(math.isfinite(value) for value in matrix[i]):
                raise ValueError(f"{name} must be finite")
            if matrix[i][i] < 0.0:
                raise ValueError(f"{name} diagonal must be >= 0")
            for j in range(i + 1, dim):
                if abs(matrix[i][j] - matrix[j][i]) > self.symmetry_tol:
                    raise ValueError(f"{name} must be symmetric")

    @staticmethod
    def _diag(dim: int, value: float) -> list[list[float]]:
        return [[value if i == j else 0.0 for j in range(dim)] for i in range(dim)]

    @staticmethod
    def _as_float(name: str, value: object) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a float")
        return float(value)

    @staticmethod
    def _as_int(name: str, value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an int")
        return int(value)

    @staticmethod
    def _as_vector(name: str, value: object) -> list[float]:
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            raise ValueError(f"{name} must be a sequence")
        return [EkfConfig._as_float(name, item) for item in value]

    @staticmethod
    def _as_matrix(name: str, value: object) -> list[list[float]]:
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            raise ValueError(f"{name} must be a sequence")
        return [EkfConfig._as_vector(name, row) for row in value]

    @staticmethod
    def _field_order() -> list[str]:
        return [
            "state_dim",
            "meas_dim",
            "x0",
            "p0",
            "q",
            "r",
            "pivot_eps",
            "symmetry_tol",
        ]
