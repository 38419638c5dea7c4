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
Extended Kalman Filter correction step with a small dense matrix kernel
"""

from __future__ import annotations

from tinyekf.ekf_config import EkfConfig
from tinyekf.ekf_errors import DimensionMismatchError
from tinyekf.ekf_errors import EkfError
from tinyekf.ekf_errors import SingularMatrixError
from tinyekf.ekf_filter import TinyEkf
from tinyekf.ekf_models import LinearMeasurementModel
from tinyekf.ekf_models import LinearProcessModel
from tinyekf.ekf_models import MeasurementModel
from tinyekf.ekf_models import ProcessModel
from tinyekf.ekf_types import EkfMatrix
from tinyekf.ekf_types import EkfUpdateReport
from tinyekf.ekf_types import EkfUpdateResult


__all__ = [
    "DimensionMismatchError",
    "EkfConfig",
    "EkfError",
    "EkfMatrix",
    "EkfUpdateReport",
    "EkfUpdateResult",
    "LinearMeasurementModel",
    "LinearProcessModel",
    "MeasurementModel",
    "ProcessModel",
    "SingularMatrixError",
    "TinyEkf",
]
