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
Error types raised by the EKF matrix kernel and filter engine
"""


class EkfError(Exception):
    """
    Base class for errors raised deliberately by the EKF
    """


class DimensionMismatchError(EkfError, ValueError):
    """
    Operand shapes are inconsistent with the requested matrix operation

    Raised before any element is read, so a mismatched call never produces a
    partial result. Inside TinyEkf.update() this aborts the update and leaves
    the filter state unchanged.
    """


class SingularMatrixError(EkfError, ValueError):
    """
    A Gauss-Jordan pivot fell below the numerical threshold

    Inside TinyEkf.update() this means the innovation covariance S is not
    invertible. The update is rejected and the filter state is unchanged, so
    the caller may skip the measurement, widen R, or stop.
    """
