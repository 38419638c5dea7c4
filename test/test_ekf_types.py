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

import pytest

from tinyekf.ekf_types import EkfMatrix


def test_from_rows_is_row_major() -> None:
    a: EkfMatrix = EkfMatrix.from_rows([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])

    assert a.shape == (2, 3)
    assert a.data == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
    assert a.get(1, 0) == 4.0
    assert a.to_rows() == [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]


def test_from_rows_rejects_ragged_and_empty() -> None:
    with pytest.raises(ValueError):
        EkfMatrix.from_rows([[1.0, 2.0], [3.0]])
    with pytest.raises(ValueError):
        EkfMatrix.from_rows([])


def test_data_length_must_match_shape() -> None:
    with pytest.raises(ValueError):
        EkfMatrix(rows=2, cols=2, data=[1.0, 2.0, 3.0])


def test_column_vector() -> None:
    v: EkfMatrix = EkfMatrix.column([1, 2])

    assert v.shape == (2, 1)
    assert v.data == [1.0, 2.0]
    assert isinstance(v.data[0], float)


def test_copy_does_not_alias() -> None:
    a: EkfMatrix = EkfMatrix.column([1.0, 2.0])
    b: EkfMatrix = a.copy()

    b.set(0, 0, 9.0)

    assert a.data == [1.0, 2.0]
    assert a.to_list() is not a.data


def test_index_out_of_range() -> None:
    a: EkfMatrix = EkfMatrix.column([1.0])

    with pytest.raises(IndexError):
        a.get(1, 0)
    with pytest.raises(IndexError):
        a.set(0, 1, 0.0)
