"""
Tests for Response Data Validation
==================================
"""

import numpy as np
import pandas as pd
import pytest

from psychometric_core import data


class TestAsResponseMatrix:
    """Tests for as_response_matrix()."""

    @pytest.mark.unit
    def test_nested_lists(self):
        matrix = data.as_response_matrix([[1, 2], [3, 4], [5, 6]])
        assert matrix.shape == (3, 2)
        assert matrix.dtype == float

    @pytest.mark.unit
    def test_copies_input(self):
        original = np.array([[1.0, 2.0], [3.0, 4.0]])
        matrix = data.as_response_matrix(original)
        matrix[0, 0] = 99
        assert original[0, 0] == 1.0

    @pytest.mark.unit
    @pytest.mark.parametrize("bad, message", [
        ([], "no subjects"),
        ([[1, 2], [3]], "ragged"),
        ([["a", "b"], ["c", "d"]], "numeric"),
        ([[1, 2]], "at least 2 subjects"),
        ([[1, np.nan], [2, 3]], "non-finite"),
        ([[], []], "no items"),
    ])
    def test_rejects_invalid(self, bad, message):
        with pytest.raises(ValueError, match=message):
            data.as_response_matrix(bad)

    @pytest.mark.unit
    def test_rejects_one_dimensional_array(self):
        with pytest.raises(ValueError, match="2-D"):
            data.as_response_matrix(np.arange(5))

    @pytest.mark.unit
    def test_custom_minimum(self):
        with pytest.raises(ValueError):
            data.as_response_matrix(np.ones((3, 2)), min_subjects=5)


class TestItemIds:
    """Tests for item id resolution."""

    @pytest.mark.unit
    def test_positional_defaults(self):
        _, ids = data.prepare_responses([[1, 2, 3], [4, 5, 6]])
        assert ids == ['item_1', 'item_2', 'item_3']

    @pytest.mark.unit
    def test_dataframe_columns(self):
        frame = pd.DataFrame({'trust': [1, 2, 3], 'price': [3, 2, 1]})
        matrix, ids = data.prepare_responses(frame)
        assert ids == ['trust', 'price']
        assert matrix.shape == (3, 2)

    @pytest.mark.unit
    def test_explicit_ids_win(self):
        frame = pd.DataFrame({'a': [1, 2], 'b': [3, 4]})
        _, ids = data.prepare_responses(frame, item_ids=['x', 'y'])
        assert ids == ['x', 'y']

    @pytest.mark.unit
    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="item ids"):
            data.prepare_responses([[1, 2], [3, 4]], item_ids=['only_one'])
