"""
Basic tests for ndview.

This module walks through the everyday uses of the library: creating
matrices, accessing rows, columns and elements, selecting parts of a
matrix, and allocating with an explicit allocator.
"""

import pytest

import ndview
from ndview import (
    zeros,
    ones,
    sequential_fill,
    sparse_zeros,
    create_allocator,
    DenseView
)


class TestBasicFunctionality:
    """Walkthrough of common matrix operations."""

    def setup_method(self):
        self.allocator = create_allocator()

    def teardown_method(self):
        self.allocator.close()

    def test_version(self):
        assert ndview.__version__ == "0.1.0"
        assert ndview.get_version_info() == (0, 1, 0)

    def test_create_matrix(self):
        """A fresh matrix is zero-initialized."""
        matrix = zeros((2, 2), allocator=self.allocator)
        assert matrix == [[0, 0], [0, 0]]
        assert matrix.shape == (2, 2)
        assert matrix.is_owned

    def test_access_rows_and_columns(self):
        matrix = sequential_fill((3, 3), allocator=self.allocator)

        assert matrix[1] == [3, 4, 5]
        assert matrix(1) == [1, 4, 7]
        assert matrix[1:, 1:] == [[4, 5], [7, 8]]

        matrix[1] = [1, 2, 4]
        assert matrix[1] == [1, 2, 4]

        matrix[...] = 2
        assert matrix[1, 1] == 2

    def test_access_elements(self):
        """Brackets are row-first, parentheses are column-first."""
        matrix = sequential_fill((3, 3), allocator=self.allocator)

        assert matrix[1, 0] == 3
        assert matrix(1, 0) == 1

        matrix[1, 2] = 42
        assert matrix[1, 2] == 42
        assert matrix(2, 1) == 42

    def test_matrix_selection(self):
        matrix = sequential_fill((4, 3), allocator=self.allocator)
        assert matrix.diagonal() == [0, 4, 8]

        matrix.diagonal()[1] = 42
        assert matrix[1, 1] == 42

        assert matrix.reshape((3, 4))[1, 0] == 42
        assert list(matrix.by_element()[2:5]) == [2, 3, 42]
        assert matrix.windows((1, 2)).by_element(2)[2][0] == [3, 42]

    def test_use_as_range(self):
        matrix = sequential_fill((4, 3), allocator=self.allocator)
        n = matrix.size
        assert sum(matrix.by_element()) == n * (n - 1) // 2

        mid_column = matrix[:, 1:2].by_element()
        assert list(mid_column) == [1, 4, 7, 10]
        assert matrix.evert()[1] == [1, 4, 7, 10]

        elements = list(matrix.by_element())
        assert (min(elements), max(elements)) == (0, 11)
        assert [(min(row), max(row)) for row in matrix] == [(0, 2), (3, 5), (6, 8), (9, 11)]

    def test_transposition_3d(self):
        cube = sequential_fill((2, 2, 2), allocator=self.allocator)

        assert cube.transpose(2)[0, 1] == [4, 6]
        assert cube.evert()[0, 1] == [2, 6]

        matrix = sequential_fill((3, 3), allocator=self.allocator)
        assert matrix.transpose() == matrix.evert()

        assert sequential_fill((4, 4), allocator=self.allocator).blocks((2, 2))[0, 1] == [[2, 3], [6, 7]]

    def test_sparse_matrix(self):
        """Sparse matrices only hold the non-zero elements."""
        matrix = sparse_zeros((2, 2))
        matrix[1, 1] = 42
        assert matrix == [[0, 0], [0, 42]]
        assert matrix.nnz == 1

    def test_allocator_scope(self):
        with ones((2, 2), allocator=self.allocator) as matrix:
            assert matrix == [[1, 1], [1, 1]]
            assert self.allocator.outstanding == 1
        assert matrix.is_released
        assert self.allocator.outstanding == 0


class TestErrorHandling:
    """Test error handling and edge cases."""

    def test_invalid_shape(self):
        with pytest.raises(ndview.InvalidShape):
            zeros((2, -1))

    def test_out_of_range(self):
        matrix = zeros((2, 2))
        try:
            with pytest.raises(ndview.OutOfRange):
                matrix[2, 0]
            with pytest.raises(IndexError):
                matrix[0, 2] = 1
        finally:
            matrix.release()

    def test_released_view(self):
        matrix = zeros((2, 2))
        row = matrix[0]
        matrix.release()

        assert isinstance(row, DenseView)
        with pytest.raises(ndview.UseAfterRelease):
            row[0]
        with pytest.raises(ndview.UseAfterRelease):
            matrix.release()


if __name__ == '__main__':
    pytest.main([__file__])
