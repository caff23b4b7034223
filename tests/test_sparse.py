import tracemalloc

import numpy as np
import pytest
from unittest.mock import patch

from ndview import SparseView, DenseView, INDArray, SparseElementRef
from ndview.memory import StoreAllocator
from ndview.factory import sequential_fill, sparse_zeros
from ndview.exceptions import OutOfRange, UseAfterRelease, InvalidValue


class TestSparseView:
    def setup_method(self):
        self.sparse = sparse_zeros((3, 4))

    def test_sparse_properties(self):
        assert self.sparse.shape == (3, 4)
        assert self.sparse.ndim == 2
        assert self.sparse.size == 12
        assert self.sparse.fill_value == 0
        assert self.sparse.nnz == 0
        assert len(self.sparse) == 3

    def test_unset_entries_read_fill(self):
        assert self.sparse[2, 3] == 0
        assert not self.sparse.is_set((2, 3))
        assert self.sparse.nnz == 0

    def test_set_and_get(self):
        self.sparse[1, 2] = 5
        assert self.sparse[1, 2] == 5
        assert self.sparse.get((1, 2)) == 5
        assert self.sparse.is_set((1, 2))
        assert self.sparse.nnz == 1

    def test_setting_fill_removes_entry(self):
        self.sparse[1, 2] = 5
        self.sparse[1, 2] = 0
        assert self.sparse.nnz == 0
        assert not self.sparse.is_set((1, 2))

    def test_out_of_range(self):
        with pytest.raises(OutOfRange):
            self.sparse[3, 0]
        with pytest.raises(OutOfRange):
            self.sparse[0, 4] = 1
        with pytest.raises(OutOfRange):
            self.sparse[1]
        with pytest.raises(IndexError):
            self.sparse[0, -1]

    def test_index_reference(self):
        ref = self.sparse.index(0, 1)
        assert isinstance(ref, SparseElementRef)
        assert ref.coords == (0, 1)
        assert ref == 0

        ref.set(9)
        assert self.sparse[0, 1] == 9
        assert self.sparse.nnz == 1

    def test_by_element(self):
        self.sparse[0, 1] = 1
        self.sparse[2, 3] = 2

        values = list(self.sparse.by_element())
        assert len(values) == 12
        assert values[1] == 1
        assert values[11] == 2
        assert sum(values) == 3

    def test_by_element_references(self):
        for ref in self.sparse.by_element(refs=True):
            if ref.coords[0] == ref.coords[1]:
                ref.set(1)
        assert self.sparse.items() == [((0, 0), 1), ((1, 1), 1), ((2, 2), 1)]

    def test_items_sorted(self):
        self.sparse[2, 0] = 3
        self.sparse[0, 3] = 1
        self.sparse[1, 1] = 2
        assert [coords for coords, _ in self.sparse.items()] == [(0, 3), (1, 1), (2, 0)]

    def test_clear(self):
        self.sparse[1, 1] = 2
        self.sparse.clear()
        assert self.sparse.nnz == 0

    def test_to_numpy(self):
        self.sparse[1, 2] = 7
        array = self.sparse.to_numpy()
        assert array.shape == (3, 4)
        assert array[1, 2] == 7
        assert array.sum() == 7
        assert self.sparse.tolist()[1] == [0, 0, 7, 0]

    def test_iteration_yields_rows(self):
        self.sparse[2, 1] = 4
        rows = list(self.sparse)
        assert len(rows) == 3
        assert rows[2] == [0, 4, 0, 0]
        assert rows[0].nnz == 0
        assert rows[2].nnz == 1

    def test_rows_share_entries(self):
        row = self.sparse.by_element(1)[1]
        assert isinstance(row, SparseView)
        assert row.shape == (4,)

        row[2] = 7
        assert self.sparse[1, 2] == 7
        assert row.items() == [((2,), 7)]

        self.sparse[0, 0] = 1
        row.clear()
        assert self.sparse.items() == [((0, 0), 1)]

    def test_rows_are_lazy(self):
        sparse = sparse_zeros((20000, 20000))
        sparse[19999, 5] = 3

        tracemalloc.start()
        try:
            first = next(iter(sparse))
            last = sparse.by_element(1)[-1]
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        assert peak < 1_000_000
        assert first.shape == (20000,)
        assert first.nnz == 0
        assert last.nnz == 1
        assert last[5] == 3

    def test_equality(self):
        other = sparse_zeros((3, 4))
        self.sparse[0, 0] = 1
        other[0, 0] = 1
        assert self.sparse == other

        other[0, 1] = 1
        assert self.sparse != other
        assert self.sparse != sparse_zeros((4, 3))

        expected = [[1, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]]
        assert self.sparse == expected

    def test_protocol_conformance(self):
        assert isinstance(self.sparse, INDArray)


class TestSparseConversion:
    def setup_method(self):
        self.allocator = StoreAllocator()

    def teardown_method(self):
        self.allocator.close()

    def test_to_dense(self):
        sparse = sparse_zeros((2, 3))
        sparse[1, 0] = 4
        dense = sparse.to_dense(self.allocator)

        assert isinstance(dense, DenseView)
        assert dense.is_owned
        assert dense == [[0, 0, 0], [4, 0, 0]]
        assert dense == sparse

        dense.release()
        with pytest.raises(UseAfterRelease):
            dense[1, 0]

    def test_failed_to_dense_releases_store(self):
        sparse = sparse_zeros((2, 3))
        sparse[0, 1] = 2
        with patch.object(DenseView, "fill", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                sparse.to_dense(self.allocator)
        assert self.allocator.outstanding == 0

    def test_from_dense(self):
        dense = sequential_fill((2, 3), allocator=self.allocator)
        sparse = SparseView.from_dense(dense)

        assert sparse.nnz == 5
        assert not sparse.is_set((0, 0))
        assert sparse[1, 2] == 5
        assert sparse.dtype == dense.dtype
        assert sparse == dense

    def test_from_dense_is_a_copy(self):
        dense = sequential_fill((2, 2), allocator=self.allocator)
        sparse = SparseView.from_dense(dense)
        dense[0, 1] = 100
        assert sparse[0, 1] == 1

    def test_protocol_conformance(self):
        dense = sequential_fill((2, 2), allocator=self.allocator)
        assert isinstance(dense, INDArray)


class TestSparseFillValue:
    def test_custom_fill(self):
        sparse = SparseView((2, 2), fill_value=-1)
        assert sparse[0, 0] == -1
        sparse[0, 0] = 0
        assert sparse.nnz == 1
        sparse[0, 0] = -1
        assert sparse.nnz == 0
        assert sparse.tolist() == [[-1, -1], [-1, -1]]

    def test_dtype_coercion(self):
        sparse = SparseView((2,), dtype=np.float32)
        sparse[1] = 3
        assert isinstance(sparse[1], np.float32)
        assert sparse.to_numpy().dtype == np.float32

    def test_failed_set_leaves_entry(self):
        sparse = SparseView((2,), dtype=np.int64)
        sparse[0] = 5
        with pytest.raises(InvalidValue):
            sparse[0] = "x"
        with pytest.raises(ValueError):
            sparse.index(1).set(2 ** 70)
        assert sparse[0] == 5
        assert sparse.items() == [((0,), 5)]

    def test_dtype_coerced_fill_comparison(self):
        sparse = SparseView((2,), dtype=np.int64)
        sparse[0] = 0.0
        assert sparse.nnz == 0

    def test_large_shape(self):
        sparse = sparse_zeros((10 ** 6, 10 ** 6))
        sparse[999999, 999998] = 42

        assert sparse.nnz == 1
        assert sparse.size == 10 ** 12

        it = sparse.by_element()
        assert len(it) == 10 ** 12
        assert it[-2] == 42
        assert it[0] == 0

    def test_zero_dimensional(self):
        sparse = sparse_zeros(())
        sparse[()] = 3
        assert sparse[()] == 3
        assert sparse.nnz == 1
        with pytest.raises(TypeError):
            len(sparse)


if __name__ == '__main__':
    pytest.main([__file__])
