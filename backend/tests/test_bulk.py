"""
Unit tests for app.utils.bulk.

  chunked    — offsets and batch sizes, rejects non-positive sizes
  BulkResult — outcome counters, success/failure split, error list shape
"""
import pytest

from app.utils.bulk import BulkResult, ItemError, ItemOk, chunked


class TestChunked:
    def test_splits_with_offsets(self):
        batches = list(chunked(list(range(250)), 100))
        assert [offset for offset, _ in batches] == [0, 100, 200]
        assert [len(b) for _, b in batches] == [100, 100, 50]

    def test_empty_input_yields_nothing(self):
        assert list(chunked([], 100)) == []

    def test_non_positive_size_rejected(self):
        with pytest.raises(ValueError):
            list(chunked([1, 2], 0))


class TestBulkResult:
    def test_counts_by_outcome(self):
        result = BulkResult()
        result.ok(0, "a")
        result.ok(1, "b", outcome="updated")
        result.ok(2, "c", outcome="skipped")
        result.fail(3, "VALIDATION_ERROR", "value is required")

        assert result.count("created") == 1
        assert result.count("updated") == 1
        assert result.count("skipped") == 1
        assert len(result.successes) == 3
        assert len(result.failures) == 1

    def test_results_are_discriminated(self):
        result = BulkResult()
        result.ok(0, "a")
        result.fail(1, "DUPLICATE_VALUE", "dup")
        assert isinstance(result.results[0], ItemOk)
        assert isinstance(result.results[1], ItemError)

    def test_values_filtered_by_outcome(self):
        result = BulkResult()
        result.ok(0, "a")
        result.ok(1, "b", outcome="skipped")
        assert result.values() == ["a", "b"]
        assert result.values("created") == ["a"]

    def test_error_list_shape(self):
        result = BulkResult()
        result.fail(7, "DUPLICATE_VALUE", "Value 'x' already exists in this set")
        assert result.error_list() == [
            {"index": 7, "code": "DUPLICATE_VALUE", "error": "Value 'x' already exists in this set"}
        ]
