"""Tests for Partitioner: key validation, coverage, null keys."""

import numpy as np
import pandas as pd
import pytest

from dnr.core.errors import InvalidKey
from dnr.recombine import Partitioner

pytestmark = pytest.mark.unit


class TestPartitionerValidation:
    """Key columns must exist and be non-empty."""

    def test_missing_key_raises_invalid_key(self, carrier_records):
        """A key column absent from the dataset raises InvalidKey naming it."""
        with pytest.raises(InvalidKey) as excinfo:
            Partitioner(["carrier", "tail_number"]).partition(carrier_records)

        assert excinfo.value.column == "tail_number"
        assert "carrier" in excinfo.value.available
        assert "tail_number" in str(excinfo.value)

    def test_empty_key_list_raises_invalid_key(self):
        """Partitioning by nothing is rejected up front."""
        with pytest.raises(InvalidKey):
            Partitioner([])

    def test_single_key_string_accepted(self, carrier_records):
        """A bare column name is treated as a one-element key list."""
        parts = Partitioner("carrier").partition(carrier_records)
        assert parts.keys == ("carrier",)
        assert set(parts.groups) == {("A",), ("B",)}


class TestPartitionCoverage:
    """Every record lands in exactly one partition."""

    def test_carrier_partitions(self, carrier_records):
        """Records group by key equality."""
        parts = Partitioner(["carrier"]).partition(carrier_records)

        assert len(parts) == 2
        assert parts.sizes() == {("A",): 2, ("B",): 1}
        assert list(parts.indices("A")) == [0, 1]
        assert list(parts.indices(("B",))) == [2]

    def test_partitions_are_exhaustive_and_disjoint(self, flights):
        """Union of partitions is all records; no record appears twice."""
        parts = Partitioner(["origin", "dest", "month"]).partition(flights)

        members = np.concatenate([idx for _, idx in parts])
        assert len(members) == len(flights)
        assert sorted(members.tolist()) == list(range(len(flights)))
        assert parts.n_records == len(flights)

    def test_every_partition_shares_one_key_tuple(self, flights):
        """All records of a partition carry exactly its key tuple."""
        parts = Partitioner(["origin", "dest"]).partition(flights)

        for key, _ in parts:
            rows = parts.frame_of(key)
            assert set(zip(rows["origin"], rows["dest"])) == {key}

    def test_key_values_are_python_scalars(self, flights):
        """Numeric key components come back as plain ints, not numpy scalars."""
        parts = Partitioner(["month"]).partition(flights)
        for key in parts.groups:
            assert type(key[0]) is int

    def test_partitioning_references_source_frame(self, flights):
        """Partitioning is a view: the source frame is not copied."""
        parts = Partitioner(["origin"]).partition(flights)
        assert parts.frame is flights

    def test_empty_frame_has_no_partitions(self):
        """An empty dataset partitions into nothing, without error."""
        df = pd.DataFrame({"carrier": pd.Series([], dtype=object)})
        parts = Partitioner(["carrier"]).partition(df)

        assert len(parts) == 0
        assert parts.sizes() == {}

    def test_membership_lookup(self, carrier_records):
        """Key tuples and bare values both work with ``in``."""
        parts = Partitioner(["carrier"]).partition(carrier_records)
        assert "A" in parts
        assert ("B",) in parts
        assert "C" not in parts


class TestNullKeys:
    """Null is a key value of its own unless explicitly dropped."""

    @pytest.fixture
    def records_with_nulls(self):
        return pd.DataFrame({
            "carrier": ["A", None, np.nan, "A", "B"],
            "delay": [1.0, 2.0, 3.0, 4.0, 5.0],
        })

    def test_null_keys_form_one_partition(self, records_with_nulls):
        """None and NaN keys collapse into a single (None,) partition."""
        parts = Partitioner(["carrier"]).partition(records_with_nulls)

        assert parts.sizes() == {("A",): 2, (None,): 2, ("B",): 1}
        assert list(parts.indices((None,))) == [1, 2]
        assert parts.n_records == len(records_with_nulls)

    def test_null_numeric_key(self):
        """A NaN in a numeric key column is kept as None."""
        df = pd.DataFrame({"month": [1.0, np.nan, 1.0], "delay": [1, 2, 3]})
        parts = Partitioner(["month"]).partition(df)

        assert parts.sizes() == {(1.0,): 2, (None,): 1}

    def test_dropna_excludes_null_keys(self, records_with_nulls):
        """dropna=True removes any record with a null key component."""
        parts = Partitioner(["carrier"], dropna=True).partition(records_with_nulls)

        assert parts.sizes() == {("A",): 2, ("B",): 1}
        assert parts.n_records == 3

    def test_null_in_one_of_several_keys(self):
        """A null in one key column still yields a distinct key tuple."""
        df = pd.DataFrame({
            "origin": ["LAX", "LAX", "LAX"],
            "dest": ["JFK", None, "JFK"],
        })
        parts = Partitioner(["origin", "dest"]).partition(df)

        assert parts.sizes() == {("LAX", "JFK"): 2, ("LAX", None): 1}
