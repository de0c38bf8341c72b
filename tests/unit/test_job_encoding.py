"""
Unit tests for job encoding and timestamp coercion.
"""

from datetime import datetime, timezone

import pytest

from src.errors import InvalidArgumentError
from src.types.job import JobDescriptor, to_timestamp


class TestJobEncoding:
    """Tests for canonical job encoding."""

    def test_encoding_is_canonical(self):
        """Keys are sorted and separators are compact."""
        job = JobDescriptor(class_name="SomeJob", args=[{"b": 1, "a": 2}], queue="default")

        assert job.encode() == '{"args":[{"a":2,"b":1}],"class":"SomeJob","queue":"default"}'

    def test_equal_jobs_encode_identically(self):
        """Argument dict ordering does not change the encoding."""
        first = JobDescriptor(class_name="SomeJob", args=[{"x": 1, "y": 2}], queue="q")
        second = JobDescriptor(class_name="SomeJob", args=[{"y": 2, "x": 1}], queue="q")

        assert first.encode() == second.encode()

    def test_decode_accepts_stored_payload(self):
        """A stored payload decodes back to the same job."""
        job = JobDescriptor.decode('{"args":[1,"two"],"class":"SomeJob","queue":"default"}')

        assert job.class_name == "SomeJob"
        assert job.args == [1, "two"]
        assert job.queue == "default"

    def test_non_ascii_is_escaped(self):
        """Non-ASCII text is escaped so encodings stay byte-stable."""
        job = JobDescriptor(class_name="SomeJob", args=["café"], queue="q")

        assert "\\u00e9" in job.encode()

    def test_unencodable_args_rejected(self):
        """Arguments JSON cannot represent raise InvalidArgumentError."""
        job = JobDescriptor(class_name="SomeJob", args=[object()], queue="q")

        with pytest.raises(InvalidArgumentError):
            job.encode()

    def test_nan_rejected(self):
        """NaN has no canonical JSON form."""
        job = JobDescriptor(class_name="SomeJob", args=[float("nan")], queue="q")

        with pytest.raises(InvalidArgumentError):
            job.encode()

    @pytest.mark.parametrize(
        "payload",
        ["not json", '{"args": []}', "[1, 2]", '{"class": "X", "args": 1, "queue": "q"}'],
    )
    def test_decode_rejects_invalid_payloads(self, payload: str):
        """Malformed payloads raise InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            JobDescriptor.decode(payload)


class TestToTimestamp:
    """Tests for timestamp coercion."""

    def test_int_passes_through(self):
        assert to_timestamp(1_700_000_000) == 1_700_000_000

    def test_float_is_truncated(self):
        assert to_timestamp(1_700_000_000.9) == 1_700_000_000

    def test_aware_datetime(self):
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert to_timestamp(moment) == 1_704_067_200

    def test_naive_datetime_is_utc(self):
        assert to_timestamp(datetime(2024, 1, 1)) == 1_704_067_200

    @pytest.mark.parametrize("value", ["1700000000", None, True, [1]])
    def test_rejects_other_types(self, value):
        with pytest.raises(InvalidArgumentError):
            to_timestamp(value)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_rejects_non_finite_floats(self, value):
        with pytest.raises(InvalidArgumentError):
            to_timestamp(value)


class TestJobDescriptorIdentity:
    """Tests for descriptor equality."""

    def test_equality_is_by_value(self):
        first = JobDescriptor(class_name="SomeJob", args=[1, "a"], queue="default")
        second = JobDescriptor(class_name="SomeJob", args=[1, "a"], queue="default")

        assert first == second

    def test_descriptors_are_not_hashable(self):
        """The args list keeps descriptors out of sets; the encoding is the key."""
        job = JobDescriptor(class_name="SomeJob", args=[1], queue="default")

        with pytest.raises(TypeError):
            hash(job)
        assert {job.encode()} == {'{"args":[1],"class":"SomeJob","queue":"default"}'}
