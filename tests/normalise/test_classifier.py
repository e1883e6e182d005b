"""Tests for carrier classification from code shape."""

import pytest

from parcelsync.normalise.carrier import classify, is_merchant_code


class TestClassify:
    """Rule order and adjacent-length regressions."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("111-1234567-1234567", "Amazon"),
            ("TBA123456789012", "Amazon"),
            ("1Z999AA10123456784", "UPS"),
            ("JD014600006281230704", "DHL"),
            ("MU123456", "Mensajeros Urbanos"),
            ("DEP123456", "Deprisa"),
            ("240012345678", "Interrapidísimo"),
            ("13412345678", "Avianca Cargo"),
            ("1234567890123", "Envía"),
            ("7123456789", "TCC"),
            ("312345678", "Saferbo"),
            ("20123456", "Deprisa"),
            ("5123456789", "Coordinadora"),
            ("9123456789", "Servientrega"),
            ("1234567890", "DHL"),
            ("123456789012", "FedEx"),
        ],
    )
    def test_known_shapes(self, code, expected):
        assert classify(code) == expected

    def test_regional_prefix_beats_numeric_catch_all(self):
        # Ten digits is DHL only when no regional rule claims the code first
        assert classify("7123456789") == "TCC"
        assert classify("9123456789") == "Servientrega"
        assert classify("4123456789") == "DHL"

    @pytest.mark.parametrize("code", ["24001234567", "2400123456789", "512345678"])
    def test_adjacent_lengths_do_not_match(self, code):
        assert classify(code) is None

    def test_input_is_trimmed_and_prefixes_are_case_insensitive(self):
        assert classify("  1z999aa10123456784 ") == "UPS"
        assert classify("tba123456789012") == "Amazon"

    @pytest.mark.parametrize("code", ["", "   ", "hello", "12345"])
    def test_unmatched_returns_none(self, code):
        assert classify(code) is None


def test_is_merchant_code():
    assert is_merchant_code("111-1234567-1234567")
    assert is_merchant_code("tba123456789012")
    assert is_merchant_code("AMZ0001")
    assert not is_merchant_code("7123456789")
