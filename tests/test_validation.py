import pytest

from ideabox.validation import TooLong, TooShort, parse_tags, validate_title


class TestValidateTitle:
    @pytest.mark.parametrize("length", [0, 1, 2])
    def test_too_short(self, length):
        assert validate_title("x" * length) == TooShort(min=3)

    @pytest.mark.parametrize("length", [101, 150, 1000])
    def test_too_long(self, length):
        assert validate_title("x" * length) == TooLong(max=100)

    @pytest.mark.parametrize("length", [3, 4, 50, 99, 100])
    def test_within_bounds(self, length):
        assert validate_title("x" * length) is None

    def test_counts_characters_not_bytes(self):
        assert validate_title("ééé") is None
        assert validate_title("é" * 100) is None


class TestParseTags:
    def test_empty_string(self):
        assert parse_tags("") == []

    def test_trims_and_drops_empty_pieces(self):
        assert parse_tags(" a, b ,, c ") == ["a", "b", "c"]

    def test_only_delimiters_and_spaces(self):
        assert parse_tags(" , ,, ") == []

    def test_keeps_order_case_and_duplicates(self):
        assert parse_tags("Rust, python, rust, Rust") == ["Rust", "python", "rust", "Rust"]

    def test_inner_whitespace_kept(self):
        assert parse_tags("machine learning, ui") == ["machine learning", "ui"]
