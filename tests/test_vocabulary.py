"""Tests for vocabulary construction and label lookup."""

from __future__ import annotations

import pytest

from squeezex.errors import LabelFormatError, VocabularyIndexOutOfRange
from squeezex.ml.vocabulary import Vocabulary, split_lines, strip_label_prefix


class TestSplitLines:
    def test_no_trailing_newline(self) -> None:
        assert split_lines("a\nb\nc") == ["a", "b", "c"]

    def test_trailing_newline_keeps_empty_entry(self) -> None:
        assert split_lines("a\nb\n") == ["a", "b", ""]

    def test_no_newline_is_single_entry(self) -> None:
        assert split_lines("a") == ["a"]

    def test_empty_input_is_one_empty_entry(self) -> None:
        assert split_lines("") == [""]

    def test_lines_are_not_trimmed(self) -> None:
        assert split_lines(" a \r\n\nb") == [" a \r", "", "b"]


class TestVocabulary:
    def test_from_bytes(self) -> None:
        assert Vocabulary.from_bytes(b"a\nb\nc").entries == ("a", "b", "c")
        assert Vocabulary.from_bytes(b"a\nb\n").entries == ("a", "b", "")

    def test_duplicates_kept(self) -> None:
        assert len(Vocabulary.from_bytes(b"a\na\na")) == 3

    def test_invalid_utf8_is_not_rejected(self) -> None:
        vocabulary = Vocabulary.from_bytes(b"n00000001 caf\xe9\nx")
        assert len(vocabulary) == 2
        assert vocabulary.entry(0).startswith("n00000001 caf")

    def test_entry_out_of_range(self) -> None:
        vocabulary = Vocabulary.from_bytes(b"a\nb")
        with pytest.raises(VocabularyIndexOutOfRange) as excinfo:
            vocabulary.entry(2)
        assert excinfo.value.index == 2
        assert excinfo.value.size == 2

    def test_negative_index_out_of_range(self) -> None:
        with pytest.raises(VocabularyIndexOutOfRange):
            Vocabulary.from_bytes(b"a\nb").entry(-1)

    def test_label_strips_prefix(self) -> None:
        vocabulary = Vocabulary.from_bytes(b"n01440764 tench, Tinca tinca\n")
        assert vocabulary.label(0, 10) == "tench, Tinca tinca"


class TestStripLabelPrefix:
    def test_strips_exactly_prefix_length(self) -> None:
        assert strip_label_prefix("n03179701 desk", 10) == "desk"

    def test_no_separator_required(self) -> None:
        assert strip_label_prefix("0123456789abc", 10) == "abc"

    def test_entry_of_exactly_prefix_length_yields_empty_label(self) -> None:
        assert strip_label_prefix("n03179701 ", 10) == ""

    def test_entry_shorter_than_prefix_raises(self) -> None:
        with pytest.raises(LabelFormatError):
            strip_label_prefix("n0317970", 10)

    def test_empty_entry_raises(self) -> None:
        with pytest.raises(LabelFormatError):
            strip_label_prefix("", 10)
