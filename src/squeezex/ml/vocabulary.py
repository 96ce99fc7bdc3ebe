"""Label vocabulary: class index to human-readable label."""

from __future__ import annotations

from dataclasses import dataclass

from squeezex.errors import LabelFormatError, VocabularyIndexOutOfRange


def split_lines(text: str) -> list[str]:
    """Split at every literal newline, keeping a trailing empty segment."""
    return text.split("\n")


def strip_label_prefix(entry: str, prefix_length: int) -> str:
    """Drop the fixed-width machine identifier in front of a label.

    An entry of exactly ``prefix_length`` characters yields an empty label.

    Raises:
        LabelFormatError: If the entry is shorter than the prefix.
    """
    if len(entry) < prefix_length:
        raise LabelFormatError(f"Vocabulary entry {entry!r} is shorter than its {prefix_length}-character prefix")
    return entry[prefix_length:]


@dataclass(frozen=True)
class Vocabulary:
    """Ordered, read-only label table index-aligned with the model output."""

    entries: tuple[str, ...]

    @classmethod
    def from_bytes(cls, data: bytes) -> Vocabulary:
        # No validation: undecodable bytes are replaced, lines kept verbatim.
        return cls(entries=tuple(split_lines(data.decode("utf-8", errors="replace"))))

    def __len__(self) -> int:
        return len(self.entries)

    def entry(self, index: int) -> str:
        """Return the raw vocabulary line for a class index.

        Raises:
            VocabularyIndexOutOfRange: If the index has no entry.
        """
        if not 0 <= index < len(self.entries):
            raise VocabularyIndexOutOfRange(index, len(self.entries))
        return self.entries[index]

    def label(self, index: int, prefix_length: int) -> str:
        """Return the display label for a class index, prefix stripped."""
        return strip_label_prefix(self.entry(index), prefix_length)
