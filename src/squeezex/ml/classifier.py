"""Top-1 selection over a score vector and result formatting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


def format_result(label: str, score: float) -> str:
    """Render ``"<label> = <score>"`` with three fixed decimals."""
    return f"{label} = {score:.3f}"


@dataclass(frozen=True)
class ClassificationResult:
    """The winning class of a single classification."""

    index: int
    label: str
    score: float

    @property
    def formatted(self) -> str:
        return format_result(self.label, self.score)


def select_top_class(scores: Iterable[float]) -> tuple[int, float]:
    """Return the index and score of the highest score.

    The running maximum starts at 0.0 and is only replaced by a strictly
    greater score, so ties keep the first index and an all-zero or
    all-negative vector yields ``(0, 0.0)``.
    """
    top_class = 0
    max_score = 0.0
    for index, score in enumerate(scores):
        if score > max_score:
            top_class = index
            max_score = float(score)
    return top_class, max_score
