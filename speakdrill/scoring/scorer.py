from __future__ import annotations

"""Answer scoring: exact match plus edit-distance similarity."""

from dataclasses import dataclass
from typing import Literal

PARTIAL_THRESHOLD = 0.7

Grade = Literal["correct", "partial", "incorrect"]


@dataclass(frozen=True)
class ScoreResult:
    is_exact: bool
    similarity: float


def normalize(text: str) -> str:
    return (text or "").strip().lower()


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                cur.append(prev[j - 1])
            else:
                cur.append(1 + min(prev[j - 1], prev[j], cur[j - 1]))
        prev = cur
    return prev[-1]


def similarity(a: str, b: str) -> float:
    """(maxLen - distance) / maxLen over normalized strings; 1.0 when both are empty."""
    na, nb = normalize(a), normalize(b)
    max_len = max(len(na), len(nb))
    if max_len == 0:
        return 1.0
    return (max_len - levenshtein(na, nb)) / max_len


def score(transcript: str, expected: str) -> ScoreResult:
    return ScoreResult(
        is_exact=normalize(transcript) == normalize(expected),
        similarity=similarity(transcript, expected),
    )


def classify(result: ScoreResult, partial_threshold: float = PARTIAL_THRESHOLD) -> Grade:
    if result.is_exact:
        return "correct"
    if result.similarity >= partial_threshold:
        return "partial"
    return "incorrect"
