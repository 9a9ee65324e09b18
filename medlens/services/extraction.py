"""
Best-effort split of a free-text model reply into key findings and recommendations.
Keyword heuristics, not NLP: callers must not rely on the split being accurate.
"""
import re
from typing import Protocol

FINDING_KEYWORDS = ("finding", "diagnosis", "condition", "observation")
RECOMMENDATION_KEYWORDS = ("recommend", "suggest", "action", "follow-up")

DEFAULT_FINDINGS = ["Analysis completed successfully"]
DEFAULT_RECOMMENDATIONS = ["Review analysis results"]

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class FindingsExtractor(Protocol):
    def extract(self, summary: str) -> tuple[list[str], list[str]]: ...


def _segments(text: str) -> list[str]:
    out = []
    for line in (text or "").splitlines():
        for sentence in _SENTENCE_END.split(line.strip()):
            sentence = sentence.strip()
            if sentence:
                out.append(sentence)
    return out


class KeywordFindingsExtractor:
    def __init__(
        self,
        finding_keywords: tuple[str, ...] = FINDING_KEYWORDS,
        recommendation_keywords: tuple[str, ...] = RECOMMENDATION_KEYWORDS,
    ):
        self.finding_keywords = finding_keywords
        self.recommendation_keywords = recommendation_keywords

    def extract(self, summary: str) -> tuple[list[str], list[str]]:
        findings: list[str] = []
        recommendations: list[str] = []
        for segment in _segments(summary):
            lowered = segment.lower()
            # a segment may land in both lists
            if any(k in lowered for k in self.finding_keywords):
                findings.append(segment)
            if any(k in lowered for k in self.recommendation_keywords):
                recommendations.append(segment)
        return (findings or list(DEFAULT_FINDINGS), recommendations or list(DEFAULT_RECOMMENDATIONS))
