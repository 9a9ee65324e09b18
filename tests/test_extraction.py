"""Findings extraction and prompt building."""
import pytest

from medlens.services.extraction import DEFAULT_FINDINGS, DEFAULT_RECOMMENDATIONS, KeywordFindingsExtractor
from medlens.services.inference import EXCERPT_MAX_CHARS, build_prompt
from medlens.services.text_extract import extract_excerpt

extractor = KeywordFindingsExtractor()


def test_sentence_split_on_one_line():
    findings, recs = extractor.extract("Finding: mild inflammation noted. Recommend follow-up in 2 weeks.")
    assert findings == ["Finding: mild inflammation noted."]
    assert recs == ["Recommend follow-up in 2 weeks."]


def test_multiline_reply_and_keyword_in_both_lists():
    reply = (
        "Observation: elevated CRP.\n"
        "\n"
        "- Diagnosis unclear; suggest repeat test.\n"
        "Patient is otherwise well."
    )
    findings, recs = extractor.extract(reply)
    assert findings == ["Observation: elevated CRP.", "- Diagnosis unclear; suggest repeat test."]
    assert recs == ["- Diagnosis unclear; suggest repeat test."]


@pytest.mark.parametrize("reply", ["", "Nothing notable here."])
def test_defaults_when_nothing_matches(reply):
    assert extractor.extract(reply) == (DEFAULT_FINDINGS, DEFAULT_RECOMMENDATIONS)


def test_custom_keywords():
    custom = KeywordFindingsExtractor(finding_keywords=("lesion",), recommendation_keywords=("biopsy",))
    findings, recs = custom.extract("Small lesion seen. Biopsy advised.")
    assert findings == ["Small lesion seen."]
    assert recs == ["Biopsy advised."]


def test_prompt_carries_metadata():
    prompt = build_prompt("scan.png", 2048, ".png")
    assert "scan.png (2048 bytes, png format)" in prompt
    assert "Document text" not in prompt


def test_prompt_truncates_excerpt():
    prompt = build_prompt("notes.txt", 10, ".txt", "x" * (EXCERPT_MAX_CHARS + 50))
    assert prompt.endswith("[...truncated]")
    assert "x" * EXCERPT_MAX_CHARS in prompt
    assert "x" * (EXCERPT_MAX_CHARS + 1) not in prompt


def test_excerpt_by_type():
    assert extract_excerpt(b"hello", "text/plain", ".txt") == "hello"
    assert extract_excerpt(b"\x89PNG", "image/png", ".png") is None
    # broken PDF bytes are logged and skipped
    assert extract_excerpt(b"not a pdf", "application/pdf", ".pdf") is None
