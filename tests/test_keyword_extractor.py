from __future__ import annotations

import pytest

from app.services.keyword_extractor import (
    KeywordParseError,
    extract_keywords_simple,
    fallback_analysis,
    parse_keyword_reply,
)


def test_parse_keyword_reply_finds_embedded_json():
    reply = 'Sure!\n```json\n{"keywords": ["quantum key distribution", 5], "domains": ["physics"]}\n```'

    analysis = parse_keyword_reply(reply)

    assert analysis.keywords == ["quantum key distribution", "5"]
    assert analysis.domains == ["physics"]
    assert analysis.search_queries == []
    assert analysis.source == "llm"


@pytest.mark.parametrize("reply", ["", "| Name | Org |", "{not json}", "[1, 2]"])
def test_parse_keyword_reply_rejects_unusable_text(reply):
    with pytest.raises(KeywordParseError):
        parse_keyword_reply(reply)


def test_simple_extraction_dedupes_in_first_seen_order():
    content = "Lithium battery packs, a lithium battery BMS, deep learning and 5G edge computing."

    assert extract_keywords_simple(content) == [
        "Lithium battery",
        "deep learning",
        "5G",
        "edge computing",
    ]


def test_simple_extraction_matches_chinese_terms():
    content = "本项目研究固态电池与电解质，并结合人工智能与机器人技术。固态电池量产。"

    keywords = extract_keywords_simple(content)

    assert keywords == ["固态电池", "电解质", "人工智能", "机器人"]


def test_simple_extraction_is_capped_at_eight():
    content = (
        "solid-state battery electrolyte cathode anode separator deep learning "
        "neural network photovoltaics hydrogen semiconductor lidar"
    )

    assert len(extract_keywords_simple(content)) == 8


def test_fallback_analysis_without_matches():
    analysis = fallback_analysis("A proposal about municipal parks.")

    assert analysis.keywords == []
    assert analysis.source == "fallback"
