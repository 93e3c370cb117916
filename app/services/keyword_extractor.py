"""Keyword analysis parsing and the dictionary-based fallback extractor."""
from __future__ import annotations

import json
import re

from app.models.review import KeywordAnalysis

MAX_FALLBACK_KEYWORDS = 8

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

# One pattern per technology family; English and Chinese spellings of the same terms.
DOMAIN_TERM_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"solid-state batter(?:y|ies)|lithium batter(?:y|ies)|electrolytes?|cathode|anode|separator|battery cells?"
        r"|固态电池|锂电池|电解质|正极|负极|隔膜|电芯",
        r"artificial intelligence|machine learning|deep learning|large language models?|neural networks?"
        r"|\bNLP\b|computer vision|人工智能|机器学习|深度学习|大模型|神经网络|计算机视觉",
        r"new energy|photovoltaics?|wind power|energy storage|hydrogen|carbon neutrality"
        r"|新能源|光伏|风电|储能|氢能|碳中和",
        r"\bchips?\b|semiconductors?|integrated circuits?|packaging|\bEDA\b|process node"
        r"|芯片|半导体|集成电路|封装|制程",
        r"biomedicine|\bgenes?\b|proteins?|\bcells?\b|antibod(?:y|ies)|\bmRNA\b|CAR-T"
        r"|生物医药|基因|蛋白质|细胞|抗体",
        r"quantum computing|quantum communication|quantum key distribution|quantum entanglement"
        r"|量子计算|量子通信|量子密钥|量子纠缠",
        r"robot(?:s|ics)?|autonomous driving|sensors?|lidar|\bSLAM\b"
        r"|机器人|自动驾驶|传感器|激光雷达",
        r"\b5G\b|\b6G\b|internet of things|\bIoT\b|edge computing|cloud computing"
        r"|物联网|边缘计算|云计算",
    )
)


class KeywordParseError(ValueError):
    """A keyword-extraction reply did not contain a usable JSON object."""


def parse_keyword_reply(text: str) -> KeywordAnalysis:
    """Pull the first ``{...}`` span out of a model reply and read it as keyword JSON."""
    match = _JSON_OBJECT_RE.search(text or "")
    if not match:
        raise KeywordParseError("no JSON object in keyword extraction reply")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise KeywordParseError(f"invalid keyword JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise KeywordParseError("keyword JSON is not an object")

    return KeywordAnalysis(
        keywords=_string_list(payload.get("keywords")),
        domains=_string_list(payload.get("domains")),
        search_queries=_string_list(payload.get("searchQueries") or payload.get("search_queries")),
        source="llm",
    )


def extract_keywords_simple(content: str, limit: int = MAX_FALLBACK_KEYWORDS) -> list[str]:
    """Match the fixed domain-term dictionary, de-duplicated in first-seen order."""
    keywords: list[str] = []
    seen: set[str] = set()
    for pattern in DOMAIN_TERM_PATTERNS:
        for match in pattern.finditer(content or ""):
            term = match.group(0)
            if term.lower() in seen:
                continue
            seen.add(term.lower())
            keywords.append(term)
    return keywords[:limit]


def fallback_analysis(content: str) -> KeywordAnalysis:
    return KeywordAnalysis(
        keywords=extract_keywords_simple(content),
        domains=[],
        search_queries=[],
        source="fallback",
    )


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
