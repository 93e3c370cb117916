"""Tolerant parser for the expert recommendation tables.

The model is asked for three markdown tables (local, regional, national).
Replies drift: extra commentary, bold markers, Chinese headers, placeholder
rows. Anything that does not look like a real expert row is dropped.
"""
from __future__ import annotations

import re

from loguru import logger

from app.models.review import ExpertRecord, ExpertTier

_LOCAL_RE = re.compile(r"\blocal\b|\bshenzhen\b|深圳|本地", re.IGNORECASE)
_REGIONAL_RE = re.compile(r"\bregional\b|\bguangdong\b|\bprovinc(?:e|ial)\b|广东|省内|区域", re.IGNORECASE)
_NATIONAL_RE = re.compile(r"\bnational\b|\bnationwide\b|\bother\b|全国|外地|特殊|其他", re.IGNORECASE)

_HEADER_CELLS = {
    "name", "expert", "expert name", "organization", "organisation", "institution",
    "affiliation", "title", "research field", "field", "reason",
    "姓名", "专家姓名", "单位", "所属单位", "职称", "研究方向", "推荐理由",
}

_CJK_NAME_RE = re.compile(r"^[\u4e00-\u9fa5]{2,4}$")
_LATIN_NAME_RE = re.compile(r"^[A-Z][a-zA-Z'\-]+(?: [A-Z][a-zA-Z'\-]+){1,3}$")

_INVALID_CJK_FRAGMENTS = (
    "教授", "研究员", "副教授", "讲师", "博士", "硕士",
    "院士", "主任", "总监", "经理", "工程师", "专家",
    "评审", "维度", "创新", "可行", "能力", "成本",
    "技术", "产线", "建设", "指标", "团队", "财务",
    "管理", "待定", "暂无", "未知", "其他", "备选",
)

_INVALID_LATIN_WORDS = {
    "professor", "prof", "dr", "doctor", "researcher", "director", "manager",
    "engineer", "expert", "experts", "chief", "scientist", "officer", "cto", "ceo",
    "lecturer", "fellow", "academician", "reviewer", "team", "technical", "technology",
    "innovation", "management", "finance", "tbd", "unknown", "none", "other", "pending",
    "name", "local", "regional", "national", "candidate",
}

_PLACEHOLDERS = {"", "...", "…", "-", "--", "n/a", "na", "tbd", "unknown", "待定", "暂无", "未知"}

# "## Local Experts", "**Regional experts:**", "一、本地专家"
_HEADING_RE = re.compile(r"^(?:#{1,6}\s|\*\*.+\*\*[:：]?$|__.+__[:：]?$|[一二三四五六七八九十]+[、.])")


def is_valid_person_name(value: str) -> bool:
    """2-4 CJK characters or 2-4 capitalised Latin words, never a title or placeholder."""
    name = (value or "").strip()
    if _CJK_NAME_RE.match(name):
        return not any(fragment in name for fragment in _INVALID_CJK_FRAGMENTS)
    if _LATIN_NAME_RE.match(name):
        words = {w.strip(".").lower() for w in name.split()}
        return not (words & _INVALID_LATIN_WORDS)
    return False


def _detect_tier(line: str) -> ExpertTier | None:
    # regional first: "Guangdong (outside Shenzhen)" names both places
    if _REGIONAL_RE.search(line):
        return ExpertTier.REGIONAL
    if _NATIONAL_RE.search(line):
        return ExpertTier.NATIONAL
    if _LOCAL_RE.search(line):
        return ExpertTier.LOCAL
    return None


def _split_row(line: str) -> list[str]:
    cells = line.strip().strip("|").split("|")
    return [cell.strip().replace("**", "").replace("*", "").strip() for cell in cells]


def _is_separator(line: str) -> bool:
    return bool(re.fullmatch(r"\|?[\s:\-|]+\|?", line)) and "-" in line


def parse_expert_tables(text: str) -> list[ExpertRecord]:
    experts: list[ExpertRecord] = []
    tier = ExpertTier.LOCAL

    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            continue

        if not line.startswith("|"):
            if _HEADING_RE.match(line):
                tier = _detect_tier(line) or tier
            continue
        if _is_separator(line):
            continue

        cells = _split_row(line)
        if len(cells) < 3:
            continue
        if cells[0].lower() in _HEADER_CELLS or cells[1].lower() in _HEADER_CELLS:
            continue

        name, organization = cells[0], cells[1]
        if not is_valid_person_name(name):
            logger.debug(f"[expert parser] skipping row with invalid name: {name!r}")
            continue
        if organization.lower() in _PLACEHOLDERS or len(organization) < 2:
            continue

        experts.append(
            ExpertRecord(
                name=name,
                organization=organization,
                title=cells[2],
                research_field=cells[3] if len(cells) > 3 else "",
                reason=cells[4] if len(cells) > 4 else "",
                tier=tier,
            )
        )

    logger.debug(f"[expert parser] parsed {len(experts)} experts")
    return experts
