"""
스토리 텍스트 처리 유틸리티
"""

import math
import re
from typing import List, Tuple

WORDS_PER_MINUTE = 200
DEFAULT_TITLE = "Untitled Story"

_HEADING_MARKER = re.compile(r"^#+\s*")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+|(?<=[.!?][\"”’])\s+")


def parse_generated_story(generated: str) -> Tuple[str, str]:
    """첫 줄은 제목, 나머지는 본문"""
    lines = generated.split("\n")
    title = _HEADING_MARKER.sub("", lines[0]).strip()
    # 모델이 **Title** 형태로 감싸는 경우
    title = title.strip("*").strip()
    content = "\n".join(lines[1:]).strip()

    return title or DEFAULT_TITLE, content


def count_words(content: str) -> int:
    return len(content.split())


def estimate_read_time(content: str) -> int:
    """분 단위 (200 wpm, 올림)"""
    return math.ceil(count_words(content) / WORDS_PER_MINUTE)


def split_paragraphs(content: str) -> List[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", content) if p.strip()]


def split_sentences(paragraph: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_END.split(paragraph) if s.strip()]


def _group_units(units: List[str], count: int, separator: str) -> List[str]:
    """순서를 유지하면서 단어 수가 비슷한 count개 구간으로 묶음 (len(units) >= count)"""
    total_words = sum(count_words(u) for u in units)
    target = total_words / count

    sections = []
    current = []
    current_words = 0

    for index, unit in enumerate(units):
        current.append(unit)
        current_words += count_words(unit)

        remaining_units = len(units) - index - 1
        remaining_sections = count - len(sections) - 1

        if remaining_sections == 0:
            continue

        if current_words >= target or remaining_units == remaining_sections:
            sections.append(separator.join(current))
            current = []
            current_words = 0

    if current:
        sections.append(separator.join(current))

    return sections


def split_into_sections(content: str, count: int) -> List[str]:
    """문단 경계를 유지하면서 단어 수 기준으로 count개의 구간으로 분할

    문단이 부족하면 문장 단위로 나눔
    """
    if count < 1:
        return []

    paragraphs = split_paragraphs(content)
    if not paragraphs:
        return [content.strip()] * count if content.strip() else [""] * count

    if len(paragraphs) >= count:
        return _group_units(paragraphs, count, "\n\n")

    sentences = [s for p in paragraphs for s in split_sentences(p)]
    if len(sentences) >= count:
        return _group_units(sentences, count, " ")

    # 문장도 부족하면 마지막 문장을 반복 사용
    return sentences + [sentences[-1]] * (count - len(sentences))
