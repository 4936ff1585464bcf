"""
유틸리티 함수 단위 테스트
"""
import asyncio
from types import SimpleNamespace

import pytest

from prompt.prompt_manager import PromptManager
from utils.errors import RateLimitError
from utils import rate_limiter as rate_limiter_module
from utils.rate_limiter import RateLimiter
from utils.retry import backoff_delay, retry_with_backoff
from utils.text import (
    count_words, estimate_read_time, parse_generated_story, split_into_sections, split_paragraphs,
)


@pytest.mark.unit
class TestParseGeneratedStory:
    """첫 줄 제목 분리"""

    def test_heading_marker_removed(self):
        title, content = parse_generated_story("# The Brave Bunny\n\nOnce upon a time.\n\nThe End.")
        assert title == "The Brave Bunny"
        assert content == "Once upon a time.\n\nThe End."

    def test_bold_title(self):
        title, _ = parse_generated_story("**Moonlight Picnic**\nA story.")
        assert title == "Moonlight Picnic"

    def test_empty_title_line(self):
        title, content = parse_generated_story("\nJust a story.")
        assert title == "Untitled Story"
        assert content == "Just a story."


@pytest.mark.unit
class TestTextMetrics:
    """단어 수 / 읽기 시간"""

    def test_count_words(self):
        assert count_words("one  two\nthree") == 3
        assert count_words("") == 0

    @pytest.mark.parametrize("words,minutes", [(0, 0), (1, 1), (200, 1), (201, 2), (1000, 5)])
    def test_estimate_read_time(self, words, minutes):
        assert estimate_read_time(" ".join(["w"] * words)) == minutes


@pytest.mark.unit
class TestSplitIntoSections:
    """삽화용 구간 분할"""

    def test_exact_section_count(self, multi_paragraph_story):
        for count in (1, 2, 3, 4):
            assert len(split_into_sections(multi_paragraph_story, count)) == count

    def test_keeps_paragraph_order(self, multi_paragraph_story):
        sections = split_into_sections(multi_paragraph_story, 2)
        assert "\n\n".join(sections) == "\n\n".join(split_paragraphs(multi_paragraph_story))

    def test_single_paragraph_split_by_sentences(self):
        sections = split_into_sections("A fox woke up. The moon was bright. The fox went home.", 2)

        assert sections == ["A fox woke up. The moon was bright.", "The fox went home."]

    def test_fewer_paragraphs_uses_sentences(self):
        content = "The moon rose.\n\nAn owl called softly. The fox listened!"

        assert split_into_sections(content, 3) == ["The moon rose.", "An owl called softly.", "The fox listened!"]

    def test_quoted_sentence_end(self):
        sections = split_into_sections('"Goodnight," said Owl. "Sleep well." Fox smiled.', 3)
        assert sections == ['"Goodnight," said Owl.', '"Sleep well."', "Fox smiled."]

    def test_too_few_sentences_repeats_last(self):
        assert split_into_sections("First.\n\nSecond.", 4) == ["First.", "Second.", "Second.", "Second."]

    def test_zero_sections(self):
        assert split_into_sections("Anything", 0) == []


@pytest.mark.unit
class TestRateLimiter:
    """시간당 요청 제한"""

    def test_limit_per_client(self):
        limiter = RateLimiter(limit_per_hour=2)

        assert limiter.check_rate_limit("alice")
        assert limiter.check_rate_limit("alice")
        with pytest.raises(RateLimitError):
            limiter.check_rate_limit("alice")

        assert limiter.check_rate_limit("bob")
        assert limiter.get_total_requests() == 3
        assert limiter.get_status()["active_clients"] == 2

    def test_idle_clients_dropped(self, monkeypatch):
        now = [1000.0]
        monkeypatch.setattr(rate_limiter_module, "time", SimpleNamespace(time=lambda: now[0]))
        limiter = RateLimiter(limit_per_hour=5)

        limiter.check_rate_limit("alice")
        limiter.check_rate_limit("bob")
        assert limiter.get_status()["active_clients"] == 2

        now[0] += 3601
        limiter.check_rate_limit("bob")

        assert limiter.get_status()["active_clients"] == 1
        assert "alice" not in limiter._requests
        assert limiter._requests["bob"] == [now[0]]

    def test_reset(self):
        limiter = RateLimiter(limit_per_hour=1)
        limiter.check_rate_limit("alice")
        limiter.reset()

        assert limiter.check_rate_limit("alice")


@pytest.mark.unit
class TestRetry:
    """지수 백오프 재시도"""

    def test_backoff_delay(self):
        assert [backoff_delay(a, 1.0) for a in range(3)] == [1.0, 2.0, 4.0]
        assert backoff_delay(1, 0.5) == 1.0

    def test_succeeds_after_failures(self, recording_sleep):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("boom")
            return "ok"

        result = asyncio.run(retry_with_backoff(flaky, max_attempts=3, base_delay=1.0, sleep=recording_sleep))

        assert result == "ok"
        assert recording_sleep.delays == [1.0, 2.0]

    def test_last_error_propagates(self, recording_sleep):
        async def broken():
            raise ConnectionError("down")

        with pytest.raises(ConnectionError):
            asyncio.run(retry_with_backoff(broken, max_attempts=3, sleep=recording_sleep))

        assert len(recording_sleep.delays) == 2

    def test_non_retryable_error_not_retried(self, recording_sleep):
        async def invalid():
            raise KeyError("bad")

        with pytest.raises(KeyError):
            asyncio.run(retry_with_backoff(invalid, retry_on=(ConnectionError,), sleep=recording_sleep))

        assert recording_sleep.delays == []

    def test_invalid_attempts(self):
        async def noop():
            return None

        with pytest.raises(ValueError):
            asyncio.run(retry_with_backoff(noop, max_attempts=0))


@pytest.mark.unit
class TestPromptManager:
    """프롬프트 파일 오버라이드"""

    def test_file_overrides_default(self, tmp_path):
        (tmp_path / "coach_system.txt").write_text("Custom coach prompt", encoding="utf-8")

        manager = PromptManager(tmp_path)

        assert manager.get("coach_system") == "Custom coach prompt"
        assert "children's story writer" in manager.get("engine_system")

    def test_token_ceilings(self):
        assert PromptManager.get_direct_max_tokens("short") == 400
        assert PromptManager.get_direct_max_tokens("medium") == 800
        assert PromptManager.get_direct_max_tokens("long") == 1500

    def test_structured_prompt(self, tmp_path):
        manager = PromptManager(tmp_path)
        prompt = manager.build_structured_story_prompt("short", "Under the sea", "a curious crab", ["Kindness", "Bravery"])

        assert prompt == (
            "Create a short children's bedtime story set in under the sea "
            "featuring a curious crab that teaches about Kindness and Bravery"
        )
