"""
프롬프트 관리자 - 시스템 프롬프트 로딩 + 사용자 프롬프트 조립
prompt/ 디렉토리에 {name}.txt 파일이 있으면 기본값 대신 사용
"""

from typing import Any, Dict, List, Optional
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# 길이별 max_tokens (스토리 엔진)
ENGINE_MAX_TOKENS = {
    "short": 800,
    "medium": 1500,
    "long": 2500,
}
DEFAULT_ENGINE_MAX_TOKENS = 1500

# 길이별 max_tokens (generate-story)
DIRECT_MAX_TOKENS = {
    "short": 400,
    "medium": 800,
    "long": 1500,
}

LENGTH_GUIDE = {
    "short": "Keep the story brief, around 100-200 words.",
    "medium": "Write a medium-length story, around 300-500 words.",
    "long": "Create a longer story, around 600-1000 words.",
}

SCENE_PROMPT_LIMIT = 500

DEFAULT_PROMPTS = {
    "engine_system": "You are a skilled children's story writer. Create engaging, age-appropriate stories.",
    "guided_addon": "Focus on clear moral lessons and educational value.",
    "title_instruction": "Always start with a clear title on the first line, followed by the story content.",
    "continue_system": (
        "You are a skilled children's story writer. Continue the given story naturally "
        "and engagingly based on the user's direction."
    ),
    "edit_system": (
        "You are a skilled children's story writer. Edit the given story according to the "
        "user's instructions while maintaining the story's essence and flow."
    ),
    "coach_system": (
        "You are a helpful writing coach for children's stories. Provide constructive, "
        "encouraging feedback and suggestions."
    ),
    "bedtime_system": (
        "You are a creative children's story writer. Create engaging, age-appropriate bedtime stories."
    ),
    "structured_opening_system": (
        "You are creating a structured children's bedtime story. This will be generated in parts - "
        "start with the opening and stop at an exciting moment to ask the user what should happen next. "
        "Keep each part around 150-200 words."
    ),
    "structured_next_system": "You are continuing a children's bedtime story based on user input.",
}


class PromptManager:
    """프롬프트 관리자"""

    def __init__(self, prompts_dir: Optional[Path] = None):
        self.prompts_dir = prompts_dir or Path(__file__).parent
        self.prompts = self._load_prompts()

    def _load_prompts(self) -> Dict[str, str]:
        prompts = dict(DEFAULT_PROMPTS)
        for name in DEFAULT_PROMPTS:
            path = self.prompts_dir / f"{name}.txt"
            if path.exists():
                prompts[name] = self._read_prompt_file(path)
                logger.info(f"Loaded prompt override: {path.name}")
        return prompts

    def _read_prompt_file(self, file_path: Path) -> str:
        with open(file_path, 'r', encoding='utf-8') as f:
            return f.read().strip()

    def get(self, name: str) -> str:
        return self.prompts[name]

    # 스토리 엔진

    def build_system_prompt(self, story_type: str, length: str, tone: Optional[str] = None) -> str:
        parts = [self.get("engine_system")]

        if story_type == "guided":
            parts.append(self.get("guided_addon"))

        if tone:
            parts.append(f"The story should have a {tone} tone.")

        parts.append(self.get("title_instruction"))
        return " ".join(parts)

    def build_user_prompt(self, text: str, characters: List[Dict[str, Any]],
                          places: List[Dict[str, Any]], additional_context: Optional[str] = None) -> str:
        prompt = f"Create a story based on: {text}"

        if characters:
            lines = []
            for c in characters:
                traits = ", ".join(c.get("traits") or [])
                lines.append(f"- {c['name']}: {c.get('description') or ''} {traits}".rstrip())
            prompt += "\n\nInclude these characters:\n" + "\n".join(lines)

        if places:
            lines = [
                f"- {p['name']} ({p.get('location_type') or 'place'}): {p.get('description') or ''}".rstrip()
                for p in places
            ]
            prompt += "\n\nSet in these locations:\n" + "\n".join(lines)

        if additional_context:
            prompt += f"\n\nAdditional context: {additional_context}"

        return prompt

    def build_continue_prompt(self, current_story: str, direction: str) -> str:
        return f"Current story:\n{current_story}\n\nContinue the story with: {direction}"

    def build_edit_prompt(self, current_story: str, instructions: str) -> str:
        return (
            f"Current story:\n{current_story}\n\nEdit instructions: {instructions}"
            "\n\nProvide the complete edited story."
        )

    def build_coach_prompt(self, content: str, request: str) -> str:
        return f"Story content:\n{content}\n\nUser request: {request}"

    @staticmethod
    def get_max_tokens_for_length(length: str) -> int:
        return ENGINE_MAX_TOKENS.get(length, DEFAULT_ENGINE_MAX_TOKENS)

    # 이미지

    def build_scene_image_prompt(self, scene: str) -> str:
        return (
            "Create a beautiful children's book illustration for this story scene: "
            f"{scene[:SCENE_PROMPT_LIMIT]}"
        )

    def build_styled_image_prompt(self, prompt: str) -> str:
        return (
            f"Children's storybook illustration: {prompt}. "
            "Style: colorful, friendly, age-appropriate, digital art"
        )

    # generate-story

    def build_bedtime_system_prompt(self, length: str) -> str:
        system = self.get("bedtime_system")
        guide = LENGTH_GUIDE.get(length)
        return f"{system} {guide}" if guide else system

    def build_bedtime_user_prompt(self, prompt: str, setting: Optional[str] = None,
                                  characters: Optional[List[Dict[str, Any]]] = None,
                                  themes: Optional[List[str]] = None) -> str:
        story_prompt = prompt
        if setting:
            story_prompt += f" The story takes place in {setting}."
        if characters:
            names = ", ".join(str(c.get("name", "")) for c in characters if c.get("name"))
            if names:
                story_prompt += f" Characters include: {names}."
        if themes:
            story_prompt += f" Themes: {', '.join(themes)}."
        return story_prompt

    @staticmethod
    def get_direct_max_tokens(length: str) -> int:
        return DIRECT_MAX_TOKENS.get(length, DIRECT_MAX_TOKENS["short"])

    # structured-story-flow

    def build_structured_story_prompt(self, length: Optional[str], setting: Optional[str],
                                      characters: Optional[str], themes: Optional[List[str]]) -> str:
        story_prompt = f"Create a {length or 'medium'} children's bedtime story"

        if setting and setting != "Custom setting":
            story_prompt += f" set in {setting.lower()}"

        if characters:
            story_prompt += f" featuring {characters}"

        if themes:
            story_prompt += f" that teaches about {' and '.join(themes)}"

        return story_prompt

    def build_structured_next_prompt(self, current_story: str, user_response: str) -> str:
        return (
            f"Continue this children's story based on the user's input. "
            f"Current story: \"{current_story}\" User wants: \"{user_response}\". "
            "Continue the story for another 150-200 words and either conclude it naturally "
            "or stop at another decision point."
        )


_prompt_manager = None


def get_prompt_manager() -> PromptManager:
    """프롬프트 관리자 싱글톤"""
    global _prompt_manager
    if _prompt_manager is None:
        _prompt_manager = PromptManager()
    return _prompt_manager
