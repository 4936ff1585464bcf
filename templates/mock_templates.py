"""
Mock 템플릿 시스템 (API 키 없이 로컬 개발/테스트용)
프롬프트의 system 메시지로 요청 종류를 판별
"""

import re
from typing import Dict, List
from enum import Enum


class MockTone(Enum):
    CALM = "calm"
    FUNNY = "funny"
    MAGICAL = "magical"
    ADVENTURE = "adventure"
    EDUCATIONAL = "educational"


TONE_CONFIG = {
    MockTone.CALM: {
        "title": "The Quiet Night Garden",
        "opening": "The moon rose slowly over the sleepy garden, and every flower folded its petals for the night.",
        "closing": "And with one last yawn, everyone drifted into the softest, sweetest dreams. The End."
    },
    MockTone.FUNNY: {
        "title": "The Giggling Pajamas",
        "opening": "Nobody expected the pajamas to start giggling, least of all the sock that lived under the bed.",
        "closing": "They laughed until their tummies hurt, and then they laughed themselves right to sleep. The End."
    },
    MockTone.MAGICAL: {
        "title": "The Starlight Key",
        "opening": "A tiny silver key fell from the sky and landed, with a gentle tinkle, right on the windowsill.",
        "closing": "The key glowed one last time, tucking the stars back into the sky until tomorrow. The End."
    },
    MockTone.ADVENTURE: {
        "title": "The Map Under the Pillow",
        "opening": "Under the pillow was a crinkled map with a bright red X, and it was calling for an explorer.",
        "closing": "Back home, safe and sound, the brave explorer folded the map and closed their eyes. The End."
    },
    MockTone.EDUCATIONAL: {
        "title": "How the Moon Learned to Glow",
        "opening": "Long ago the moon wondered why it shone at night, so it asked its friend the sun.",
        "closing": "Now the moon knew its light was a gift from the sun, and it shone proudly all night. The End."
    },
}

COACH_SUGGESTIONS = [
    "Give your main character a small wish or worry early on so little listeners care about them.",
    "Add a gentle sound or smell to the setting to make the scene feel cozy.",
    "Try a repeating phrase that children can say along with you.",
    "End on a calm, reassuring moment to help with winding down for sleep.",
]

# 1x1 투명 PNG
PLACEHOLDER_PNG = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


_DIRECTION_PATTERN = re.compile(r'(?:Continue the story with:|User wants:)\s*"?([^"\n]*)')


class MockStoryGenerator:
    """간단한 Mock 스토리 생성기"""

    def respond(self, messages: List[Dict[str, str]]) -> str:
        system = " ".join(m["content"] for m in messages if m.get("role") == "system").lower()
        user = " ".join(m["content"] for m in messages if m.get("role") == "user")

        if "writing coach" in system:
            return "\n".join(COACH_SUGGESTIONS)
        if "continu" in system:
            return self.continue_story(user)
        if "edit the given story" in system:
            return self.edit_story(user)
        return self.generate_story(system, user)

    def _detect_tone(self, text: str) -> MockTone:
        for tone in MockTone:
            if tone.value in text:
                return tone
        return MockTone.CALM

    def generate_story(self, system_prompt: str, user_prompt: str) -> str:
        """제목 + 본문 (첫 줄 제목)"""
        tone = self._detect_tone(system_prompt)
        config = TONE_CONFIG[tone]
        idea = user_prompt.split("\n")[0].replace("Create a story based on:", "").strip()

        paragraphs = [
            config["opening"],
            f"Tonight's story was about {idea or 'a very special bedtime'}.",
            "Step by step, our friends discovered that being kind and brave makes every night brighter.",
            config["closing"],
        ]
        return f"# {config['title']}\n\n" + "\n\n".join(paragraphs)

    def continue_story(self, user_prompt: str) -> str:
        match = _DIRECTION_PATTERN.search(user_prompt)
        direction = match.group(1).strip() if match else ""
        return (
            f"Then something wonderful happened: {direction or 'a new friend appeared'}. "
            "Everyone smiled, and the night felt a little warmer."
        )

    def edit_story(self, user_prompt: str) -> str:
        current = user_prompt.split("Current story:", 1)[-1]
        current = current.split("Edit instructions:", 1)[0].strip()
        return f"{current}\n\n(The story was gently polished.)" if current else "A gently polished story."

    def placeholder_image(self) -> str:
        return PLACEHOLDER_PNG

    def placeholder_audio(self, text: str) -> bytes:
        # ID3 헤더 + 텍스트 (재생 불가, 형식 확인용)
        return b"ID3" + text.encode("utf-8")[:64]