"""Script segmentation - split a script into ordered, typed scene drafts.

Classification is keyword based. It is a heuristic, not language
understanding, and is kept behind the ``SceneClassifier`` protocol so a
model-backed classifier can replace it without changing ``segment``.
"""

import logging
import math
import re
from typing import Protocol

from models.storyboard import ContentType, SceneDraft

logger = logging.getLogger(__name__)

MIN_PARAGRAPH_LENGTH = 10
CHARS_PER_SECOND = 20
VISUAL_CONTEXT_WINDOW = 20

PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")

DIALOGUE_MARKERS = ("says", "said", ":")
TRANSITION_PREFIXES = ("Then",)
TRANSITION_MARKERS = ("Next", "After")

# First match wins, checked in order
EMOTION_LEXICON: list[tuple[tuple[str, ...], str]] = [
    (("happy", "excited"), "happy"),
    (("sad", "upset"), "sad"),
    (("serious", "professional"), "serious"),
]

VISUAL_KEYWORDS = ("shows", "displays", "screen", "image", "picture", "view", "camera")


class SceneClassifier(Protocol):
    """Assigns content type, emotion and visual elements to a paragraph."""

    def content_type(self, paragraph: str, position: int, total: int) -> ContentType: ...

    def emotion(self, paragraph: str) -> str | None: ...

    def visual_elements(self, paragraph: str) -> list[str] | None: ...


class KeywordSceneClassifier:
    """Keyword-containment classifier."""

    def content_type(self, paragraph: str, position: int, total: int) -> ContentType:
        """Classify a retained paragraph.

        Args:
            paragraph: Stripped paragraph text
            position: Zero-based position among retained paragraphs
            total: Number of retained paragraphs

        Returns:
            The content type; intro and outro take priority over keywords
        """
        if position == 0:
            return ContentType.INTRO
        if position == total - 1:
            return ContentType.OUTRO
        if any(marker in paragraph for marker in DIALOGUE_MARKERS):
            return ContentType.DIALOGUE
        if paragraph.startswith(TRANSITION_PREFIXES) or any(
            marker in paragraph for marker in TRANSITION_MARKERS
        ):
            return ContentType.TRANSITION
        return ContentType.ACTION

    def emotion(self, paragraph: str) -> str | None:
        lowered = paragraph.lower()
        for keywords, tag in EMOTION_LEXICON:
            if any(keyword in lowered for keyword in keywords):
                return tag
        return None

    def visual_elements(self, paragraph: str) -> list[str] | None:
        lowered = paragraph.lower()
        elements = []
        for keyword in VISUAL_KEYWORDS:
            index = lowered.find(keyword)
            if index == -1:
                continue
            start = max(0, index - VISUAL_CONTEXT_WINDOW)
            end = min(len(paragraph), index + VISUAL_CONTEXT_WINDOW)
            elements.append(paragraph[start:end])
        return elements or None


def estimate_duration(paragraph: str) -> int:
    """Estimated narration seconds for a paragraph (~20 chars/sec)."""
    return math.ceil(len(paragraph) / CHARS_PER_SECOND)


def split_paragraphs(script_text: str) -> list[str]:
    """Split on blank lines and drop paragraphs too short to be a scene."""
    paragraphs = (p.strip() for p in PARAGRAPH_SPLIT.split(script_text))
    return [p for p in paragraphs if len(p) >= MIN_PARAGRAPH_LENGTH]


class ScriptSegmenter:
    """Turns script text into scene drafts. Pure: no I/O."""

    def __init__(self, classifier: SceneClassifier | None = None):
        self.classifier = classifier or KeywordSceneClassifier()

    def segment(self, script_text: str) -> list[SceneDraft]:
        """Segment a script into scene drafts.

        Args:
            script_text: Full script text

        Returns:
            Drafts in paragraph order with scene_index 0..N-1. An empty or
            too-short script yields an empty list.

        Raises:
            TypeError: If script_text is not a string
        """
        if not isinstance(script_text, str):
            raise TypeError(f"script_text must be str, got {type(script_text).__name__}")

        paragraphs = split_paragraphs(script_text)
        total = len(paragraphs)
        drafts = []

        for index, paragraph in enumerate(paragraphs):
            drafts.append(
                SceneDraft(
                    scene_index=index,
                    scene_name=f"Scene {index + 1}",
                    scene_content=paragraph,
                    content_type=self.classifier.content_type(paragraph, index, total),
                    emotion=self.classifier.emotion(paragraph),
                    visual_elements=self.classifier.visual_elements(paragraph),
                    duration=estimate_duration(paragraph),
                )
            )

        logger.debug(f"Segmented script into {len(drafts)} scenes")
        return drafts


def segment(script_text: str) -> list[SceneDraft]:
    """Segment with the default keyword classifier."""
    return ScriptSegmenter().segment(script_text)
