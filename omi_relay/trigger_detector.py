"""Wake phrase, help intent and memory command detection over a transcript."""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from omi_relay.config import HELP_KEYWORDS, MEMORY_SAVE_PHRASES, MEMORY_SEARCH_PHRASES, WAKE_PHRASES

logger = logging.getLogger(__name__)

# Stripped from the start of whatever follows a matched phrase
LEADING_PUNCT = ".,;:!? \t\n"


class TriggerPolicy(str, Enum):
    """How a phrase is matched inside the transcript.

    WORD_BOUNDARY refuses matches embedded in a larger word ("hey omicron")
    or followed by an apostrophe ("hey omi's battery").
    SUBSTRING is plain case-insensitive containment.
    """

    WORD_BOUNDARY = "word_boundary"
    SUBSTRING = "substring"


def compile_phrase(phrase: str, policy: TriggerPolicy = TriggerPolicy.WORD_BOUNDARY) -> re.Pattern:
    """Compile a phrase into a case-insensitive pattern.

    Runs of whitespace inside the phrase match any run of whitespace.
    """
    body = r"\s+".join(re.escape(word) for word in phrase.split())
    if policy == TriggerPolicy.WORD_BOUNDARY:
        if phrase[:1].isalnum():
            body = r"(?<!\w)" + body
        if phrase[-1:].isalnum():
            body = body + r"(?![\w'])"
    return re.compile(body, re.IGNORECASE)


@dataclass
class TriggerResult:
    has_wake_phrase: bool = False
    has_help_intent: bool = False
    memory_command: str | None = None  # "save" | "search"
    memory_text: str = ""


class TriggerDetector:
    """Detects wake phrases, help keywords and memory commands.

    Args:
        wake_phrases: Accepted wake-phrase variants, most specific first.
            The order is the priority used when locating the phrase.
        help_keywords: Keywords that signal a request for usage help.
        policy: Matching policy for all phrases.
        memory_save_phrases: Command prefixes that store a memory.
        memory_search_phrases: Command prefixes that query memories.
    """

    def __init__(self, wake_phrases=None, help_keywords=None,
                 policy: TriggerPolicy = TriggerPolicy.WORD_BOUNDARY,
                 memory_save_phrases=None, memory_search_phrases=None):
        self.policy = TriggerPolicy(policy)
        self.wake_phrases = list(wake_phrases or WAKE_PHRASES)
        self.help_keywords = list(help_keywords or HELP_KEYWORDS)
        self.memory_save_phrases = list(memory_save_phrases if memory_save_phrases is not None else MEMORY_SAVE_PHRASES)
        self.memory_search_phrases = list(memory_search_phrases if memory_search_phrases is not None else MEMORY_SEARCH_PHRASES)

        self._wake = [compile_phrase(p, self.policy) for p in self.wake_phrases]
        self._help = [compile_phrase(k, self.policy) for k in self.help_keywords]
        self._memory = [("save", compile_phrase(p, self.policy)) for p in self.memory_save_phrases]
        self._memory += [("search", compile_phrase(p, self.policy)) for p in self.memory_search_phrases]

    @classmethod
    def from_config(cls, config: dict) -> "TriggerDetector":
        t = config.get("triggers", {})
        return cls(
            wake_phrases=t.get("wake_phrases"),
            help_keywords=t.get("help_keywords"),
            policy=t.get("policy", TriggerPolicy.WORD_BOUNDARY),
            memory_save_phrases=t.get("memory_save_phrases"),
            memory_search_phrases=t.get("memory_search_phrases"),
        )

    def find_wake_phrase(self, text: str) -> re.Match | None:
        """Return the match of the highest-priority variant present in ``text``."""
        for pattern in self._wake:
            m = pattern.search(text)
            if m:
                return m
        return None

    def has_wake_phrase(self, text: str) -> bool:
        return self.find_wake_phrase(text) is not None

    def has_help_intent(self, text: str) -> bool:
        return any(p.search(text) for p in self._help)

    def memory_command(self, text: str) -> tuple[str | None, str]:
        """Detect a memory command at the start of the request.

        The request is the transcript itself, or whatever follows the wake
        phrase when one is present. Returns ``(kind, argument)`` or
        ``(None, "")``.
        """
        m = self.find_wake_phrase(text)
        body = (text[m.end():] if m else text).lstrip(LEADING_PUNCT)
        for kind, pattern in self._memory:
            cmd = pattern.match(body)
            if cmd:
                return kind, body[cmd.end():].lstrip(LEADING_PUNCT).strip()
        return None, ""

    def detect(self, transcript: str) -> TriggerResult:
        kind, argument = self.memory_command(transcript)
        result = TriggerResult(
            has_wake_phrase=self.has_wake_phrase(transcript),
            has_help_intent=self.has_help_intent(transcript),
            memory_command=kind,
            memory_text=argument,
        )
        logger.debug(f"[TRIGGER] {result} for: {transcript[:100]}")
        return result
