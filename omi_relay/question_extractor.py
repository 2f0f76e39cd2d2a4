"""Pull the user's question out of transcript segments."""

import logging
from enum import Enum

from omi_relay.trigger_detector import LEADING_PUNCT, TriggerDetector

logger = logging.getLogger(__name__)


class ExtractionPolicy(str, Enum):
    """Where the question is read from once a wake phrase is found.

    SEGMENT: remainder of the matching segment, else all later segments.
    TRANSCRIPT: everything after the wake phrase in the joined transcript.

    Either way, punctuation and whitespace between the wake phrase and the
    question are dropped, so "Hey Omi. What time" asks "What time" rather
    than ". What time".
    """

    SEGMENT = "segment"
    TRANSCRIPT = "transcript"


def _segment_text(segment) -> str:
    if isinstance(segment, dict):
        return segment.get("text") or ""
    return getattr(segment, "text", "") or ""


def _clean(text: str) -> str:
    return text.lstrip(LEADING_PUNCT).strip()


class QuestionExtractor:
    def __init__(self, detector: TriggerDetector, policy: ExtractionPolicy = ExtractionPolicy.SEGMENT):
        self.detector = detector
        self.policy = ExtractionPolicy(policy)

    def extract(self, segments: list) -> str | None:
        """Return the question following the wake phrase, or None.

        None means a wake phrase may be present but nothing was asked.
        """
        if self.policy == ExtractionPolicy.TRANSCRIPT:
            return self._from_transcript(segments)
        return self._from_segments(segments)

    def _from_segments(self, segments: list) -> str | None:
        for i, segment in enumerate(segments):
            text = _segment_text(segment)
            m = self.detector.find_wake_phrase(text)
            if not m:
                continue
            question = _clean(text[m.end():])
            if not question:
                later = " ".join(_segment_text(s) for s in segments[i + 1:])
                question = _clean(later)
            return question or None
        return None

    def _from_transcript(self, segments: list) -> str | None:
        transcript = " ".join(_segment_text(s) for s in segments).strip()
        m = self.detector.find_wake_phrase(transcript)
        if not m:
            return None
        return _clean(transcript[m.end():]) or None
