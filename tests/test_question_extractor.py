"""Tests for QuestionExtractor."""

import pytest

from omi_relay.models import TranscriptSegment
from omi_relay.question_extractor import ExtractionPolicy, QuestionExtractor
from omi_relay.trigger_detector import TriggerDetector, TriggerPolicy


@pytest.fixture
def extractor():
    return QuestionExtractor(TriggerDetector())


def segs(*texts):
    return [{"text": t} for t in texts]


class TestSegmentPolicy:
    def test_question_in_same_segment(self, extractor):
        assert extractor.extract(segs("Hey Omi, what's 2+2?")) == "what's 2+2?"

    def test_question_in_following_segment(self, extractor):
        result = extractor.extract(segs("Hey Omi", "what's the capital of France?"))
        assert result == "what's the capital of France?"

    def test_following_segments_joined_with_spaces(self, extractor):
        result = extractor.extract(segs("hey omi,", "what is", "the tallest mountain"))
        assert result == "what is the tallest mountain"

    def test_keeps_original_case(self, extractor):
        assert extractor.extract(segs("HEY OMI Who Wrote Hamlet")) == "Who Wrote Hamlet"

    def test_leading_punctuation_dropped(self, extractor):
        assert extractor.extract(segs("Hey Omi. What time is it?")) == "What time is it?"

    def test_text_before_wake_phrase_ignored(self, extractor):
        assert extractor.extract(segs("so anyway hey omi how tall is Everest")) == "how tall is Everest"

    def test_earlier_segments_ignored(self, extractor):
        result = extractor.extract(segs("talking about lunch", "Hey Omi, what's for dinner?"))
        assert result == "what's for dinner?"

    def test_stops_at_first_matching_segment(self, extractor):
        result = extractor.extract(segs("Hey Omi, first question", "hey omi second question"))
        assert result == "first question"

    def test_no_wake_phrase(self, extractor):
        assert extractor.extract(segs("just chatting about lunch")) is None

    def test_wake_phrase_with_nothing_after(self, extractor):
        assert extractor.extract(segs("Hey Omi")) is None
        assert extractor.extract(segs("Hey Omi,", "   ")) is None

    def test_accepts_segment_models(self, extractor):
        segments = [TranscriptSegment(text="Hey Omi"), TranscriptSegment(text="tell me a joke")]
        assert extractor.extract(segments) == "tell me a joke"

    def test_word_boundary_rejects_embedded_match(self, extractor):
        assert extractor.extract(segs("hey omicron is a variant")) is None

    def test_possessive_is_not_a_wake_phrase(self, extractor):
        assert extractor.extract(segs("hey omi's battery is low")) is None

    def test_substring_policy(self):
        extractor = QuestionExtractor(TriggerDetector(policy=TriggerPolicy.SUBSTRING))
        assert extractor.extract(segs("hey omicron is a variant")) == "cron is a variant"


class TestTranscriptPolicy:
    def test_wake_phrase_split_from_question(self):
        extractor = QuestionExtractor(TriggerDetector(), ExtractionPolicy.TRANSCRIPT)
        result = extractor.extract(segs("well", "hey omi what is", "the capital of Peru"))
        assert result == "what is the capital of Peru"

    def test_no_question(self):
        extractor = QuestionExtractor(TriggerDetector(), "transcript")
        assert extractor.extract(segs("hey omi")) is None
