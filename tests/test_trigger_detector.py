"""Tests for TriggerDetector: wake phrases, help intent and memory commands."""

import pytest

from omi_relay.trigger_detector import TriggerDetector, TriggerPolicy, compile_phrase


@pytest.fixture
def detector():
    return TriggerDetector()


class TestWakePhrase:
    @pytest.mark.parametrize("text", [
        "Hey Omi what's the time",
        "hey, omi, what's the time",
        "HEY OMI, tell me a joke",
        "so I said hey omi.",
        "Hey  Omi   spaces everywhere",
    ])
    def test_variants_detected(self, detector, text):
        assert detector.has_wake_phrase(text)

    @pytest.mark.parametrize("text", [
        "just chatting about lunch",
        "they omitted the details",
        "hey omicron variant news",
        "heyomi",
        "hey omi's battery is low",
    ])
    def test_no_wake_phrase(self, detector, text):
        assert not detector.has_wake_phrase(text)

    def test_substring_policy_keeps_legacy_behaviour(self):
        detector = TriggerDetector(policy=TriggerPolicy.SUBSTRING)
        assert detector.has_wake_phrase("hey omicron variant news")

    def test_policy_accepts_string(self):
        detector = TriggerDetector(policy="substring")
        assert detector.policy == TriggerPolicy.SUBSTRING

    def test_priority_prefers_comma_variant(self, detector):
        m = detector.find_wake_phrase("Hey Omi, what's 2+2?")
        assert m.group(0) == "Hey Omi,"

    def test_match_preserves_original_case_offsets(self, detector):
        text = "Well HEY OMI what now"
        m = detector.find_wake_phrase(text)
        assert text[m.end():] == " what now"


class TestHelpIntent:
    def test_help_keyword(self, detector):
        assert detector.has_help_intent("I need some help here")

    def test_phrase_keyword(self, detector):
        assert detector.has_help_intent("what can you do for me")

    def test_helpful_is_not_help(self, detector):
        assert not detector.has_help_intent("that was really helpful")

    def test_no_help(self, detector):
        assert not detector.has_help_intent("talking about the weather")


class TestMemoryCommands:
    def test_save_without_wake_phrase(self, detector):
        kind, text = detector.memory_command("save to memory My dog's name is Max")
        assert kind == "save"
        assert text == "My dog's name is Max"

    def test_save_after_wake_phrase(self, detector):
        kind, text = detector.memory_command("Hey Omi, remember this: meeting at 2 PM")
        assert kind == "save"
        assert text == "meeting at 2 PM"

    def test_search(self, detector):
        assert detector.memory_command("what do you remember about meetings") == ("search", "meetings")
        assert detector.memory_command("search memory programming language") == ("search", "programming language")
        assert detector.memory_command("find in memory dog") == ("search", "dog")

    def test_command_must_lead_the_request(self, detector):
        assert detector.memory_command("I want to recall something later") == (None, "")

    def test_no_command(self, detector):
        assert detector.memory_command("Hey Omi, what's 2+2?") == (None, "")


class TestDetect:
    def test_plain_chatter(self, detector):
        result = detector.detect("just chatting about lunch")
        assert not result.has_wake_phrase
        assert not result.has_help_intent
        assert result.memory_command is None

    def test_wake_and_help_are_independent(self, detector):
        result = detector.detect("hey omi can you help me with taxes")
        assert result.has_wake_phrase
        assert result.has_help_intent

    def test_from_config(self, config):
        config["triggers"]["wake_phrases"] = ["ok jarvis"]
        config["triggers"]["policy"] = "substring"
        detector = TriggerDetector.from_config(config)
        assert detector.has_wake_phrase("OK Jarvis, lights on")
        assert not detector.has_wake_phrase("hey omi")
        assert detector.policy == TriggerPolicy.SUBSTRING


def test_compile_phrase_trailing_punctuation_has_no_boundary():
    pattern = compile_phrase("hey omi,")
    assert pattern.search("hey omi,what")
