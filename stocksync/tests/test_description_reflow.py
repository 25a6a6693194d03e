"""Tests for description reflow steps, brand protection and idempotence."""

import pytest

from stocksync.services.description_reflow import (
    REFLOW_STEPS,
    break_bullets,
    break_section_headers,
    break_sentences,
    reflow,
    split_concatenated_words,
    with_attention_grabber,
)

SAMPLES = [
    "One owner from new.Features:Heated SeatsParking Sensors",
    "Great car.Standard Equipment:Alloy Wheels•Cruise Control•Apple CarPlay",
    "Low mileageKey Features:Sat NavBluetooth",
    "Finished in blue with McLaren styling.Comes with EcoBoost engine and xDrive.",
    "Already\n\nformatted.\n\nNothing to do.",
    "",
]


class TestSteps:

    def test_steps_are_named_and_ordered(self):
        names = [name for name, _ in REFLOW_STEPS]
        assert names[0] == "normalize_text"
        assert names.index("protect_terms") < names.index("split_concatenated_words") < names.index("restore_terms")
        assert names[-1] == "trim"

    def test_sentence_break(self):
        assert break_sentences("history.Features") == "history.\n\nFeatures"

    def test_sentence_break_leaves_numbers_alone(self):
        assert break_sentences("1.0 litre engine") == "1.0 litre engine"

    def test_section_header_starts_paragraph(self):
        assert break_section_headers("Low mileageKey Features:Sat Nav") == "Low mileage\n\nKey Features:Sat Nav"

    def test_bullets_start_new_lines(self):
        assert break_bullets("Alloys•Cruise•Nav") == "Alloys\n•Cruise\n•Nav"

    def test_split_concatenated_words(self):
        assert split_concatenated_words("Heated SeatsParking Sensors") == "Heated Seats\nParking Sensors"

    def test_split_skips_non_words(self):
        # "Mc" is too short to be a word on its own
        assert split_concatenated_words("McDonald") == "McDonald"


class TestReflow:

    def test_full_example(self):
        assert reflow(SAMPLES[0]) == "One owner from new.\n\nFeatures:Heated Seats\nParking Sensors"

    def test_protected_terms_survive(self):
        result = reflow(SAMPLES[3])
        assert "McLaren" in result
        assert "EcoBoost" in result
        assert "xDrive" in result

    def test_apple_carplay_not_split(self):
        result = reflow("Alloy Wheels•Apple CarPlay•Android Auto")
        assert result == "Alloy Wheels\n•Apple CarPlay\n•Android Auto"

    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text):
        once = reflow(text)
        assert reflow(once) == once

    def test_none_and_empty(self):
        assert reflow(None) == ""
        assert reflow("") == ""

    def test_collapses_excess_breaks(self):
        assert reflow("First.\n\n\n\n\nSecond.") == "First.\n\nSecond."

    def test_normalises_windows_line_endings(self):
        assert reflow("Line one\r\nLine two") == "Line one\nLine two"


class TestAttentionGrabber:

    def test_prepends_headline(self):
        assert with_attention_grabber("Body text", "Must see") == "**Must see**\n\nBody text"

    def test_not_duplicated(self):
        once = with_attention_grabber("Body text", "Must see")
        assert with_attention_grabber(once, "Must see") == once

    def test_blank_grabber_ignored(self):
        assert with_attention_grabber("Body text", "  ") == "Body text"
        assert with_attention_grabber("Body text", None) == "Body text"
