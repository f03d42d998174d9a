"""Tests for the offline text analytics engine."""

from __future__ import annotations

import pytest

from omnis.ai.analytics import (
    AssistantMode,
    QueryIntent,
    answer_query,
    capitalization_issues,
    classify_query,
    document_stats,
    extractive_summary,
    normalize_text,
    split_sentences,
    word_frequencies,
)


class TestClassification:
    """Tests for keyword-based intent classification."""

    @pytest.mark.parametrize(
        ("query", "intent"),
        [
            ("What are the MOST USED words?", QueryIntent.FREQUENCY),
            ("word frequency please", QueryIntent.FREQUENCY),
            ("most common words", QueryIntent.FREQUENCY),
            ("Give me an overview", QueryIntent.SUMMARIZE),
            ("Summarize this", QueryIntent.SUMMARIZE),
            ("How many sentences?", QueryIntent.STATISTICS),
            ("how long is it", QueryIntent.STATISTICS),
            ("check my grammar", QueryIntent.GRAMMAR),
            ("translate to French", QueryIntent.FALLBACK),
            ("", QueryIntent.FALLBACK),
        ],
    )
    def test_classify(self, query: str, intent: QueryIntent) -> None:
        assert classify_query(query) is intent

    def test_priority_order_first_match_wins(self) -> None:
        """A query matching several categories resolves to the earliest one."""
        assert classify_query("summarize the word frequency") is QueryIntent.FREQUENCY
        assert classify_query("summary stats") is QueryIntent.SUMMARIZE
        assert classify_query("count grammar issues") is QueryIntent.STATISTICS


class TestHelpers:
    """Tests for the individual heuristics."""

    def test_normalize_strips_tags_and_whitespace(self) -> None:
        assert normalize_text("<p>Hello&nbsp;<b>World</b></p>\n\n  again") == "Hello World again"

    def test_split_sentences_drops_empty_parts(self) -> None:
        assert split_sentences("One. Two!! Three?... ") == ["One", "Two", "Three"]

    def test_word_frequencies_ties_keep_first_occurrence(self) -> None:
        ranked = word_frequencies("zeta alpha zeta alpha beta gamma delta epsilon")
        assert ranked == [("zeta", 2), ("alpha", 2), ("beta", 1), ("gamma", 1), ("delta", 1)]

    def test_word_frequencies_skip_stop_words_and_short_tokens(self) -> None:
        assert word_frequencies("the and of to a an is") == []

    def test_summary_short_text_returned_verbatim(self) -> None:
        text = "One. Two. Three. Four."
        assert extractive_summary(text) == (text, False)

    def test_summary_picks_first_middle_last(self) -> None:
        text = "First. Second. Third. Fourth. Fifth. Sixth."
        summary, condensed = extractive_summary(text)
        assert condensed
        assert summary == "First. ... Fourth. ... Sixth."

    def test_summary_keeps_original_terminators(self) -> None:
        text = "Wow! Second. Third. Why not? Fifth. Really?!"
        summary, condensed = extractive_summary(text)
        assert condensed
        assert summary == "Wow! ... Why not? ... Really?!"

    def test_stats(self) -> None:
        stats = document_stats("One. Two. Three.")
        assert (stats.words, stats.sentences, stats.reading_minutes) == (3, 3, 1)
        assert stats.characters == len("One. Two. Three.")

    def test_stats_reading_time_rounds_up(self) -> None:
        assert document_stats(" ".join(["word"] * 201)).reading_minutes == 2
        assert document_stats("").reading_minutes == 0

    def test_capitalization_issues_limited_to_first_twenty(self) -> None:
        text = " ".join(["Fine."] * 20 + ["bad one."])
        assert capitalization_issues(text) == []
        assert capitalization_issues("good. Fine. also bad.") == ["good", "also bad"]


class TestAnswerQuery:
    """End-to-end answers."""

    def test_frequency_top_result(self) -> None:
        answer = answer_query("most used word", "cat dog cat bird cat dog")
        assert answer.intent is QueryIntent.FREQUENCY
        assert answer.facts["top_words"][0] == ("cat", 3)
        assert "**cat** (3)" in answer.text

    def test_frequency_without_data(self) -> None:
        answer = answer_query("frequency", "a an the")
        assert answer.facts["top_words"] == []
        assert "not enough data" in answer.text

    def test_word_count(self) -> None:
        answer = answer_query("word count", "One. Two. Three.")
        assert answer.intent is QueryIntent.STATISTICS
        assert answer.facts["words"] == 3
        assert answer.facts["sentences"] == 3
        assert "Words: **3**" in answer.text

    def test_grammar_clean(self) -> None:
        answer = answer_query("check grammar", "All good. Nothing wrong.")
        assert answer.facts["issues"] == []
        assert "looks clean" in answer.text

    def test_grammar_flags(self) -> None:
        answer = answer_query("grammar", "bad start. Good one. another.")
        assert len(answer.facts["issues"]) == 2
        assert "**2**" in answer.text

    def test_fallback_echoes_query(self) -> None:
        answer = answer_query("translate to French", "Bonjour")
        assert answer.intent is QueryIntent.FALLBACK
        assert '"translate to French"' in answer.text
        assert "7 characters" in answer.text
        assert "Summarize this document" in answer.text

    def test_markup_is_stripped_before_analysis(self) -> None:
        answer = answer_query("most used", "<p>cat</p><p>cat</p><div>dog</div>")
        assert answer.facts["top_words"][0] == ("cat", 2)

    @pytest.mark.parametrize("query", ["most used", "summary", "count", "grammar", "hello", ""])
    @pytest.mark.parametrize("text", ["", "   ", "<><>", "!!!", "\x00\x01"])
    def test_never_raises_on_degenerate_input(self, query: str, text: str) -> None:
        answer = answer_query(query, text)
        assert answer.text

    def test_empty_summary_returns_whole_text(self) -> None:
        """Empty text takes the short-text branch and echoes nothing back."""
        answer = answer_query("summarize", "")
        assert answer.facts == {"summary": "", "condensed": False}
        assert "not enough data" not in answer.text
        assert answer.text.endswith("here it is in full: ")

    def test_modes_differ_only_in_framing(self) -> None:
        """Cloud and local answers carry identical facts."""
        text = "Alpha beta gamma. Delta epsilon. zeta eta. Theta. Iota kappa."
        for query in ("most used", "summarize", "how many", "grammar", "what is this"):
            cloud = answer_query(query, text, AssistantMode.CLOUD)
            local = answer_query(query, text, AssistantMode.LOCAL)
            assert cloud.facts == local.facts
            assert cloud.text.split("\n\n", 1)[1] == local.text.split("\n\n", 1)[1]
            assert cloud.text.startswith("**Cloud analysis**")
            assert local.text.startswith("**Local analysis (offline)**")

    def test_deterministic(self) -> None:
        text = "Repeat repeat words. Words again."
        assert answer_query("most used", text) == answer_query("most used", text)
