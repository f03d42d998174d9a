"""Deterministic, offline query answering over a document's plain text.

Queries are classified by keyword containment in a fixed priority order and
answered with closed-form heuristics. Every function here is pure and never
raises for empty or malformed input.
"""

from __future__ import annotations

import html
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, assert_never

__all__ = [
    "AssistantMode",
    "QueryIntent",
    "DocumentStats",
    "AssistantAnswer",
    "STOP_WORDS",
    "READING_WORDS_PER_MINUTE",
    "normalize_text",
    "classify_query",
    "split_sentences",
    "word_frequencies",
    "extractive_summary",
    "document_stats",
    "capitalization_issues",
    "answer_query",
]

READING_WORDS_PER_MINUTE = 200
_TOP_WORDS = 5
_SUMMARY_MIN_SENTENCES = 5
_GRAMMAR_SENTENCE_LIMIT = 20
_ELISION = " ... "

_TAG_PATTERN = re.compile(r"<[^>]+>")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")
_TERMINATED_SENTENCE = re.compile(r"([^.!?]*)([.!?]+|$)")
_FREQUENCY_TOKEN = re.compile(r"[a-z]{3,}")
_WORD_TOKEN = re.compile(r"\w+")

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "any", "can",
        "had", "her", "was", "one", "our", "out", "has", "have", "his", "how",
        "its", "may", "new", "now", "old", "see", "two", "who", "did", "get",
        "him", "let", "put", "say", "she", "too", "use", "that", "with", "this",
        "from", "they", "will", "would", "there", "their", "what", "about",
        "which", "when", "were", "been", "into", "than", "then", "them", "these",
        "those", "some", "such", "also", "just", "very", "your", "each", "more",
        "most", "other", "only", "over", "because", "while", "where", "could",
        "should", "being", "does", "here", "after", "before",
    }
)


class AssistantMode(Enum):
    """Presentation flavour of an answer; the computed facts are identical."""

    CLOUD = "cloud"
    LOCAL = "local"


class QueryIntent(Enum):
    FREQUENCY = "frequency"
    SUMMARIZE = "summarize"
    STATISTICS = "statistics"
    GRAMMAR = "grammar"
    FALLBACK = "fallback"


# Checked in order; the first intent whose keywords occur in the query wins.
_INTENT_KEYWORDS: tuple[tuple[QueryIntent, tuple[str, ...]], ...] = (
    (QueryIntent.FREQUENCY, ("most used", "frequency", "common word")),
    (QueryIntent.SUMMARIZE, ("summarize", "summary", "overview")),
    (QueryIntent.STATISTICS, ("how many", "count", "stats", "long")),
    (QueryIntent.GRAMMAR, ("grammar", "check")),
)

_EXAMPLE_QUERIES: tuple[str, ...] = (
    "Summarize this document",
    "What are the most used words?",
    "How many words are there?",
    "Check the grammar",
)


@dataclass(slots=True, frozen=True)
class DocumentStats:
    words: int
    characters: int
    sentences: int
    reading_minutes: int


@dataclass(slots=True)
class AssistantAnswer:
    """A complete, formatted answer plus the facts it was built from."""

    intent: QueryIntent
    mode: AssistantMode
    text: str
    facts: dict[str, Any] = field(default_factory=dict)


def normalize_text(text: str) -> str:
    """Strip markup tags and collapse whitespace, preserving case for display."""

    if not text:
        return ""
    stripped = _TAG_PATTERN.sub(" ", text)
    return _WHITESPACE_PATTERN.sub(" ", html.unescape(stripped)).strip()


def classify_query(query: str) -> QueryIntent:
    lowered = (query or "").lower()
    for intent, keywords in _INTENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return QueryIntent.FALLBACK


def split_sentences(text: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_BOUNDARY.split(text) if part.strip()]


def word_frequencies(text: str, limit: int = _TOP_WORDS) -> list[tuple[str, int]]:
    """Return the ``limit`` most frequent non stop-words, ties in first-seen order."""

    tokens = _FREQUENCY_TOKEN.findall(text.lower())
    counts = Counter(token for token in tokens if token not in STOP_WORDS)
    # ``Counter`` keeps first-occurrence order and ``sorted`` is stable.
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


def extractive_summary(text: str) -> tuple[str, bool]:
    """Return ``(summary, condensed)``.

    Texts with fewer than five sentences are returned verbatim.
    """

    sentences = _terminated_sentences(text)
    if len(sentences) < _SUMMARY_MIN_SENTENCES:
        return text, False
    picks = (sentences[0], sentences[len(sentences) // 2], sentences[-1])
    return _ELISION.join(picks), True


def _terminated_sentences(text: str) -> list[str]:
    """Like :func:`split_sentences` but each sentence keeps its own terminator."""

    sentences = []
    for match in _TERMINATED_SENTENCE.finditer(text):
        body = match.group(1).strip()
        if body:
            sentences.append(body + (match.group(2) or "."))
    return sentences


def document_stats(text: str) -> DocumentStats:
    words = len(_WORD_TOKEN.findall(text))
    return DocumentStats(
        words=words,
        characters=len(text),
        sentences=len(split_sentences(text)),
        reading_minutes=math.ceil(words / READING_WORDS_PER_MINUTE),
    )


def capitalization_issues(text: str, limit: int = _GRAMMAR_SENTENCE_LIMIT) -> list[str]:
    """Return sentences among the first ``limit`` that do not start uppercase."""

    return [sentence for sentence in split_sentences(text)[:limit] if not sentence[0].isupper()]


def answer_query(
    query: str,
    document_text: str,
    mode: AssistantMode = AssistantMode.LOCAL,
) -> AssistantAnswer:
    """Classify ``query`` and answer it from ``document_text``."""

    query = query or ""
    text = normalize_text(document_text or "")
    intent = classify_query(query)
    facts: dict[str, Any]

    match intent:
        case QueryIntent.FREQUENCY:
            top = word_frequencies(text)
            facts = {"top_words": top}
            if not top:
                body = "There is not enough data to compute word frequency."
            else:
                lines = [f"{index}. **{word}** ({count})" for index, (word, count) in enumerate(top, 1)]
                body = "Most used words:\n" + "\n".join(lines)
        case QueryIntent.SUMMARIZE:
            summary, condensed = extractive_summary(text)
            facts = {"summary": summary, "condensed": condensed}
            if condensed:
                body = f"**Summary:** {summary}"
            else:
                body = f"The document is short, so here it is in full: {summary}"
        case QueryIntent.STATISTICS:
            stats = document_stats(text)
            facts = {
                "words": stats.words,
                "characters": stats.characters,
                "sentences": stats.sentences,
                "reading_minutes": stats.reading_minutes,
            }
            body = (
                "Document statistics:\n"
                f"- Words: **{stats.words}**\n"
                f"- Characters: **{stats.characters}**\n"
                f"- Sentences: **{stats.sentences}**\n"
                f"- Reading time: **{stats.reading_minutes} min**"
            )
        case QueryIntent.GRAMMAR:
            issues = capitalization_issues(text)
            facts = {"issues": issues}
            if not issues:
                body = "The text looks clean: no capitalization issues found."
            else:
                body = (
                    f"Found **{len(issues)}** sentence(s) that do not start with a capital letter."
                )
        case QueryIntent.FALLBACK:
            facts = {"query": query, "length": len(text)}
            examples = "\n".join(f"- {example}" for example in _EXAMPLE_QUERIES)
            body = (
                f'You asked: "{query}". The document has {len(text)} characters.\n'
                f"Try one of:\n{examples}"
            )
        case _:
            assert_never(intent)

    return AssistantAnswer(intent=intent, mode=mode, text=_frame(body, mode), facts=facts)


def _frame(body: str, mode: AssistantMode) -> str:
    match mode:
        case AssistantMode.CLOUD:
            return f"**Cloud analysis**\n\n{body}"
        case AssistantMode.LOCAL:
            return f"**Local analysis (offline)**\n\n{body}"
        case _:
            assert_never(mode)
