"""Interpretation of free-text model answers in suggestion mode."""

import json
from typing import Iterable, Optional

from reelkeeper.models.classification import (
    CategorySuggestions,
    ParsedAnswer,
    PlainCategory,
    StructuredSuggestion,
    Unparseable,
)
from reelkeeper.storage.categories import BUILTIN_CATEGORIES

FALLBACK_CATEGORY = "Other"
FALLBACK_POOL = ("Other", "Entertainment", "Communication")
PLAIN_ANSWER_COMPANIONS = ("Entertainment", "Communication")
SUGGESTION_COUNT = 3


def build_vocabulary(custom_categories: Iterable[str]) -> list[str]:
    """Allowed answers: built-ins, then custom categories, then the fallback.

    Args:
        custom_categories: User-defined category names

    Returns:
        De-duplicated list of category names
    """
    vocabulary: list[str] = []
    seen: set[str] = set()
    for name in (*BUILTIN_CATEGORIES, *custom_categories, *FALLBACK_POOL):
        name = name.strip()
        if name and name.casefold() not in seen:
            seen.add(name.casefold())
            vocabulary.append(name)
    return vocabulary


def default_suggestions(model: Optional[str] = None) -> CategorySuggestions:
    """The answer used whenever the model output cannot be used."""
    return CategorySuggestions(
        primary=FALLBACK_CATEGORY,
        suggestions=list(FALLBACK_POOL),
        model=model,
        degraded=True,
    )


def _json_candidates(text: str) -> list[str]:
    """The text itself plus the body of a markdown code fence, if any."""
    candidates = [text]
    try:
        if "```json" in text:
            candidates.append(text.split("```json")[1].split("```")[0].strip())
        elif "```" in text:
            candidates.append(text.split("```")[1].split("```")[0].strip())
    except IndexError:
        pass
    return candidates


def parse_answer(text: Optional[str]) -> ParsedAnswer:
    """Classify raw model output into one of the answer shapes.

    Args:
        text: Raw text returned by the model

    Returns:
        StructuredSuggestion for a JSON object, PlainCategory for bare text (or a
        JSON string), Unparseable for anything else
    """
    text = (text or "").strip()
    if not text:
        return Unparseable(text)

    for candidate in _json_candidates(text):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            suggestions = data.get("suggestions")
            if not isinstance(suggestions, list):
                suggestions = []
            return StructuredSuggestion(primary=data.get("primary"), suggestions=suggestions)
        if isinstance(data, str) and data.strip():
            return PlainCategory(data.strip())
        return Unparseable(text)

    if text.startswith(("{", "[", "```")):
        return Unparseable(text)
    return PlainCategory(text)


def match_category(name: object, vocabulary: Iterable[str]) -> Optional[str]:
    """Canonical vocabulary spelling of name, matched case-insensitively."""
    if not isinstance(name, str):
        return None
    folded = name.strip().casefold()
    if not folded:
        return None
    for candidate in vocabulary:
        if candidate.casefold() == folded:
            return candidate
    return None


def resolve_suggestions(
    answer: ParsedAnswer, vocabulary: list[str], model: Optional[str] = None
) -> CategorySuggestions:
    """Coerce a parsed answer into a valid primary plus exactly three suggestions.

    Invalid names are dropped (the primary becomes "Other"); the suggestion list is
    de-duplicated, cut to three and padded from the fallback pool.

    Args:
        answer: Parsed model answer
        vocabulary: Allowed category names
        model: Model that produced the answer

    Returns:
        CategorySuggestions
    """
    if isinstance(answer, Unparseable):
        return default_suggestions(model)

    if isinstance(answer, PlainCategory):
        raw_primary: object = answer.name
        raw_suggestions: list[object] = [answer.name, *PLAIN_ANSWER_COMPANIONS]
    else:
        raw_primary = answer.primary
        raw_suggestions = list(answer.suggestions)

    primary = match_category(raw_primary, vocabulary) or FALLBACK_CATEGORY

    suggestions: list[str] = []
    for item in raw_suggestions:
        matched = match_category(item, vocabulary)
        if matched and matched not in suggestions:
            suggestions.append(matched)
    suggestions = suggestions[:SUGGESTION_COUNT]

    for fallback in FALLBACK_POOL:
        if len(suggestions) >= SUGGESTION_COUNT:
            break
        if fallback not in suggestions:
            suggestions.append(fallback)

    return CategorySuggestions(primary=primary, suggestions=suggestions, model=model)
