"""Data models for classifier output."""

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class CategorySuggestions:
    """Result of suggestion-mode classification.

    ``suggestions`` always holds exactly three category names.
    """

    primary: str
    suggestions: list[str]
    model: Optional[str] = None  # Model that answered, None when degraded
    degraded: bool = False  # True when the default answer was substituted


@dataclass(frozen=True)
class StructuredSuggestion:
    """Model answered with a JSON object."""

    primary: object
    suggestions: list[object] = field(default_factory=list)


@dataclass(frozen=True)
class PlainCategory:
    """Model answered with bare text; treated as a single category name."""

    name: str


@dataclass(frozen=True)
class Unparseable:
    """Model answer could not be interpreted."""

    raw: str


ParsedAnswer = Union[StructuredSuggestion, PlainCategory, Unparseable]
