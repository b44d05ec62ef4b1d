"""Domain data models — pure Python dataclasses."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


class Category(str, Enum):
    """Requested question category, derived from inbound message text."""

    READING_COMPREHENSION = "RC"
    SENTENCE_CORRECTION = "SC"
    CRITICAL_REASONING = "CR"
    PROBLEM_SOLVING = "PS"
    DATA_SUFFICIENCY = "DS"
    ANY = "ANY"  # random pick across every supported category
    UNRECOGNIZED = "UNRECOGNIZED"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_recognized(self) -> bool:
        return self is not Category.UNRECOGNIZED


_DISPLAY_NAMES = {
    Category.READING_COMPREHENSION: "Reading Comprehension",
    Category.SENTENCE_CORRECTION: "Sentence Correction",
    Category.CRITICAL_REASONING: "Critical Reasoning",
    Category.PROBLEM_SOLVING: "Problem Solving",
    Category.DATA_SUFFICIENCY: "Data Sufficiency",
    Category.ANY: "Any Category",
    Category.UNRECOGNIZED: "Unrecognized",
}

# Concrete categories that map to a corpus section
QUESTION_CATEGORIES: Tuple[Category, ...] = (
    Category.READING_COMPREHENSION,
    Category.SENTENCE_CORRECTION,
    Category.CRITICAL_REASONING,
    Category.PROBLEM_SOLVING,
    Category.DATA_SUFFICIENCY,
)


@dataclass(frozen=True)
class ContentItem:
    """One quiz question as served by the content provider."""

    id: str
    category: Category
    question: str  # HTML fragment
    answers: List[str] = field(default_factory=list)
    explanations: List[str] = field(default_factory=list)
    source: str = ""


@dataclass(frozen=True)
class PublishedAsset:
    """Hosted image for a single reply. Never persisted."""

    url: str
    category: Category
    item_id: str = ""
    source: str = ""


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class PhotoReply:
    image_url: str
    caption: str = ""
