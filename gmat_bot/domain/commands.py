"""Command interpretation: message text to requested category.

Pure Python, no framework dependencies.
"""

from typing import Dict

from gmat_bot.domain.models import Category

# Map accepted command tokens -> category. New aliases are a data change here.
CATEGORY_ALIASES: Dict[str, Category] = {
    "rc": Category.READING_COMPREHENSION,
    "reading": Category.READING_COMPREHENSION,
    "reading-comprehension": Category.READING_COMPREHENSION,
    "readingcomprehension": Category.READING_COMPREHENSION,
    "sc": Category.SENTENCE_CORRECTION,
    "sentence": Category.SENTENCE_CORRECTION,
    "sentence-correction": Category.SENTENCE_CORRECTION,
    "sentencecorrection": Category.SENTENCE_CORRECTION,
    "cr": Category.CRITICAL_REASONING,
    "critical": Category.CRITICAL_REASONING,
    "critical-reasoning": Category.CRITICAL_REASONING,
    "criticalreasoning": Category.CRITICAL_REASONING,
    "ps": Category.PROBLEM_SOLVING,
    "problem": Category.PROBLEM_SOLVING,
    "problem-solving": Category.PROBLEM_SOLVING,
    "problemsolving": Category.PROBLEM_SOLVING,
    "ds": Category.DATA_SUFFICIENCY,
    "data": Category.DATA_SUFFICIENCY,
    "data-sufficiency": Category.DATA_SUFFICIENCY,
    "datasufficiency": Category.DATA_SUFFICIENCY,
    "random": Category.ANY,
    "any": Category.ANY,
    "gmat": Category.ANY,
}

# Command markers some chat clients prepend ("/ps", "!ps")
_COMMAND_PREFIXES = ("/", "!")

HELP_TEXT = (
    "Send a question type to get a random GMAT question:\n"
    "  SC - Sentence Correction\n"
    "  CR - Critical Reasoning\n"
    "  PS - Problem Solving\n"
    "  DS - Data Sufficiency\n"
    "  random - any of the above"
)


def interpret(text: str) -> Category:
    """Map raw message text to a Category. Never raises.

    The first whitespace-delimited token is matched case-insensitively
    against CATEGORY_ALIASES, so "ps" and "PS please" both request
    Problem Solving. Anything else is UNRECOGNIZED.
    """
    if not isinstance(text, str):
        return Category.UNRECOGNIZED
    normalized = text.strip().casefold()
    if normalized[:1] in _COMMAND_PREFIXES:
        normalized = normalized[1:].lstrip()
    if not normalized:
        return Category.UNRECOGNIZED
    token = normalized.split()[0]
    return CATEGORY_ALIASES.get(token, Category.UNRECOGNIZED)
