"""GMAT question corpus client (static JSON over HTTP)."""

import asyncio
import random
import sys
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from gmat_bot.config import CONFIG
from gmat_bot.domain.errors import ContentFetchError, NotFound
from gmat_bot.domain.models import QUESTION_CATEGORIES, Category, ContentItem

FETCH_TIMEOUT_SECONDS = 20

# Reading Comprehension records use a passage-based structure we cannot render
UNSUPPORTED_CATEGORIES = frozenset({Category.READING_COMPREHENSION})


def _log(msg: str):
    print(msg, file=sys.stderr)


class GmatDatabaseProvider:
    """Reads the question index and individual questions on every request.

    Nothing is cached: the corpus is small and a fetch is cheap next to
    rendering and uploading.
    """

    def __init__(self, base_url: Optional[str] = None):
        self._base_url = (base_url or CONFIG["gmat_database_url"]).rstrip("/")

    async def _get_json(self, url: str) -> Any:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=FETCH_TIMEOUT_SECONDS)
                ) as resp:
                    if resp.status >= 400:
                        raise ContentFetchError(f"GET {url}: HTTP {resp.status}")
                    return await resp.json(content_type=None)
        except ContentFetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ContentFetchError(f"GET {url}: {type(e).__name__}: {e}") from e

    async def fetch_index(self) -> Dict[Category, List[str]]:
        """Question ids per category, straight from index.json."""
        raw = await self._get_json(f"{self._base_url}/index.json")
        if not isinstance(raw, dict):
            raise ContentFetchError("index.json is not an object")
        index = {}
        for category in QUESTION_CATEGORIES:
            ids = raw.get(category.value) or []
            index[category] = [str(i) for i in ids if i]
        return index

    @staticmethod
    def candidates(index: Dict[Category, List[str]], category: Category) -> List[Tuple[Category, str]]:
        """(category, id) pairs eligible for a request."""
        if category is Category.ANY:
            wanted = [c for c in QUESTION_CATEGORIES if c not in UNSUPPORTED_CATEGORIES]
        elif category in UNSUPPORTED_CATEGORIES or not category.is_recognized:
            return []
        else:
            wanted = [category]
        return [(c, qid) for c in wanted for qid in index.get(c, [])]

    async def fetch_item(self, category: Category, question_id: str) -> ContentItem:
        raw = await self._get_json(f"{self._base_url}/{question_id}.json")
        if not isinstance(raw, dict) or not raw.get("question"):
            raise ContentFetchError(f"Question {question_id} has no question body")
        return ContentItem(
            id=str(raw.get("id") or question_id),
            category=category,
            question=raw["question"],
            answers=[str(a) for a in raw.get("answers") or []],
            explanations=[str(e) for e in raw.get("explanations") or []],
            source=str(raw.get("src") or ""),
        )

    async def fetch(
        self,
        category: Category,
        count: int = 1,
        rng: Optional[random.Random] = None,
    ) -> List[ContentItem]:
        """Pick `count` random questions of `category` (uniform, no repeats)."""
        if category in UNSUPPORTED_CATEGORIES:
            raise NotFound(f"{category.display_name} questions are not supported")

        index = await self.fetch_index()
        pool = self.candidates(index, category)
        if not pool:
            raise NotFound(f"No {category.display_name} questions available")

        rng = rng or random.Random()
        picked = rng.sample(pool, min(count, len(pool)))
        _log(f"[gmat] picked {[qid for _, qid in picked]} from {len(pool)} candidates")
        return [await self.fetch_item(c, qid) for c, qid in picked]
