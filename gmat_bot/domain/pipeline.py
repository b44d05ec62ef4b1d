"""Render-and-publish pipeline: category -> hosted question image."""

from __future__ import annotations

import random
import sys
from typing import TYPE_CHECKING, Optional

from gmat_bot.domain.errors import NotFound
from gmat_bot.domain.models import Category, PublishedAsset
from gmat_bot.domain.question_html import build_question_html

if TYPE_CHECKING:
    from gmat_bot.ports.outbound import AssetPublisher, ContentProvider, Renderer


def _log(msg: str):
    print(msg, file=sys.stderr)


def asset_name(item_id: str) -> str:
    """File name used for the uploaded image of one question."""
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in item_id)
    return f"question_{safe}.png"


def build_caption(caption: str, asset: PublishedAsset) -> str:
    """Photo caption: configured header, question id and source."""
    lines = [caption, "", f"Question ID: {asset.item_id} ({asset.category.display_name})"]
    if asset.source:
        lines.append(f"From: {asset.source}")
    return "\n".join(lines).strip()


class QuestionPipeline:
    """Select one question, render it and publish the image.

    Any PipelineError aborts the run for that message only; the caller
    decides what to do with it.
    """

    def __init__(
        self,
        provider: "ContentProvider",
        renderer: "Renderer",
        publisher: "AssetPublisher",
        rng: Optional[random.Random] = None,
    ):
        self._provider = provider
        self._renderer = renderer
        self._publisher = publisher
        self._rng = rng or random.Random()

    async def run(self, category: Category) -> PublishedAsset:
        if not category.is_recognized:
            raise ValueError("UNRECOGNIZED requests never reach the pipeline")

        items = await self._provider.fetch(category, 1, self._rng)
        if not items:
            raise NotFound(f"No questions available for {category.display_name}")
        item = items[0]
        _log(f"[pipeline] selected {item.id} ({item.category.value})")

        image = await self._renderer.render(build_question_html(item))
        _log(f"[pipeline] rendered {item.id} ({len(image)} bytes)")

        url = await self._publisher.publish(image, asset_name(item.id))
        _log(f"[pipeline] published {item.id} -> {url}")

        return PublishedAsset(
            url=url,
            category=item.category,
            item_id=item.id,
            source=item.source,
        )
