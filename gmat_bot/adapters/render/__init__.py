"""Render adapter — Renderer implementation."""

from gmat_bot.adapters.render.wkhtml import WkhtmlRenderer

__all__ = ["WkhtmlRenderer"]
