"""Zalo adapter — MessagingPort implementation."""

from gmat_bot.adapters.zalo.client import ZaloClient

__all__ = ["ZaloClient"]
