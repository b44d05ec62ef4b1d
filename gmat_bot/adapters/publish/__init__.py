"""Publish adapter — AssetPublisher implementation."""

from gmat_bot.adapters.publish.github_release import GitHubReleasePublisher

__all__ = ["GitHubReleasePublisher"]
