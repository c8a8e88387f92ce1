"""Upstream change feed."""

from .linear import LinearFeed, build_linear_client, parse_issue

__all__ = ["LinearFeed", "build_linear_client", "parse_issue"]
