"""Bitbucket Cloud REST client."""

from .client import BitbucketClient, PullRequest, Tag

__all__ = ["BitbucketClient", "PullRequest", "Tag"]
