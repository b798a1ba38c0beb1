from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bitbucket_alerts.engine import Reconciler
from bitbucket_alerts.errors import TransientRemoteError
from bitbucket_alerts.notify import NotificationBackend, Notifier
from bitbucket_alerts.remote import PullRequest, Tag
from bitbucket_alerts.store import MemoryStore

# Minute 10 is a multiple of 5 but not 0: the "< 12h" tier polls, the "< 30d" tier waits.
NOW = datetime(2026, 3, 2, 9, 10, tzinfo=timezone.utc)


def ago(**kwargs) -> datetime:
    return NOW - timedelta(**kwargs)


class RecordingBackend(NotificationBackend):
    name = "recording"

    def __init__(self, supports_buttons=True, supports_require_interaction=True):
        self.supports_buttons = supports_buttons
        self.supports_require_interaction = supports_require_interaction
        self.delivered = []

    def deliver(self, notification):
        self.delivered.append(notification)


class FakeClient:
    """Stands in for BitbucketClient and records every call."""

    def __init__(
        self,
        pull_request: PullRequest | None = None,
        pull_request_build: str | None = None,
        commit_build: str | None = None,
        tags: list[Tag] | None = None,
        failing: tuple[str, ...] = (),
    ):
        self.pull_request = pull_request
        self.pull_request_build = pull_request_build
        self.commit_build = commit_build
        self.tags = tags or []
        self.failing = failing
        self.calls: list[tuple] = []
        self.closed = False

    def _call(self, name, *args):
        self.calls.append((name, *args))
        if name in self.failing:
            raise TransientRemoteError(f"{name} failed", status_code=503)

    def get_pull_request(self, organisation, repository, request_number):
        self._call("pull_request", organisation, repository, request_number)
        return self.pull_request

    def get_pull_request_build_state(self, organisation, repository, request_number):
        self._call("pull_request_build", organisation, repository, request_number)
        return self.pull_request_build

    def get_commit_build_state(self, organisation, repository, commit_hash):
        self._call("commit_build", organisation, repository, commit_hash)
        return self.commit_build

    def get_tags(self, organisation, repository):
        self._call("tags", organisation, repository)
        return self.tags

    def close(self):
        self.closed = True


def open_pull_request(commit_hash="abc123", source="feature/login", destination="main") -> PullRequest:
    return PullRequest(
        state="OPEN",
        source_branch=source,
        destination_branch=destination,
        commit_hash=commit_hash,
        merge_commit_hash=None,
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def notifier(backend, store):
    return Notifier(backend, store, clock=lambda: NOW.timestamp(), opener=lambda link: None)


@pytest.fixture
def make_reconciler(notifier):
    def _make(now: datetime = NOW) -> Reconciler:
        return Reconciler(notifier, clock=lambda: now)

    return _make
