"""Per-alert state machine: decide whether to poll, fetch, detect change, notify."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Protocol

from ..errors import TransientRemoteError
from ..models import (
    BUILD_IN_PROGRESS,
    BUILD_SUCCESSFUL,
    REQUEST_DECLINED,
    REQUEST_MERGED,
    REQUEST_OPEN,
    Alert,
)
from ..notify import Action, Notifier
from ..remote import PullRequest, Tag
from .cadence import DEFAULT_POLICY, STALE, WAIT, CadencePolicy, age_seconds, polling_decision

_LOGGER = logging.getLogger(__name__)

DEFAULT_SITE_URL = "https://bitbucket.org"
DEFAULT_DASHBOARD_URL = "https://octopus.{organisation}.io/app#/Spaces-1/projects/{repository}/overview"


class RemoteClient(Protocol):
    def get_pull_request(self, organisation: str, repository: str, request_number: str) -> PullRequest: ...

    def get_pull_request_build_state(self, organisation: str, repository: str, request_number: str) -> str | None: ...

    def get_commit_build_state(self, organisation: str, repository: str, commit_hash: str) -> str | None: ...

    def get_tags(self, organisation: str, repository: str) -> list[Tag]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_build_tag(tags: list[Tag], merge_commit_hash: str | None) -> str | None:
    """Return the first tag whose commit hash prefix-matches the merge commit.

    Either hash may be abbreviated, so the match is tried in both directions.
    ``tags`` is expected newest-name-first.
    """
    if not merge_commit_hash:
        return None
    for tag in tags:
        if tag.target_type not in (None, "commit") or not tag.target_hash:
            continue
        if merge_commit_hash.startswith(tag.target_hash) or tag.target_hash.startswith(merge_commit_hash):
            return tag.name
    return None


def build_title(build_state: str) -> str:
    return "Build complete" if build_state == BUILD_SUCCESSFUL else "Build failed!"


class Reconciler:
    """Brings one alert up to date with Bitbucket, mutating it in place.

    ``reconcile(alert, client, strict)`` runs the stages in order: terminal
    and stale short-circuits, the cadence gate, the pull request refresh,
    then either the pull request build check (OPEN) or the merge commit
    build check (MERGED). Each stage validates its whole response before
    touching the alert, so a failure leaves the previous stages applied
    and nothing half-written.
    """

    def __init__(
        self,
        notifier: Notifier,
        policy: CadencePolicy = DEFAULT_POLICY,
        site_url: str = DEFAULT_SITE_URL,
        dashboard_url: str = DEFAULT_DASHBOARD_URL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.notifier = notifier
        self.policy = policy
        self.site_url = site_url.rstrip("/")
        self.dashboard_url = dashboard_url
        self._clock = clock

    @classmethod
    def from_config(cls, config: dict, notifier: Notifier, clock: Callable[[], datetime] = _utcnow) -> "Reconciler":
        return cls(
            notifier=notifier,
            policy=CadencePolicy.from_config(config),
            site_url=config["site"]["base_url"],
            dashboard_url=config["deploy"]["dashboard_url"],
            clock=clock,
        )

    def pull_request_url(self, alert: Alert) -> str:
        return f"{self.site_url}/{alert.organisation}/{alert.repository}/pull-requests/{alert.request_number}"

    def deployment_url(self, alert: Alert) -> str:
        return self.dashboard_url.format(organisation=alert.organisation, repository=alert.repository)

    def reconcile(self, alert: Alert, client: RemoteClient, strict: bool = False) -> None:
        """Refresh ``alert``. With ``strict`` remote failures are raised, otherwise deferred."""
        now = self._clock()
        age = age_seconds(alert.last_change, now)

        if alert.is_terminal:
            if alert.request_state == REQUEST_DECLINED:
                _LOGGER.debug("%s: pull request declined, nothing to do", alert.id)
            elif age >= self.policy.retire_seconds and not alert.pending_removal:
                _LOGGER.info("%s: merged and built, retiring", alert.id)
                alert.mark_for_removal()
            return

        if alert.stale:
            _LOGGER.debug("%s: stale, not polling", alert.id)
            return

        decision = polling_decision(age, now.minute, self.policy)
        if decision == STALE:
            _LOGGER.info("%s: unchanged for %.0f days, marking stale", alert.id, age / 86400)
            alert.mark_stale()
            return
        if decision == WAIT:
            _LOGGER.debug("%s: delaying request (age %.0fs, minute %d)", alert.id, age, now.minute)
            return

        try:
            self._refresh(alert, client, now)
        except TransientRemoteError as exc:
            if strict:
                raise
            _LOGGER.warning("%s: deferring to next pass: %s", alert.id, exc)

    def _refresh(self, alert: Alert, client: RemoteClient, now: datetime) -> None:
        commit_changed = False
        if alert.request_state in (None, REQUEST_OPEN):
            pull_request = client.get_pull_request(alert.organisation, alert.repository, alert.request_number)
            commit_changed = self._apply_pull_request(alert, pull_request, now)

        if alert.request_state == REQUEST_OPEN:
            self._check_pull_request_build(alert, client, now, commit_changed)
        elif alert.request_state == REQUEST_MERGED:
            self._check_merge_build(alert, client, now)

    def _apply_pull_request(self, alert: Alert, pull_request: PullRequest, now: datetime) -> bool:
        """Copy the fetched pull request onto the alert. Returns whether the head commit moved."""
        commit_changed = pull_request.commit_hash != alert.commit_hash
        if (
            pull_request.state != alert.request_state
            or pull_request.source_branch != alert.source_branch
            or pull_request.destination_branch != alert.destination_branch
            or commit_changed
        ):
            alert.request_state = pull_request.state
            alert.source_branch = pull_request.source_branch
            alert.destination_branch = pull_request.destination_branch
            alert.commit_hash = pull_request.commit_hash
            alert.last_change = now

        if pull_request.state != REQUEST_OPEN:
            _LOGGER.info("%s: pull request is now %s", alert.id, pull_request.state)
            alert.build_state = None
            alert.last_change = now
            if pull_request.state == REQUEST_MERGED:
                alert.merge_commit_hash = pull_request.merge_commit_hash

        return commit_changed

    def _check_pull_request_build(self, alert: Alert, client: RemoteClient, now: datetime, commit_changed: bool) -> None:
        latest = client.get_pull_request_build_state(alert.organisation, alert.repository, alert.request_number)
        if latest is None:
            # The stored state belongs to the previous commit.
            if commit_changed and alert.build_state is not None:
                _LOGGER.info("%s: new commit has no build yet", alert.id)
                alert.build_state = None
                alert.last_change = now
            return

        state_changed = latest != alert.build_state
        if not state_changed and not commit_changed:
            return

        if latest == BUILD_IN_PROGRESS:
            if state_changed:
                _LOGGER.info("%s: build started", alert.id)
                alert.build_state = latest
                alert.last_change = now
            return

        _LOGGER.info("%s: build state is now %s", alert.id, latest)
        alert.build_state = latest
        alert.last_change = now
        self.notifier.notify(
            build_title(latest),
            f"{alert.repository}\n{alert.source_branch}",
            negative=latest != BUILD_SUCCESSFUL,
            action=Action(title="Open pull request", link=self.pull_request_url(alert)),
        )

    def _check_merge_build(self, alert: Alert, client: RemoteClient, now: datetime) -> None:
        if not alert.merge_commit_hash:
            _LOGGER.warning("%s: merged but no merge commit recorded", alert.id)
            return

        latest = client.get_commit_build_state(alert.organisation, alert.repository, alert.merge_commit_hash)
        if latest is None or latest == alert.build_state:
            return

        _LOGGER.info("%s: merge build state is now %s", alert.id, latest)
        alert.build_state = latest
        alert.last_change = now
        if latest == BUILD_IN_PROGRESS:
            return

        successful = latest == BUILD_SUCCESSFUL
        if successful:
            try:
                tag = resolve_build_tag(client.get_tags(alert.organisation, alert.repository), alert.merge_commit_hash)
            except TransientRemoteError as exc:
                _LOGGER.warning("%s: could not resolve build tag: %s", alert.id, exc)
                tag = None
            if tag:
                alert.build_tag = tag

        lines = [alert.repository, alert.destination_branch or ""]
        if successful and alert.build_tag:
            lines.append(alert.build_tag)
        self.notifier.notify(
            build_title(latest),
            "\n".join(lines),
            negative=not successful,
            action=Action(title="Open deployment dashboard", link=self.deployment_url(alert)) if successful else None,
        )
