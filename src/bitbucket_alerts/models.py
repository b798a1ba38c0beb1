"""Alert entity and the state vocabulary shared by the engine and the store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

REQUEST_OPEN = "OPEN"
REQUEST_MERGED = "MERGED"
REQUEST_DECLINED = "DECLINED"

BUILD_IN_PROGRESS = "IN_PROGRESS"
BUILD_SUCCESSFUL = "SUCCESSFUL"
BUILD_FAILED = "FAILED"

# Bitbucket spellings that do not match our vocabulary one-to-one.
_WIRE_BUILD_STATES = {
    "INPROGRESS": BUILD_IN_PROGRESS,
    "IN_PROGRESS": BUILD_IN_PROGRESS,
    "SUCCESSFUL": BUILD_SUCCESSFUL,
    "FAILED": BUILD_FAILED,
    "STOPPED": BUILD_FAILED,
}
_WIRE_REQUEST_STATES = {
    "OPEN": REQUEST_OPEN,
    "MERGED": REQUEST_MERGED,
    "DECLINED": REQUEST_DECLINED,
    "SUPERSEDED": REQUEST_DECLINED,
}


def normalize_build_state(raw: Any) -> str | None:
    """Map a Bitbucket build status to IN_PROGRESS / SUCCESSFUL / FAILED, or None."""
    if not isinstance(raw, str):
        return None
    return _WIRE_BUILD_STATES.get(raw.strip().upper())


def normalize_request_state(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    return _WIRE_REQUEST_STATES.get(raw.strip().upper())


def make_alert_id(organisation: str, repository: str, request_number: str | int) -> str:
    return f"{organisation}--{repository}--{request_number}"


def _to_millis(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def _from_millis(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


@dataclass
class Alert:
    """One tracked pull request plus everything last observed about it.

    Optional fields stay ``None`` until the remote service has reported
    them. ``last_change`` of ``None`` means the alert has never changed,
    which the cadence gate treats as "poll now".
    """

    id: str
    organisation: str
    repository: str
    request_number: str
    source_branch: str | None = None
    destination_branch: str | None = None
    commit_hash: str | None = None
    request_state: str | None = None
    build_state: str | None = None
    merge_commit_hash: str | None = None
    build_tag: str | None = None
    last_change: datetime | None = None
    stale: bool = False
    pending_removal: bool = False

    @classmethod
    def create(cls, organisation: str, repository: str, request_number: str | int) -> "Alert":
        request_number = str(request_number)
        return cls(
            id=make_alert_id(organisation, repository, request_number),
            organisation=organisation,
            repository=repository,
            request_number=request_number,
        )

    @property
    def is_terminal(self) -> bool:
        return self.request_state == REQUEST_DECLINED or (
            self.request_state == REQUEST_MERGED and self.build_state == BUILD_SUCCESSFUL
        )

    def mark_stale(self) -> None:
        self.stale = True

    def mark_for_removal(self) -> None:
        self.pending_removal = True

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, leaving out fields never observed."""
        payload: dict[str, Any] = {
            "id": self.id,
            "organisation": self.organisation,
            "repository": self.repository,
            "requestNumber": self.request_number,
            "sourceBranch": self.source_branch,
            "destinationBranch": self.destination_branch,
            "commitHash": self.commit_hash,
            "requestState": self.request_state,
            "buildState": self.build_state,
            "mergeCommitHash": self.merge_commit_hash,
            "buildTag": self.build_tag,
            "lastChange": _to_millis(self.last_change),
        }
        payload = {key: value for key, value in payload.items() if value is not None}
        if self.stale:
            payload["stale"] = True
        if self.pending_removal:
            payload["pendingRemoval"] = True
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Alert":
        organisation = str(raw["organisation"])
        repository = str(raw["repository"])
        request_number = str(raw["requestNumber"] if "requestNumber" in raw else raw["pullRequest"])
        request_state = normalize_request_state(raw.get("requestState", raw.get("pullRequestState")))
        merge_commit_hash = raw.get("mergeCommitHash") if request_state == REQUEST_MERGED else None
        return cls(
            id=str(raw.get("id") or make_alert_id(organisation, repository, request_number)),
            organisation=organisation,
            repository=repository,
            request_number=request_number,
            source_branch=raw.get("sourceBranch"),
            destination_branch=raw.get("destinationBranch"),
            commit_hash=raw.get("commitHash"),
            request_state=request_state,
            build_state=normalize_build_state(raw.get("buildState")),
            merge_commit_hash=merge_commit_hash,
            build_tag=raw.get("buildTag"),
            last_change=_from_millis(raw.get("lastChange")),
            stale=bool(raw.get("stale", raw.get("old", False))),
            pending_removal=bool(raw.get("pendingRemoval", False)),
        )
