"""Authenticated GETs against the Bitbucket Cloud REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ..errors import TransientRemoteError
from ..models import normalize_build_state, normalize_request_state

_LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.bitbucket.org/2.0/repositories"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class PullRequest:
    state: str
    source_branch: str
    destination_branch: str
    commit_hash: str | None
    merge_commit_hash: str | None


@dataclass(frozen=True)
class Tag:
    name: str
    target_type: str | None
    target_hash: str


def _dig(payload: Any, *keys: str) -> Any:
    current = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _segment(value: str) -> str:
    return quote(str(value), safe="")


class BitbucketClient:
    """Stateless wrapper over the four endpoints the reconciler needs.

    Every failure (transport error, non-200 status, unexpected body) is
    raised as TransientRemoteError so callers only handle one type.
    """

    def __init__(
        self,
        auth_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Basic {auth_token}",
                "Accept": "application/json",
                "User-Agent": "bitbucket-build-alerts",
            },
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "BitbucketClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` and return the parsed JSON body."""
        try:
            response = self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise TransientRemoteError(f"GET {path} failed: {exc}") from exc

        if response.status_code != 200:
            raise TransientRemoteError(
                f"GET {path} returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise TransientRemoteError(f"GET {path} returned invalid JSON") from exc

    def get_pull_request(self, organisation: str, repository: str, request_number: str) -> PullRequest:
        path = f"/{_segment(organisation)}/{_segment(repository)}/pullrequests/{_segment(request_number)}"
        payload = self.get_json(path)

        state = normalize_request_state(_dig(payload, "state"))
        source_branch = _dig(payload, "source", "branch", "name")
        destination_branch = _dig(payload, "destination", "branch", "name")
        if state is None or not isinstance(source_branch, str) or not isinstance(destination_branch, str):
            raise TransientRemoteError(f"GET {path} returned an unexpected pull request body")

        merge_commit_hash = _dig(payload, "merge_commit", "hash")
        if state == "MERGED" and not isinstance(merge_commit_hash, str):
            raise TransientRemoteError(f"GET {path} reported MERGED without a merge commit")

        commit_hash = _dig(payload, "source", "commit", "hash")
        return PullRequest(
            state=state,
            source_branch=source_branch,
            destination_branch=destination_branch,
            commit_hash=commit_hash if isinstance(commit_hash, str) else None,
            merge_commit_hash=merge_commit_hash if isinstance(merge_commit_hash, str) else None,
        )

    def get_pull_request_build_state(
        self, organisation: str, repository: str, request_number: str
    ) -> str | None:
        path = f"/{_segment(organisation)}/{_segment(repository)}/pullrequests/{_segment(request_number)}/statuses"
        return self._latest_build_state(path)

    def get_commit_build_state(self, organisation: str, repository: str, commit_hash: str) -> str | None:
        path = f"/{_segment(organisation)}/{_segment(repository)}/commit/{_segment(commit_hash)}/statuses"
        return self._latest_build_state(path)

    def get_tags(self, organisation: str, repository: str) -> list[Tag]:
        """Return tags sorted by name, descending."""
        path = f"/{_segment(organisation)}/{_segment(repository)}/refs/tags"
        payload = self.get_json(path, params={"sort": "-name"})
        values = _dig(payload, "values")
        if not isinstance(values, list):
            raise TransientRemoteError(f"GET {path} returned an unexpected tag list")

        tags: list[Tag] = []
        for item in values:
            name = _dig(item, "name")
            target_hash = _dig(item, "target", "hash")
            if not isinstance(name, str) or not isinstance(target_hash, str):
                continue
            target_type = _dig(item, "target", "type")
            tags.append(
                Tag(
                    name=name,
                    target_type=target_type if isinstance(target_type, str) else None,
                    target_hash=target_hash,
                )
            )
        return tags

    def _latest_build_state(self, path: str) -> str | None:
        payload = self.get_json(path)
        values = _dig(payload, "values")
        if not isinstance(values, list):
            raise TransientRemoteError(f"GET {path} returned an unexpected statuses body")
        if not values:
            return None

        latest = normalize_build_state(_dig(values[0], "state"))
        if latest is None:
            _LOGGER.debug("Ignoring unknown build state at %s: %r", path, _dig(values[0], "state"))
        return latest
