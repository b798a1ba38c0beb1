import httpx
import pytest

from bitbucket_alerts.errors import TransientRemoteError
from bitbucket_alerts.remote import BitbucketClient

PULL_REQUEST = {
    "state": "OPEN",
    "source": {"branch": {"name": "feature/login"}, "commit": {"hash": "abc123"}},
    "destination": {"branch": {"name": "main"}, "commit": {"hash": "000111"}},
    "merge_commit": None,
}


def _client(handler) -> BitbucketClient:
    return BitbucketClient("dG9rZW4=", transport=httpx.MockTransport(handler))


def test_requests_carry_basic_auth_and_json_accept():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["accept"] = request.headers["Accept"]
        return httpx.Response(200, json=PULL_REQUEST)

    with _client(handler) as client:
        pull_request = client.get_pull_request("acme", "widget", "42")

    assert seen["path"] == "/2.0/repositories/acme/widget/pullrequests/42"
    assert seen["auth"] == "Basic dG9rZW4="
    assert seen["accept"] == "application/json"
    assert pull_request.state == "OPEN"
    assert pull_request.source_branch == "feature/login"
    assert pull_request.destination_branch == "main"
    assert pull_request.commit_hash == "abc123"
    assert pull_request.merge_commit_hash is None


def test_merged_pull_request_exposes_merge_commit():
    payload = dict(PULL_REQUEST, state="MERGED", merge_commit={"hash": "abcdef1234"})

    with _client(lambda request: httpx.Response(200, json=payload)) as client:
        pull_request = client.get_pull_request("acme", "widget", "42")

    assert pull_request.state == "MERGED"
    assert pull_request.merge_commit_hash == "abcdef1234"


def test_merged_pull_request_without_merge_commit_is_rejected():
    payload = dict(PULL_REQUEST, state="MERGED")

    with _client(lambda request: httpx.Response(200, json=payload)) as client:
        with pytest.raises(TransientRemoteError):
            client.get_pull_request("acme", "widget", "42")


def test_build_states_use_latest_status_and_normalise_in_progress():
    def handler(request):
        if request.url.path.endswith("/pullrequests/42/statuses"):
            return httpx.Response(200, json={"values": [{"state": "INPROGRESS"}, {"state": "FAILED"}]})
        if request.url.path.endswith("/commit/abcdef1234/statuses"):
            return httpx.Response(200, json={"values": []})
        return httpx.Response(404)

    with _client(handler) as client:
        assert client.get_pull_request_build_state("acme", "widget", "42") == "IN_PROGRESS"
        assert client.get_commit_build_state("acme", "widget", "abcdef1234") is None


def test_tags_are_requested_newest_name_first():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["sort"] = request.url.params.get("sort")
        return httpx.Response(
            200,
            json={
                "values": [
                    {"name": "v2.0", "target": {"type": "commit", "hash": "abcdef"}},
                    {"name": "broken"},
                ]
            },
        )

    with _client(handler) as client:
        tags = client.get_tags("acme", "widget")

    assert seen == {"path": "/2.0/repositories/acme/widget/refs/tags", "sort": "-name"}
    assert [(tag.name, tag.target_type, tag.target_hash) for tag in tags] == [("v2.0", "commit", "abcdef")]


def test_non_200_is_transient_and_keeps_status_code():
    with _client(lambda request: httpx.Response(401, text="Unauthorized")) as client:
        with pytest.raises(TransientRemoteError) as excinfo:
            client.get_pull_request("acme", "widget", "42")

    assert excinfo.value.status_code == 401


def test_transport_errors_are_transient():
    def handler(request):
        raise httpx.ConnectError("no route to host", request=request)

    with _client(handler) as client:
        with pytest.raises(TransientRemoteError):
            client.get_commit_build_state("acme", "widget", "abc")


def test_unexpected_bodies_are_transient():
    with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(TransientRemoteError):
            client.get_pull_request_build_state("acme", "widget", "42")

    with _client(lambda request: httpx.Response(200, json={"state": "OPEN"})) as client:
        with pytest.raises(TransientRemoteError):
            client.get_pull_request("acme", "widget", "42")
