from datetime import datetime, timezone

from bitbucket_alerts.models import Alert, make_alert_id, normalize_build_state, normalize_request_state


def test_alert_id_is_organisation_repository_number():
    assert make_alert_id("acme", "widget", 42) == "acme--widget--42"
    assert Alert.create("acme", "widget", 42).request_number == "42"


def test_to_dict_leaves_out_unobserved_fields():
    payload = Alert.create("acme", "widget", 42).to_dict()

    assert payload == {
        "id": "acme--widget--42",
        "organisation": "acme",
        "repository": "widget",
        "requestNumber": "42",
    }


def test_serialised_alert_keeps_state_and_flags():
    alert = Alert.create("acme", "widget", 42)
    alert.request_state = "MERGED"
    alert.build_state = "SUCCESSFUL"
    alert.merge_commit_hash = "abcdef1234"
    alert.build_tag = "v2.0"
    alert.last_change = datetime(2026, 3, 2, 9, 10, tzinfo=timezone.utc)
    alert.stale = True
    alert.pending_removal = True

    payload = alert.to_dict()
    assert payload["lastChange"] == 1772442600000
    assert payload["stale"] is True
    assert payload["pendingRemoval"] is True
    assert Alert.from_dict(payload) == alert


def test_from_dict_accepts_older_field_names_and_wire_states():
    alert = Alert.from_dict(
        {
            "organisation": "acme",
            "repository": "widget",
            "pullRequest": "9",
            "pullRequestState": "OPEN",
            "buildState": "INPROGRESS",
            "mergeCommitHash": "ignored-while-open",
            "old": True,
        }
    )

    assert alert.id == "acme--widget--9"
    assert alert.request_state == "OPEN"
    assert alert.build_state == "IN_PROGRESS"
    assert alert.merge_commit_hash is None
    assert alert.stale is True


def test_terminal_states():
    alert = Alert.create("acme", "widget", 1)
    assert not alert.is_terminal

    alert.request_state = "DECLINED"
    assert alert.is_terminal

    alert.request_state = "MERGED"
    alert.build_state = "FAILED"
    assert not alert.is_terminal

    alert.build_state = "SUCCESSFUL"
    assert alert.is_terminal


def test_wire_state_normalisation():
    assert normalize_build_state("INPROGRESS") == "IN_PROGRESS"
    assert normalize_build_state("STOPPED") == "FAILED"
    assert normalize_build_state("weird") is None
    assert normalize_build_state(None) is None
    assert normalize_request_state("SUPERSEDED") == "DECLINED"
    assert normalize_request_state("merged") == "MERGED"
