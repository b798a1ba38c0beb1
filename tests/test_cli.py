from click.testing import CliRunner

from conftest import FakeClient, open_pull_request
from bitbucket_alerts.cli import main
from bitbucket_alerts.engine import RunwayGuard
from bitbucket_alerts.models import Alert
from bitbucket_alerts.service import AlertService
from bitbucket_alerts.store import load_alerts, read_credentials, read_require_interaction, save_alerts


def _install_service(monkeypatch, store, make_reconciler):
    client = FakeClient(pull_request=open_pull_request(), pull_request_build="SUCCESSFUL")
    service = AlertService(store, make_reconciler(), lambda token: client, guard=RunwayGuard())
    monkeypatch.setattr("bitbucket_alerts.service.build_service", lambda config: service)
    return service


def test_cli_exposes_all_commands():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(main, ["--help"])

    assert result.exit_code == 0
    for command in ["watch", "run-once", "add", "remove", "list", "login", "settings", "test-notification"]:
        assert command in result.output


def test_add_by_url_tracks_pull_request(monkeypatch, store, make_reconciler):
    _install_service(monkeypatch, store, make_reconciler)
    store.set("bitbucket-alerts-username", "dev")
    store.set("bitbucket-alerts-app-password", "s3cret")

    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(main, ["add", "https://bitbucket.org/acme/widget/pull-requests/42"])
        again = runner.invoke(main, ["add", "-o", "acme", "-r", "widget", "--request", "42"])

    assert result.exit_code == 0, result.output
    assert "Tracking acme/widget #42" in result.output
    assert "Already tracking" in again.output
    assert [alert.id for alert in load_alerts(store)] == ["acme--widget--42"]


def test_add_reports_errors_with_non_zero_exit(monkeypatch, store, make_reconciler):
    monkeypatch.delenv("BITBUCKET_USERNAME", raising=False)
    monkeypatch.delenv("BITBUCKET_APP_PASSWORD", raising=False)
    _install_service(monkeypatch, store, make_reconciler)

    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(main, ["add", "https://bitbucket.org/acme/widget/pull-requests/42"])

    assert result.exit_code == 1
    assert "credentials" in result.output


def test_add_rejects_non_pull_request_url():
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(main, ["add", "https://bitbucket.org/acme/widget/src/main"])

    assert result.exit_code != 0
    assert "not a Bitbucket pull request URL" in result.output


def test_list_remove_and_run_once(monkeypatch, store, make_reconciler):
    _install_service(monkeypatch, store, make_reconciler)
    save_alerts(store, [Alert.create("acme", "widget", 1), Alert.create("acme", "gadget", 2)])

    runner = CliRunner()
    with runner.isolated_filesystem():
        listed = runner.invoke(main, ["list"])
        ran = runner.invoke(main, ["run-once"])
        removed = runner.invoke(main, ["remove", "acme--gadget--2"])
        missing = runner.invoke(main, ["remove", "acme--gadget--2"])

    assert "acme--widget--1" in listed.output
    assert "2 processed" in ran.output
    assert "Removed acme--gadget--2" in removed.output
    assert "No alert with id" in missing.output
    assert [alert.id for alert in load_alerts(store)] == ["acme--widget--1"]


def test_login_and_settings_write_the_store(monkeypatch, store, make_reconciler):
    _install_service(monkeypatch, store, make_reconciler)

    runner = CliRunner()
    with runner.isolated_filesystem():
        login = runner.invoke(main, ["login", "--username", "dev"], input="s3cret\n")
        settings = runner.invoke(main, ["settings", "--no-require-interaction"])

    assert login.exit_code == 0, login.output
    assert read_credentials(store) == ("dev", "s3cret")
    assert "require interaction: no" in settings.output
    assert read_require_interaction(store) is False


def test_test_notification_uses_backend(monkeypatch, store, make_reconciler, backend):
    _install_service(monkeypatch, store, make_reconciler)

    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(main, ["test-notification"])

    assert result.exit_code == 0
    assert [n.title for n in backend.delivered] == ["Hello!"]
