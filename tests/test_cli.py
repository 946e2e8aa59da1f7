"""Tests for the luxe command line."""

import httpx
import pytest
from typer.testing import CliRunner

from luxedetails import config, offline
from luxedetails.cli import app
from luxedetails.config import ASSETS, CACHE_NAME, SESSION_KEY
from luxedetails.storage import FileStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_paths(tmp_path, monkeypatch):
    monkeypatch.setenv("LUXE_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("LUXE_SESSION", str(tmp_path / "session.json"))


def _run(*args, input=None):
    return runner.invoke(app, list(args), input=input)


def _login(username="alice", password="secret"):
    assert _run("register", username, "-p", password).exit_code == 0
    assert _run("login", username, "-p", password).exit_code == 0


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def test_register_and_login():
    result = _run("register", "alice", "-p", "secret")
    assert result.exit_code == 0
    assert "Registration successful" in result.output

    result = _run("login", "alice", "-p", "secret")
    assert result.exit_code == 0
    assert "Hello, alice" in result.output


def test_register_duplicate_fails():
    _run("register", "alice", "-p", "secret")
    result = _run("register", "alice", "-p", "other")
    assert result.exit_code == 1
    assert "Username already exists!" in result.output


def test_register_with_dob_sets_password():
    assert _run("register", "alice", "--dob", "1990-04-02").exit_code == 0
    assert _run("login", "alice", "-p", "02-04-1990").exit_code == 0


def test_login_invalid():
    _run("register", "alice", "-p", "secret")
    result = _run("login", "alice", "-p", "wrong")
    assert result.exit_code == 1
    assert "Invalid username or password." in result.output


def test_whoami_and_logout(tmp_path):
    _login()
    assert "Hello, alice" in _run("whoami").output

    assert _run("logout").exit_code == 0
    assert FileStore(tmp_path / "session.json").get_item(SESSION_KEY) is None
    assert _run("whoami").exit_code == 1


def test_passwd():
    _login()
    result = _run("passwd", "--current", "wrong", "--new", "x")
    assert result.exit_code == 1
    assert "Current password incorrect" in result.output

    assert _run("passwd", "--current", "secret", "--new", "fresh").exit_code == 0
    _run("logout")
    assert _run("login", "alice", "-p", "fresh").exit_code == 0


def test_remove_declined_keeps_account():
    _login()
    result = _run("remove", "alice", "-p", "secret", input="n\n")
    assert result.exit_code == 0
    assert "alice" in _run("users").output


def test_remove_confirmed():
    _login()
    _run("register", "bob", "-p", "pw")
    result = _run("remove", "alice", "-p", "secret", "--yes")
    assert result.exit_code == 0
    assert "Account removed permanently." in result.output

    listing = _run("users").output
    assert "alice" not in listing
    assert "bob" in listing
    assert _run("whoami").exit_code == 1


def test_remove_wrong_password():
    _login()
    result = _run("remove", "alice", "-p", "nope", "--yes")
    assert result.exit_code == 1
    assert "Username or Password incorrect." in result.output


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


def test_add_requires_login():
    result = _run("add", "email", "-u", "me", "-p", "pw")
    assert result.exit_code == 1
    assert "Not logged in." in result.output


def test_add_and_list():
    _login()
    assert _run("add", "email", "-u", "me@mail", "-p", "pw1").exit_code == 0
    assert _run("add", "bank", "-u", "acct", "-p", "pw2").exit_code == 0

    result = _run("list")
    assert result.exit_code == 0
    assert result.output.index("bank") < result.output.index("email")
    assert "pw1" not in result.output

    assert "pw2" in _run("list", "--show").output


def test_list_empty():
    _login()
    assert "No entries yet" in _run("list").output


def test_info():
    _login()
    result = _run("info")
    assert result.exit_code == 0
    assert "alice" in result.output


def test_cache_status_empty():
    result = _run("cache", "status")
    assert result.exit_code == 0
    assert "No caches installed." in result.output


def test_register_rejects_dob_with_password():
    result = _run("register", "alice", "--dob", "1990-04-02", "-p", "secret")
    assert result.exit_code == 2
    assert "No registered users." in _run("users").output


# ---------------------------------------------------------------------------
# User text is printed literally
# ---------------------------------------------------------------------------


def test_bracketed_purpose_listed_verbatim():
    _login()
    assert _run("add", "[/x]", "-u", "bob", "-p", "pw").exit_code == 0
    assert _run("add", "[bold]bank", "-u", "[i]me", "-p", "[red]pw").exit_code == 0

    result = _run("list", "--show")
    assert result.exit_code == 0
    assert "[/x]" in result.output
    assert "[bold]bank" in result.output
    assert "[i]me" in result.output
    assert "[red]pw" in result.output


def test_bracketed_username_greeted_verbatim():
    assert _run("register", "[/a]", "-p", "pw").exit_code == 0

    result = _run("login", "[/a]", "-p", "pw")
    assert result.exit_code == 0
    assert "Hello, [/a]" in result.output
    assert "Hello, [/a]" in _run("whoami").output
    assert "[/a]" in _run("users").output
    assert "[/a]" in _run("info").output


# ---------------------------------------------------------------------------
# Offline cache commands
# ---------------------------------------------------------------------------


class _Network:
    def __init__(self):
        self.fail: set[str] = set()
        self.online = True

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if not self.online:
            raise httpx.ConnectError("offline", request=request)
        if url in self.fail:
            return httpx.Response(404, text="missing")
        return httpx.Response(200, text=f"body of {url}", headers={"content-type": "text/plain"})


@pytest.fixture
def network(monkeypatch) -> _Network:
    net = _Network()
    monkeypatch.setenv("LUXE_ORIGIN", "http://app.test")
    monkeypatch.setattr(offline, "_client", lambda: httpx.Client(transport=httpx.MockTransport(net)))
    return net


def test_cache_install(network):
    offline.CacheStorage(config.cache_dir()).open("luxe-details-v0")

    result = _run("cache", "install")
    assert result.exit_code == 0
    assert f"Cached {len(ASSETS)} asset(s)" in result.output
    assert "Deleted stale cache" in result.output
    assert "luxe-details-v0" in result.output
    assert offline.CacheStorage(config.cache_dir()).keys() == [CACHE_NAME]


def test_cache_install_failure(network):
    network.fail.add("http://app.test/bg.png")

    result = _run("cache", "install")
    assert result.exit_code == 1
    assert "Install failed" in result.output
    assert "No caches installed." in _run("cache", "status").output


def test_cache_status_lists_installed(network):
    _run("cache", "install")
    result = _run("cache", "status")
    assert result.exit_code == 0
    assert CACHE_NAME in result.output
    assert str(len(ASSETS)) in result.output


def test_cache_fetch_from_cache_when_offline(network):
    _run("cache", "install")
    network.online = False

    result = _run("cache", "fetch", "/index.html")
    assert result.exit_code == 0
    assert "from cache" in result.output
    assert CACHE_NAME in result.output


def test_cache_fetch_miss_uses_network(network):
    _run("cache", "install")

    result = _run("cache", "fetch", "/api/data")
    assert result.exit_code == 0
    assert "from network" in result.output


def test_cache_fetch_network_error(network):
    network.online = False
    result = _run("cache", "fetch", "/index.html")
    assert result.exit_code == 1
    assert "Network error" in result.output


def test_cache_clear(network):
    _run("cache", "install")
    result = _run("cache", "clear")
    assert result.exit_code == 0
    assert "Deleted 1 cache(s)." in result.output
    assert "No caches installed." in _run("cache", "status").output
