import os
import time

import pytest
from tenacity import wait_none

from src.resabook.app import open_planning
from src.resabook.config import BookerConfig
from src.resabook.errors import AuthenticationError, TransientError
from src.resabook.session import SessionManager, is_on_login_page
from tests.fakes import FakeCard, FakeContext, FakeLoginPage

LOGIN_URL = "https://member.resamania.com/login"
PLANNING_URL = "https://member.resamania.com/planning"


def quick_authenticate():
    # Same retry policy without the pause between tries
    return SessionManager.authenticate.retry_with(wait=wait_none())


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://member.resamania.com/planning", False),
        ("https://member.resamania.com/login", True),
        ("https://member.resamania.com/oauth/callback?code=1", True),
        ("https://api.resamania.com/authorize", True),
        ("https://member.resamania.com/LOGIN?next=/planning", True),
    ],
)
def test_is_on_login_page(url, expected):
    assert is_on_login_page(url) is expected


def test_missing_session_is_invalid(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    assert manager.is_session_valid() is False


def test_fresh_session_is_valid(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    manager.state_file.write_text("{}", encoding="utf-8")
    assert manager.is_session_valid() is True


def test_old_session_is_expired(tmp_path):
    manager = SessionManager(str(tmp_path / "state"), max_session_age_hours=1)
    manager.state_file.write_text("{}", encoding="utf-8")
    two_hours_ago = time.time() - 2 * 3600
    os.utime(manager.state_file, (two_hours_ago, two_hours_ago))

    assert manager.is_session_valid() is False


def test_clear_session(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    manager.state_file.write_text("{}", encoding="utf-8")

    manager.clear_session()
    manager.clear_session()

    assert not manager.state_file.exists()


@pytest.mark.asyncio
async def test_create_context_restores_valid_session(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    manager.state_file.write_text("{}", encoding="utf-8")

    class RecordingBrowser:
        async def new_context(self, **kwargs):
            self.kwargs = kwargs
            return "context"

    browser = RecordingBrowser()
    context = await manager.create_context(browser, user_agent="UA")

    assert context == "context"
    assert browser.kwargs["storage_state"] == str(manager.state_file)
    assert browser.kwargs["user_agent"] == "UA"


@pytest.mark.asyncio
async def test_authenticate_two_step_form(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    page = FakeLoginPage()

    await manager.authenticate(page, LOGIN_URL, "me@example.com", "secret")

    assert page.logged_in
    assert [r["selector"] for r in page.actions("fill")] == [
        'input[type="text"]',
        'input[type="password"]',
    ]
    assert [r["selector"] for r in page.actions("click")] == [
        FakeLoginPage.STEP_ONE,
        FakeLoginPage.SUBMIT,
    ]
    assert page.filled['input[type="text"]'] == "me@example.com"


@pytest.mark.asyncio
async def test_authenticate_falls_back_to_button_labels(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    page = FakeLoginPage(clickable=set())
    other = page.add_button("Continuer")
    next_step = page.add_button("Saisir mon mot de passe")
    connect = page.add_button("Connexion", submits=True)

    await manager.authenticate(page, LOGIN_URL, "me@example.com", "secret")

    assert page.logged_in
    assert (other.clicks, next_step.clicks, connect.clicks) == (0, 1, 1)


@pytest.mark.asyncio
async def test_authenticate_without_any_login_button_fails_fast(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    page = FakeLoginPage(clickable=set())

    with pytest.raises(AuthenticationError):
        await quick_authenticate()(manager, page, LOGIN_URL, "me@example.com", "secret")

    assert len(page.actions("goto")) == 1


@pytest.mark.asyncio
async def test_authenticate_wrong_password_is_not_retried(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    page = FakeLoginPage(password="secret")

    with pytest.raises(AuthenticationError, match="Still on login page"):
        await quick_authenticate()(manager, page, LOGIN_URL, "me@example.com", "wrong")

    assert len(page.actions("goto")) == 1
    assert is_on_login_page(page.url)


@pytest.mark.asyncio
async def test_authenticate_retries_a_timeout_once(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    page = FakeLoginPage(goto_timeouts=1)

    await quick_authenticate()(manager, page, LOGIN_URL, "me@example.com", "secret")

    assert page.logged_in
    assert len(page.actions("goto")) == 2


@pytest.mark.asyncio
async def test_authenticate_gives_up_after_two_timeouts(tmp_path):
    manager = SessionManager(str(tmp_path / "state"))
    page = FakeLoginPage(goto_timeouts=5)

    with pytest.raises(TransientError):
        await quick_authenticate()(manager, page, LOGIN_URL, "me@example.com", "secret")

    assert len(page.actions("goto")) == 2


def make_config(tmp_path, **overrides) -> BookerConfig:
    values = {
        "resamania_username": "me@example.com",
        "resamania_password": "secret",
        "planning_url": PLANNING_URL,
        "login_url": LOGIN_URL,
        "state_dir": str(tmp_path / "state"),
    }
    values.update(overrides)
    return BookerConfig(**values)


@pytest.mark.asyncio
async def test_open_planning_logs_in_when_redirected(tmp_path):
    config = make_config(tmp_path)
    manager = SessionManager(config.state_dir)
    manager.state_file.write_text("stale", encoding="utf-8")
    page = FakeLoginPage([[FakeCard()]])
    context = FakeContext()

    planning = await open_planning(config, manager, context, page)

    assert [r["url"] for r in page.actions("goto")] == [PLANNING_URL, LOGIN_URL, PLANNING_URL]
    assert context.saved == [str(manager.state_file)]
    assert manager.state_file.read_text(encoding="utf-8") == '{"cookies": []}'
    assert planning.current_url == PLANNING_URL
    assert planning.generation == 2


@pytest.mark.asyncio
async def test_open_planning_keeps_a_valid_session(tmp_path):
    config = make_config(tmp_path)
    manager = SessionManager(config.state_dir)
    page = FakeLoginPage([[FakeCard()]], logged_in=True)
    context = FakeContext()

    planning = await open_planning(config, manager, context, page)

    assert [r["url"] for r in page.actions("goto")] == [PLANNING_URL]
    assert context.saved == []
    assert planning.generation == 1


@pytest.mark.asyncio
async def test_open_planning_needs_credentials_to_log_in(tmp_path):
    config = make_config(tmp_path, resamania_username="", resamania_password="")
    manager = SessionManager(config.state_dir)
    manager.state_file.write_text("stale", encoding="utf-8")
    page = FakeLoginPage([[FakeCard()]])

    with pytest.raises(AuthenticationError):
        await open_planning(config, manager, FakeContext(), page)

    assert manager.state_file.exists()
    assert page.actions("fill") == []
