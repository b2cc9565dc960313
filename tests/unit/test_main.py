"""Unit tests for the interactive application loop."""

from unittest.mock import Mock, patch

import pytest
from selenium.common.exceptions import NoAlertPresentException, TimeoutException

from broadlink_webhooks.cli.prompts import CHANGE
from broadlink_webhooks.core.errors import (
    ElementNotFoundError,
    OperatorCanceledError,
    QuitRequested,
    ServiceNotConnectedError,
    WebDriverMissingError,
    WrongCredentialsError
)
from broadlink_webhooks.core.models import AppletGroup, BrowserChoice, Task
from broadlink_webhooks.main import BroadLinkWebhooksApp, main, parse_args


@pytest.fixture
def prompts():
    mock_prompts = Mock()
    mock_prompts.choose_browser.return_value = BrowserChoice.CHROME_HEADLESS
    mock_prompts.choose_task.side_effect = [Task.CREATE_APPLETS, QuitRequested("QUIT")]
    mock_prompts.choose_group.return_value = AppletGroup.DEVICES_ONLY
    return mock_prompts


@pytest.fixture
def session_manager():
    manager = Mock()
    manager.session.choice = BrowserChoice.CHROME
    return manager


@pytest.fixture
def runner():
    return Mock()


def make_app(prompts, session_manager, runner, keep_open=False):
    return BroadLinkWebhooksApp(prompts, session_manager, runner, keep_browser_open_on_error=keep_open)


class TestBroadLinkWebhooksApp:
    """Test BroadLinkWebhooksApp.run."""

    def test_runs_task_then_quits(self, prompts, session_manager, runner):
        app = make_app(prompts, session_manager, runner)

        assert app.run() == 0

        session = session_manager.ensure_authenticated_session.return_value
        session_manager.ensure_authenticated_session.assert_called_once_with(BrowserChoice.CHROME_HEADLESS)
        runner.run.assert_called_once_with(Task.CREATE_APPLETS, AppletGroup.DEVICES_ONLY, session)
        session_manager.close.assert_called_once()

    def test_remembers_browser(self, prompts, session_manager, runner):
        prompts.choose_task.side_effect = [Task.CREATE_APPLETS, Task.CREATE_APPLETS, QuitRequested("QUIT")]

        make_app(prompts, session_manager, runner).run()

        assert prompts.choose_browser.call_args_list[-1].args == (BrowserChoice.CHROME_HEADLESS,)

    def test_change_selection_loops(self, prompts, session_manager, runner):
        prompts.choose_task.side_effect = [CHANGE, QuitRequested("QUIT")]

        assert make_app(prompts, session_manager, runner).run() == 0

        runner.run.assert_not_called()

    def test_project_page_needs_no_browser(self, prompts, session_manager, runner):
        prompts.choose_task.side_effect = [Task.OPEN_PROJECT_PAGE, QuitRequested("QUIT")]

        make_app(prompts, session_manager, runner).run()

        runner.open_project_page.assert_called_once()
        session_manager.ensure_authenticated_session.assert_not_called()

    def test_canceled_menu_ends_run(self, prompts, session_manager, runner):
        prompts.choose_task.side_effect = OperatorCanceledError("PROMPT CANCELED")

        assert make_app(prompts, session_manager, runner).run() == 0

    def test_failed_login_returns_to_menu(self, prompts, session_manager, runner):
        session_manager.ensure_authenticated_session.side_effect = WrongCredentialsError()

        assert make_app(prompts, session_manager, runner).run() == 0

        runner.run.assert_not_called()
        assert prompts.choose_task.call_count == 2

    def test_recoverable_task_failure_returns_to_menu(self, prompts, session_manager, runner):
        runner.run.side_effect = ElementNotFoundError("Finish Button")

        assert make_app(prompts, session_manager, runner).run() == 0

        assert prompts.choose_task.call_count == 2

    def test_fatal_error_ends_run(self, prompts, session_manager, runner):
        runner.run.side_effect = ServiceNotConnectedError("BroadLink Service")

        assert make_app(prompts, session_manager, runner).run() == 1

        session_manager.close.assert_called_once()

    def test_environment_error_is_remediated(self, prompts, session_manager, runner):
        error = WebDriverMissingError("firefox")
        session_manager.ensure_authenticated_session.side_effect = error

        with patch("broadlink_webhooks.main.remediate") as remediate:
            assert make_app(prompts, session_manager, runner).run() == 1

        remediate.assert_called_once_with(error, prompts)

    def test_selenium_task_failure_returns_to_menu(self, prompts, session_manager, runner):
        """A browser error in one task leaves the operator at the menu."""
        prompts.choose_task.side_effect = [Task.DELETE_APPLETS, Task.DELETE_APPLETS, QuitRequested("QUIT")]
        runner.run.side_effect = [NoAlertPresentException("no alert"), None]

        assert make_app(prompts, session_manager, runner).run() == 0

        assert runner.run.call_count == 2

    def test_selenium_login_failure_returns_to_menu(self, prompts, session_manager, runner):
        session_manager.ensure_authenticated_session.side_effect = TimeoutException("page load")

        assert make_app(prompts, session_manager, runner).run() == 0

        assert prompts.choose_task.call_count == 2

    def test_canceled_task_prompt_returns_to_menu(self, prompts, session_manager, runner):
        runner.run.side_effect = OperatorCanceledError("PROMPT CANCELED")

        assert make_app(prompts, session_manager, runner).run() == 0

        assert prompts.choose_task.call_count == 2

    def test_canceled_remediation_ends_quietly(self, prompts, session_manager, runner):
        """Dismissing the setup guidance still ends the run with an error code."""
        session_manager.ensure_authenticated_session.side_effect = WebDriverMissingError("chrome")

        with patch("broadlink_webhooks.main.remediate", side_effect=OperatorCanceledError("PROMPT CANCELED")):
            assert make_app(prompts, session_manager, runner).run() == 1

        session_manager.close.assert_called_once()

    def test_unexpected_error_ends_run(self, prompts, session_manager, runner):
        runner.run.side_effect = RuntimeError("boom")

        assert make_app(prompts, session_manager, runner).run() == 1

    def test_keeps_visible_browser_open_on_error(self, prompts, session_manager, runner):
        runner.run.side_effect = RuntimeError("boom")

        make_app(prompts, session_manager, runner, keep_open=True).run()

        session_manager.close.assert_not_called()

    def test_headless_browser_always_closed(self, prompts, session_manager, runner):
        session_manager.session.choice = BrowserChoice.FIREFOX_HEADLESS
        runner.run.side_effect = RuntimeError("boom")

        make_app(prompts, session_manager, runner, keep_open=True).run()

        session_manager.close.assert_called_once()


class TestMain:
    """Test argument parsing and start-up."""

    def test_parse_args(self):
        args = parse_args(["--log-level", "debug", "--config", "custom.yaml", "--keep-browser-open"])

        assert args.log_level == "DEBUG"
        assert args.config == "custom.yaml"
        assert args.keep_browser_open is True

    def test_invalid_config_exits(self, tmp_path):
        config_file = tmp_path / "automation.yaml"
        config_file.write_text("automation:\n  retries:\n    max_task_attempts: 0\n", encoding="utf-8")

        with patch("broadlink_webhooks.main.setup_logging"):
            assert main(["--config", str(config_file)]) == 1
