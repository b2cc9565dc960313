"""Unit tests for the task runner."""

import io
from datetime import datetime
from unittest.mock import Mock, call, patch

import pytest
from rich.console import Console

from broadlink_webhooks.cli.task_runner import TaskRunner, format_timestamp
from broadlink_webhooks.core.errors import ElementNotFoundError
from broadlink_webhooks.core.models import (
    AppletGroup,
    AppletState,
    AutomationEntity,
    BrowserChoice,
    DeletionStatus,
    LocalTarget,
    TargetKind,
    Task
)
from broadlink_webhooks.services import ifttt_pages as pages

LAMP_ON = AutomationEntity("d1", "Webhooks Event: BroadLink-On+Lamp")
OLD_LAMP_ON = AutomationEntity("o1", "Webhooks Event: BroadLink-On+Old_Lamp")
LAMP = LocalTarget("Lamp")
MOVIE_NIGHT = LocalTarget("Movie Night", TargetKind.SCENE)


@pytest.fixture
def service():
    mock_service = Mock()
    mock_service.retrieve_webhooks_key.return_value = "KEY"
    mock_service.scan_existing_applets.return_value = [LAMP_ON, OLD_LAMP_ON]
    mock_service.discover_targets.return_value = [LAMP, MOVIE_NIGHT]
    mock_service.delete_applet.return_value = DeletionStatus.DELETED
    mock_service.create_applet.side_effect = lambda target, state, key: AutomationEntity(
        "new", target.display_name(state))
    return mock_service


@pytest.fixture
def session():
    mock_session = Mock()
    mock_session.choice = BrowserChoice.CHROME_HEADLESS
    return mock_session


@pytest.fixture
def console_output():
    return io.StringIO()


@pytest.fixture
def prompts(console_output):
    mock_prompts = Mock()
    mock_prompts.console = Console(file=console_output, width=500)
    mock_prompts.confirm.return_value = False
    return mock_prompts


@pytest.fixture
def runner(fast_config, prompts, service):
    return TaskRunner(fast_config, prompts, service_factory=lambda session, config: service,
                      url_opener=Mock(return_value=True))


class TestTaskRunner:
    """Test TaskRunner.run."""

    def test_create_skips_existing_applets(self, runner, service, session):
        """Only missing Applets are created."""
        report = runner.run(Task.CREATE_APPLETS, AppletGroup.DEVICES_AND_SCENES, session)

        assert service.create_applet.call_args_list == [
            call(LAMP, AppletState.OFF, "KEY"),
            call(MOVIE_NIGHT, AppletState.SCENE, "KEY"),
        ]
        assert [e.display_name for e in report.created] == [
            "Webhooks Event: BroadLink-Off+Lamp",
            "Webhooks Event: BroadLink-Scene+Movie_Night",
        ]
        assert report.webhooks_key == "KEY"

    def test_create_respects_group(self, runner, service, session):
        runner.run(Task.CREATE_APPLETS, AppletGroup.SCENES_ONLY, session)

        service.create_applet.assert_called_once_with(MOVIE_NIGHT, AppletState.SCENE, "KEY")

    def test_delete_orphaned_only(self, runner, service, session):
        """Applets still backed by BroadLink are kept."""
        report = runner.run(Task.DELETE_ORPHANED_APPLETS, AppletGroup.DEVICES_AND_SCENES, session)

        service.delete_applet.assert_called_once_with(OLD_LAMP_ON)
        assert report.deleted == [OLD_LAMP_ON]
        service.retrieve_webhooks_key.assert_not_called()

    def test_delete_all(self, runner, service, session):
        """Deleting all Applets does not read BroadLink names."""
        service.delete_applet.side_effect = [DeletionStatus.DELETED, DeletionStatus.DOES_NOT_EXIST]

        report = runner.run(Task.DELETE_APPLETS, AppletGroup.DEVICES_AND_SCENES, session)

        assert service.delete_applet.call_count == 2
        assert report.deleted == [LAMP_ON]
        service.discover_targets.assert_not_called()

    def test_generate_json_without_saving(self, runner, session, console_output):
        report = runner.run(Task.GENERATE_JSON, AppletGroup.DEVICES_AND_SCENES, session)

        assert '"webhooksBroadLinkOnApplets"' in report.output
        assert "BroadLink-On+Old_Lamp" in console_output.getvalue()
        assert report.saved_path is None

    def test_generate_and_save(self, runner, prompts, session, tmp_path):
        prompts.confirm.return_value = True

        with patch("broadlink_webhooks.cli.task_runner.save_output",
                   return_value=tmp_path / "out.json") as save:
            report = runner.run(Task.GENERATE_HOMEBRIDGE_IFTTT, AppletGroup.DEVICES_ONLY, session)

        content, filename = save.call_args[0]
        assert '"makerkey": "KEY"' in content
        assert filename.startswith("broadlink-webhooks Configuration for homebridge-ifttt (Devices Only) ")
        assert report.saved_path == str(tmp_path / "out.json")

    def test_save_failure_is_reported(self, runner, prompts, session):
        prompts.confirm.return_value = True

        with patch("broadlink_webhooks.cli.task_runner.save_output", side_effect=PermissionError("denied")):
            report = runner.run(Task.GENERATE_HTTP_SWITCH, AppletGroup.DEVICES_AND_SCENES, session)

        assert report.saved_path is None
        assert report.output is not None

    def test_output_summary(self, runner, session, console_output):
        runner.run(Task.OUTPUT_SUMMARY, AppletGroup.DEVICES_AND_SCENES, session)

        output = console_output.getvalue()
        assert "Missing Webhooks Applets" in output
        assert "Old Lamp" in output

    def test_open_edit_urls(self, runner, session):
        runner.run(Task.OPEN_EDIT_URLS, AppletGroup.DEVICES_AND_SCENES, session)

        runner.url_opener.assert_any_call(LAMP_ON.edit_url)
        runner.url_opener.assert_any_call(OLD_LAMP_ON.edit_url)

    def test_open_project_page(self, runner):
        runner.open_project_page()

        runner.url_opener.assert_called_once_with(pages.PROJECT_URL)

    def test_failure_propagates(self, runner, service, session):
        service.scan_existing_applets.side_effect = ElementNotFoundError("BroadLink Service Page")

        with pytest.raises(ElementNotFoundError):
            runner.run(Task.CREATE_APPLETS, AppletGroup.DEVICES_AND_SCENES, session)

        service.create_applet.assert_not_called()

    def test_visible_browser_returns_to_broadlink_page(self, runner, session):
        session.choice = BrowserChoice.CHROME
        session.driver.current_url = pages.MY_APPLETS_URL

        runner.run(Task.OPEN_EDIT_URLS, AppletGroup.DEVICES_AND_SCENES, session)

        session.driver.get.assert_called_once_with(pages.BROADLINK_SERVICE_URL)


def test_format_timestamp():
    assert format_timestamp(datetime(2024, 3, 9, 0, 5, 9)) == "3/9/2024 AT 12:05:09 AM"
