"""Unit tests for generated output and file naming."""

import json
from datetime import datetime
from unittest.mock import patch

import pytest
from rich.table import Table

from broadlink_webhooks.core.models import AppletGroup, AutomationEntity, LocalTarget, TargetKind
from broadlink_webhooks.services.output_formatters import (
    build_output_filename,
    desktop_path,
    format_duration,
    homebridge_ifttt_config,
    http_switch_config,
    json_details,
    output_directory,
    render_json,
    sanitize_filename,
    save_output,
    summary_tables
)
from broadlink_webhooks.services.reconciliation import reconcile

KEY = "abc123"


@pytest.fixture
def entities():
    return [
        AutomationEntity("s1", "Webhooks Event: BroadLink-Scene+Movie_Night"),
        AutomationEntity("d2", "Webhooks Event: BroadLink-Off+Living_Room_Lamp"),
        AutomationEntity("d1", "Webhooks Event: BroadLink-On+Living_Room_Lamp"),
        AutomationEntity("f1", "Webhooks Event: BroadLink-On+fan"),
    ]


class TestHomebridgeIftttConfig:
    """Test homebridge-ifttt output."""

    def test_platform_block(self, entities):
        """Devices merge their buttons, scenes are prefixed and sorted last."""
        config = homebridge_ifttt_config(entities, KEY, AppletGroup.DEVICES_AND_SCENES)

        assert config["platform"] == "IFTTT"
        assert config["makerkey"] == KEY
        assert config["accessories"] == [
            {"name": "fan", "buttons": [{"triggerOn": "BroadLink-On+fan"}]},
            {"name": "Living Room Lamp", "buttons": [{
                "triggerOn": "BroadLink-On+Living_Room_Lamp",
                "triggerOff": "BroadLink-Off+Living_Room_Lamp"
            }]},
            {"name": "Scene - Movie Night", "buttons": [{"trigger": "BroadLink-Scene+Movie_Night"}]},
        ]

    def test_group_filter(self, entities):
        """Devices are left out for a scenes-only group."""
        config = homebridge_ifttt_config(entities, KEY, AppletGroup.SCENES_ONLY)

        assert [a["name"] for a in config["accessories"]] == ["Scene - Movie Night"]


class TestHttpSwitchConfig:
    """Test homebridge-http-switch output."""

    def test_switch_types(self, entities):
        """Complete devices toggle; single-state devices and scenes are stateless."""
        switches = http_switch_config(entities, KEY, AppletGroup.DEVICES_AND_SCENES)

        assert switches[0] == {
            "accessory": "HTTP-SWITCH",
            "name": "fan On",
            "switchType": "stateless",
            "onUrl": "https://maker.ifttt.com/trigger/BroadLink-On+fan/with/key/abc123"
        }
        assert switches[1]["name"] == "Living Room Lamp"
        assert switches[1]["switchType"] == "toggle"
        assert switches[1]["offUrl"] == "https://maker.ifttt.com/trigger/BroadLink-Off+Living_Room_Lamp/with/key/abc123"
        assert switches[2]["name"] == "Scene - Movie Night"
        assert switches[2]["switchType"] == "stateless"


class TestJsonDetails:
    """Test JSON details output."""

    def test_grouped_by_state(self, entities):
        details = json_details(entities, KEY, AppletGroup.DEVICES_AND_SCENES)

        assert [a["name"] for a in details["webhooksBroadLinkOnApplets"]] == ["fan", "Living Room Lamp"]
        assert details["webhooksBroadLinkOffApplets"][0] == {
            "name": "Living Room Lamp",
            "appletID": "d2",
            "appletTitle": "Webhooks Event: BroadLink-Off+Living_Room_Lamp",
            "webhooksEventName": "BroadLink-Off+Living_Room_Lamp",
            "triggerAppletURL": "https://maker.ifttt.com/trigger/BroadLink-Off+Living_Room_Lamp/with/key/abc123",
            "editAppletURL": "https://ifttt.com/applets/d2/edit"
        }
        assert len(details["webhooksBroadLinkSceneApplets"]) == 1

    def test_only_group_keys_present(self, entities):
        details = json_details(entities, KEY, AppletGroup.DEVICES_ONLY)

        assert set(details) == {"webhooksBroadLinkOnApplets", "webhooksBroadLinkOffApplets"}

    def test_render_json_keeps_unicode(self):
        rendered = render_json({"name": "Küche"})

        assert "Küche" in rendered
        assert json.loads(rendered) == {"name": "Küche"}


class TestFilenames:
    """Test filename sanitizing and naming."""

    def test_sanitize_filename(self):
        assert sanitize_filename('a/b:c*d?"e<f>g|h') == "abcdefgh"
        assert sanitize_filename("name. ") == "name"
        assert sanitize_filename("..") == ""
        assert sanitize_filename("CON") == ""
        assert sanitize_filename("tab\there") == "tabhere"

    def test_sanitize_filename_caps_length(self):
        assert len(sanitize_filename("é" * 300).encode("utf-8")) <= 255

    def test_build_output_filename(self):
        when = datetime(2024, 3, 9, 13, 5, 9)

        filename = build_output_filename("JSON Details", AppletGroup.DEVICES_ONLY, when)

        assert filename == "broadlink-webhooks JSON Details (Devices Only) 2024-03-09 at 1.05.09 PM.json"

    def test_desktop_path_falls_back_to_onedrive(self, tmp_path):
        assert desktop_path(tmp_path, "win32") == tmp_path / "OneDrive" / "Desktop"
        assert desktop_path(tmp_path, "linux") == tmp_path / "Desktop"

    def test_output_directory_setting(self, tmp_path):
        with patch("broadlink_webhooks.services.output_formatters.settings") as mock_settings:
            mock_settings.OUTPUT_DIR = str(tmp_path)
            assert output_directory() == tmp_path

    def test_save_output(self, tmp_path):
        path = save_output('{"a": 1}', "out.json", tmp_path / "nested")

        assert path.read_text(encoding="utf-8") == '{"a": 1}'


class TestFormatDuration:
    """Test duration formatting."""

    @pytest.mark.parametrize("seconds,expected", [
        (0.2, ""),
        (1, "1 SECOND"),
        (59.6, "1 MINUTE"),
        (65, "1 MINUTE 5 SECONDS"),
        (130, "2 MINUTES 10 SECONDS"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected


def test_summary_tables():
    """The summary lists targets, missing Applets and orphans."""
    lamp = LocalTarget("Lamp")
    scene = LocalTarget("Movie Night", TargetKind.SCENE)
    entities = [
        AutomationEntity("d1", "Webhooks Event: BroadLink-On+Lamp"),
        AutomationEntity("o1", "Webhooks Event: BroadLink-On+Old_Lamp"),
    ]
    result = reconcile([lamp, scene], entities, AppletGroup.DEVICES_AND_SCENES)

    targets_table, missing_table, orphans_table = summary_tables([lamp, scene], result,
                                                                 AppletGroup.DEVICES_AND_SCENES)

    assert isinstance(targets_table, Table)
    assert targets_table.row_count == 2
    assert missing_table.row_count == 2
    assert orphans_table.row_count == 1
