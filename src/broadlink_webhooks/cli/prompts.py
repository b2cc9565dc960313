"""Interactive operator prompts."""

import sys
from typing import List, Optional, Sequence, Tuple, TypeVar

from rich.console import Console
from rich.prompt import Confirm, Prompt

from ..core.errors import OperatorCanceledError, QuitRequested
from ..core.models import AppletGroup, BrowserChoice, Credentials, Task

T = TypeVar("T")

CHANGE = "change"
QUIT = "quit"

BROWSER_LABELS = {
    BrowserChoice.FIREFOX_HEADLESS: "Firefox (Hidden Window / Headless)",
    BrowserChoice.FIREFOX: "Firefox (Visible Window)",
    BrowserChoice.CHROME_HEADLESS: "Chrome (Hidden Window / Headless)",
    BrowserChoice.CHROME: "Chrome (Visible Window)",
    BrowserChoice.SAFARI: "Safari (Visible Window)",
}

TASK_LABELS = {
    Task.CREATE_APPLETS: "Create Webhooks Applets",
    Task.DELETE_ORPHANED_APPLETS: "Delete Webhooks Applets for Renamed or Deleted Devices/Scenes in BroadLink",
    Task.DELETE_APPLETS: 'Delete All Webhooks Applets Created by "broadlink-webhooks"',
    Task.OUTPUT_SUMMARY: 'Output Summary of Webhooks Applets Created by "broadlink-webhooks" and Devices/Scenes in BroadLink',
    Task.GENERATE_HOMEBRIDGE_IFTTT: 'Generate "homebridge-ifttt" Configuration for Webhooks Applets',
    Task.GENERATE_HTTP_SWITCH: 'Generate "homebridge-http-switch" Configuration for Webhooks Applets',
    Task.GENERATE_JSON: "Generate JSON Details of Webhooks Applets",
    Task.OPEN_EDIT_URLS: "Open All IFTTT Edit URLs for Webhooks Applets",
    Task.OPEN_PROJECT_PAGE: 'Open "broadlink-webhooks" on GitHub',
}

TASK_DESCRIPTIONS = {
    Task.CREATE_APPLETS: "No duplicates are created for identical Applets that already exist.",
    Task.DELETE_ORPHANED_APPLETS: 'For renamed devices/scenes, re-run "Create Webhooks Applets" afterwards.',
    Task.DELETE_APPLETS: 'Re-run "Create Webhooks Applets" at any time to get them back.',
    Task.GENERATE_HOMEBRIDGE_IFTTT: "Useful only if you use Homebridge.",
    Task.GENERATE_HTTP_SWITCH: "Useful only if you use Homebridge.",
    Task.GENERATE_JSON: "Useful for your own custom scripts.",
    Task.OPEN_EDIT_URLS: "You should be logged into IFTTT in your default web browser.",
}

GROUP_LABELS = {
    AppletGroup.DEVICES_AND_SCENES: "Both Devices & Scenes",
    AppletGroup.DEVICES_ONLY: "Only Devices",
    AppletGroup.SCENES_ONLY: "Only Scenes",
}

GROUP_QUESTIONS = {
    Task.CREATE_APPLETS: "create Webhooks Applets for",
    Task.DELETE_ORPHANED_APPLETS: "delete Webhooks Applets for which have been renamed or deleted in BroadLink",
    Task.DELETE_APPLETS: "delete all Webhooks Applets for",
    Task.OUTPUT_SUMMARY: "output summary for",
    Task.GENERATE_HOMEBRIDGE_IFTTT: 'generate "homebridge-ifttt" configuration for',
    Task.GENERATE_HTTP_SWITCH: 'generate "homebridge-http-switch" configuration for',
    Task.GENERATE_JSON: "generate JSON details for",
    Task.OPEN_EDIT_URLS: "open IFTTT edit Applet URLs for",
}

MIN_PASSWORD_LENGTH = 6


def available_browsers(platform: str = sys.platform) -> List[BrowserChoice]:
    """Safari can only be automated on macOS."""
    return [choice for choice in BrowserChoice if not choice.is_safari or platform == "darwin"]


class OperatorPrompts:
    """
    Menu and text prompts shown to the operator.

    Dismissing any prompt (Ctrl-C or end of input) raises
    OperatorCanceledError; choosing "Quit" raises QuitRequested.
    """

    def __init__(self, console: Optional[Console] = None, platform: str = sys.platform):
        self.console = console or Console()
        self.platform = platform

    def _ask(self, prompt: str, **kwargs) -> str:
        try:
            return Prompt.ask(prompt, console=self.console, **kwargs)
        except (KeyboardInterrupt, EOFError) as e:
            raise OperatorCanceledError("PROMPT CANCELED") from e

    def _select(self, title: str, options: Sequence[Tuple[str, T]], default: int = 0,
                descriptions: Optional[dict] = None) -> T:
        """Numbered single-choice menu; returns the value of the chosen option."""
        self.console.print(f"\n[bold]{title}[/bold]")
        for number, (label, value) in enumerate(options, start=1):
            self.console.print(f"  {number}. {label}")
            if descriptions and descriptions.get(value):
                self.console.print(f"     [dim]{descriptions[value]}[/dim]")

        choices = [str(number) for number in range(1, len(options) + 1)]
        answer = self._ask("Choice", choices=choices, default=str(default + 1), show_choices=False)
        value = options[int(answer) - 1][1]
        if value == QUIT:
            raise QuitRequested("QUIT")
        return value

    def choose_browser(self, last_choice: Optional[BrowserChoice] = None) -> BrowserChoice:
        browsers = available_browsers(self.platform)
        options = [(BROWSER_LABELS[choice], choice) for choice in browsers] + [("Quit", QUIT)]
        default = browsers.index(last_choice) if last_choice in browsers else 0
        return self._select("Choose a Web Browser to Automate (Using Selenium WebDriver):", options, default)

    def choose_task(self):
        """Returns a Task, or CHANGE to go back to the browser selection."""
        options = [(TASK_LABELS[task], task) for task in Task]
        options += [("Change Web Browser Selection", CHANGE), ("Quit", QUIT)]
        return self._select("Choose a Task:", options, descriptions=TASK_DESCRIPTIONS)

    def choose_group(self, task: Task):
        """Returns an AppletGroup, or CHANGE to go back to the browser and task selection."""
        options = [(GROUP_LABELS[group], group) for group in AppletGroup]
        options += [("Change Web Browser and Task Selection", CHANGE), ("Quit", QUIT)]
        question = GROUP_QUESTIONS.get(task, "run this task for")
        return self._select(f"Which BroadLink group would you like to {question}?", options)

    def ask_credentials(self, default_username: Optional[str] = None,
                        default_password: Optional[str] = None) -> Credentials:
        """
        Ask for the IFTTT username and password.

        The remembered password is only offered again when the username is unchanged.
        """
        self.console.print("")
        username = ""
        while not username:
            username = self._ask("IFTTT Username", default=default_username or "",
                                 show_default=bool(default_username)).strip()
            if not username:
                self.console.print("[red]IFTTT Username Required[/red]")

        reuse_password = default_password if (default_password and username == default_username) else ""
        while True:
            password = self._ask("IFTTT Password", password=True, default=reuse_password,
                                 show_default=False)
            if not password:
                self.console.print("[red]IFTTT Password Required[/red]")
            elif len(password) < MIN_PASSWORD_LENGTH:
                self.console.print("[red]IFTTT Password Too Short[/red]")
            else:
                return Credentials(username, password)

    def ask_two_factor_code(self) -> str:
        """An empty answer is allowed in case the code was already entered in the browser."""
        self.console.print("")
        return self._ask("IFTTT Two-Step Verification Code", default="", show_default=False).strip()

    def confirm(self, message: str, default: bool = False) -> bool:
        try:
            return Confirm.ask(message, console=self.console, default=default)
        except (KeyboardInterrupt, EOFError) as e:
            raise OperatorCanceledError("PROMPT CANCELED") from e

    def choose_folder(self, message: str, folders: Sequence[str], default_to_first: bool = False) -> Optional[str]:
        options = [("Don't Open a Folder", None)] + [(f'Open "{folder}"', folder) for folder in folders]
        return self._select(message, options, default=1 if default_to_first and folders else 0)
