"""Guided remediation when the browser cannot be automated."""

import logging
import os
import subprocess
import sys
import webbrowser
from pathlib import Path
from typing import List, Optional

from rich.markup import escape

from ..core.errors import EnvironmentSetupError, SafariAutomationDisabledError, WebDriverMissingError


logger = logging.getLogger(__name__)

WEBDRIVER_DOWNLOAD_URLS = {
    "firefox": "https://github.com/mozilla/geckodriver/releases/",
    "chrome": "https://chromedriver.chromium.org/downloads",
}

WEBDRIVER_EXECUTABLES = {
    "firefox": "geckodriver",
    "chrome": "chromedriver",
}

SAFARI_INSTRUCTIONS = (
    'To allow Safari to be automated, first turn on "Show Develop menu in menubar" in '
    "Safari's Advanced settings. Then turn on \"Allow Remote Automation\" in the Develop menu. "
    'After that, re-launch "broadlink-webhooks" to automate Safari.'
)


def driver_executable_name(browser: str, platform: str = sys.platform) -> str:
    name = WEBDRIVER_EXECUTABLES.get(browser, f"{browser}driver")
    return f"{name}.exe" if platform == "win32" else name


def install_folders(platform: str = sys.platform, home: Optional[Path] = None) -> List[str]:
    """Folders on the default PATH where a WebDriver executable can be installed."""
    if platform == "darwin":
        return ["/usr/local/bin/"]
    if platform == "win32":
        return ["C:\\Windows\\", "C:\\Windows\\System32\\"]
    home = home or Path.home()
    return [f"{home}/.local/bin/", "/usr/local/bin/", "/usr/bin/"]


def open_url(url: str) -> bool:
    """Open a URL in the operator's default browser."""
    try:
        return webbrowser.open(url)
    except webbrowser.Error as e:
        logger.error(f'ERROR OPENING "{url}": {e}')
        return False


def open_folder(folder: str, platform: str = sys.platform) -> bool:
    """Open a folder in Finder, File Explorer or the desktop's file manager."""
    try:
        Path(folder).mkdir(parents=True, exist_ok=True)
    except OSError:
        pass

    try:
        if platform == "win32":
            os.startfile(folder)
        elif platform == "darwin":
            subprocess.Popen(["open", folder])
        else:
            subprocess.Popen(["xdg-open", folder])
        return True
    except OSError as e:
        logger.error(f'ERROR OPENING "{folder}": {e}')
        return False


def webdriver_missing_message(error: WebDriverMissingError, platform: str = sys.platform) -> str:
    browser = error.browser
    executable = driver_executable_name(browser, platform)
    driver_name = f"{browser.title()} WebDriver executable ({executable})"
    folders = '" or "'.join(install_folders(platform))
    return (
        f"ERROR: {error}\n\n"
        f'You can download the {driver_name} from "{WEBDRIVER_DOWNLOAD_URLS.get(browser, "")}".\n\n'
        f'Once downloaded, install it by moving the "{executable}" file into the "{folders}" folder.\n\n'
        f'After the {driver_name} is installed, you can re-launch "broadlink-webhooks" to automate '
        f"{browser.title()}."
    )


def remediate(error: EnvironmentSetupError, prompts, platform: str = sys.platform):
    """Explain an environment problem and offer to open the relevant download page and folder."""
    console = prompts.console

    if isinstance(error, SafariAutomationDisabledError):
        console.print(f"\n[red]ERROR: {escape(str(error))}[/red]\n\n{SAFARI_INSTRUCTIONS}\n")
        return

    if not isinstance(error, WebDriverMissingError):
        console.print(f"\n[red]ERROR: {escape(str(error))}[/red]\n")
        return

    console.print(f"\n[red]{escape(webdriver_missing_message(error, platform))}[/red]\n")

    download_url = WEBDRIVER_DOWNLOAD_URLS.get(error.browser)
    opened_link = False
    if download_url and prompts.confirm(f'Would you like to open "{download_url}" in your default web browser?',
                                        default=True):
        opened_link = open_url(download_url)

    executable = driver_executable_name(error.browser, platform)
    folder = prompts.choose_folder(
        f'Would you like to open the "{executable}" install location folder?',
        install_folders(platform),
        default_to_first=opened_link
    )
    if folder:
        open_folder(folder, platform)
