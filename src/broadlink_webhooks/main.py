import argparse
import io
import logging
import os
import sys
from typing import List, Optional

from selenium.common.exceptions import WebDriverException

from .cli.environment import remediate
from .cli.prompts import CHANGE, OperatorPrompts
from .cli.task_runner import TaskRunner
from .core.config import settings
from .core.config_loader import ConfigurationError, get_automation_config
from .core.errors import (
    EnvironmentSetupError,
    FatalError,
    OperatorCanceledError,
    QuitRequested,
    RecoverableOperationError
)
from .core.logging_config import setup_logging
from .core.models import BrowserChoice, Task
from .services.session_manager import SessionManager

# Windows consoles default to a legacy code page
if sys.platform.startswith('win'):
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')
    os.environ['PYTHONIOENCODING'] = 'utf-8'


logger = logging.getLogger("broadlink_webhooks")

BANNER = "broadlink-webhooks: Create and Manage IFTTT Webhooks Applets for BroadLink"


class BroadLinkWebhooksApp:
    """The interactive loop: choose a browser, a task and a group, then run it."""

    def __init__(self, prompts: OperatorPrompts, session_manager: SessionManager, runner: TaskRunner,
                 keep_browser_open_on_error: bool = False):
        self.prompts = prompts
        self.session_manager = session_manager
        self.runner = runner
        self.keep_browser_open_on_error = keep_browser_open_on_error
        self.last_browser: Optional[BrowserChoice] = None

    def run(self) -> int:
        """
        Loop until the operator quits.

        Returns:
            0 when the operator quit, 1 when the run ended in error
        """
        errored = False
        try:
            while True:
                if not self._run_once():
                    return 0
        except QuitRequested:
            return 0
        except EnvironmentSetupError as e:
            errored = True
            try:
                remediate(e, self.prompts)
            except OperatorCanceledError:
                logger.info("CANCELED SETUP GUIDANCE")
            return 1
        except FatalError as e:
            errored = True
            logger.error(f"ERROR: {e}")
            return 1
        except Exception as e:
            errored = True
            logger.exception(f"ERROR: {e}")
            logger.error("RUNTIME ERROR OCCURRED - RE-LAUNCH BROADLINK-WEBHOOKS TO TRY AGAIN")
            return 1
        finally:
            self._shut_down(errored)

    def _run_once(self) -> bool:
        """Run one menu selection; False when the operator dismissed the menu."""
        try:
            browser = self.prompts.choose_browser(self.last_browser)
            task = self.prompts.choose_task()
            if task == CHANGE:
                return True
            if task is Task.OPEN_PROJECT_PAGE:
                self.runner.open_project_page()
                return True
            group = self.prompts.choose_group(task)
            if group == CHANGE:
                return True
        except QuitRequested:
            raise
        except OperatorCanceledError:
            logger.info("CANCELED OPTIONS SELECTION")
            return False

        self.last_browser = browser

        try:
            session = self.session_manager.ensure_authenticated_session(browser)
        except QuitRequested:
            raise
        except OperatorCanceledError:
            logger.info("CANCELED IFTTT LOGIN")
            return True
        except (RecoverableOperationError, WebDriverException) as e:
            logger.error(f"ERROR LOGGING INTO IFTTT: {e}")
            return True

        try:
            self.runner.run(task, group, session)
        except QuitRequested:
            raise
        except OperatorCanceledError:
            logger.info(f'CANCELED "{task.value}" TASK')
        except (RecoverableOperationError, WebDriverException) as e:
            logger.error(f'"{task.value}" TASK FAILED: {e}')
        return True

    def _shut_down(self, errored: bool):
        session = self.session_manager.session
        if session is None:
            return
        if errored and self.keep_browser_open_on_error and not session.choice.headless:
            logger.info("Keeping the browser window open for inspection")
            return
        self.session_manager.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="broadlink-webhooks",
        description="Create and manage IFTTT Webhooks Applets for BroadLink"
    )
    parser.add_argument("--log-level", default=None, type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Console log level (defaults to LOG_LEVEL)")
    parser.add_argument("--config", default=None,
                        help="Automation YAML file (defaults to AUTOMATION_CONFIG_PATH)")
    parser.add_argument("--keep-browser-open", action="store_true",
                        default=settings.KEEP_BROWSER_OPEN_ON_ERROR,
                        help="Leave a visible browser open when the run ends in error")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level or settings.LOG_LEVEL, settings.LOG_DIR)

    logger.info(BANNER)

    try:
        config = get_automation_config(args.config)
    except ConfigurationError as e:
        logger.error(f"ERROR: {e}")
        return 1

    prompts = OperatorPrompts()
    session_manager = SessionManager(config, prompts, default_username=settings.IFTTT_USERNAME)
    runner = TaskRunner(config, prompts)
    app = BroadLinkWebhooksApp(prompts, session_manager, runner,
                               keep_browser_open_on_error=args.keep_browser_open)
    return app.run()


if __name__ == "__main__":
    sys.exit(main())
