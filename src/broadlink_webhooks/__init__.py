"""Create and manage IFTTT Webhooks Applets for BroadLink with Selenium WebDriver."""

__version__ = "1.0.0"
