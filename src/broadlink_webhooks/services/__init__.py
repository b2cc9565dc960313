"""
Services for driving IFTTT through Selenium WebDriver.

- element_waiter.py: Bounded element waits and polls
- action_executor.py: Click-until-condition loop for the Applet wizard
- task_retry.py: Bounded retries for whole operations
- session_manager.py: Browser session ownership and login
- ifttt_pages.py: IFTTT URLs, locators and the server error check
- ifttt_service.py: Applet scan, discovery, creation and deletion
- reconciliation.py: Create/skip/remove decisions
- output_formatters.py: Generated configuration and reports
"""
