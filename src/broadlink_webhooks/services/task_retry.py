"""Bounded attempt loop for multi-step IFTTT operations."""

import logging
from typing import Callable, Optional, TypeVar

from ..core.errors import EnvironmentSetupError, FatalError, OperatorCanceledError


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that end the enclosing task without consuming the retry budget
NON_RETRYABLE_ERRORS = (FatalError, OperatorCanceledError, EnvironmentSetupError)


def with_retries(
    operation: Callable[[], T],
    description: str,
    max_attempts: int,
    on_failure: Optional[Callable[[Exception, int], None]] = None,
    log: Optional[logging.Logger] = None
) -> T:
    """
    Run an operation from its start up to max_attempts times.

    Args:
        operation: Zero-argument callable performing the whole operation
        description: Upper-case description used in failure logs, e.g. "LOGGING INTO IFTTT"
        max_attempts: Retry budget for this operation
        on_failure: Called with (error, attempt) before the next attempt, e.g.
            to re-prompt for corrected credentials
        log: Logger to report failures to

    Returns:
        Whatever the operation returns on its first successful attempt

    Raises:
        FatalError, OperatorCanceledError, EnvironmentSetupError: Immediately
        Exception: The last failure once all attempts are used up
    """
    log = log or logger
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except NON_RETRYABLE_ERRORS:
            raise
        except Exception as e:
            log.error(f"ERROR: {e}")
            log.error(f"ERROR {description} - ATTEMPT {attempt} OF {max_attempts}", extra={
                'operation': description,
                'attempt': attempt,
                'success': False
            })

            if attempt == max_attempts:
                raise

            if on_failure:
                on_failure(e, attempt)
