"""Bounded polling for long-running control plane operations."""

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from infrastructure.errors import WaitTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def wait_until(
  check: Callable[[], T | None],
  *,
  description: str,
  timeout: float,
  interval: float,
  error: type[WaitTimeoutError] = WaitTimeoutError,
  sleep: Callable[[float], None] = time.sleep,
  monotonic: Callable[[], float] = time.monotonic,
) -> T:
  """Poll ``check`` until it returns something other than None.

  ``check`` may raise to abort the wait, e.g. when the resource reached a
  terminal failure state. The wait never exceeds ``timeout`` by more than
  one ``interval``.

  Args:
    check: Callable returning the result once ready, otherwise None.
    description: Human readable name of what is awaited, used in messages.
    timeout: Maximum number of seconds to wait.
    interval: Seconds to sleep between checks.
    error: WaitTimeoutError subclass raised when time runs out.
    sleep: Sleep function, replaceable in tests.
    monotonic: Clock function, replaceable in tests.

  Returns:
    The first non-None value returned by ``check``.

  Raises:
    WaitTimeoutError: ``error`` if the deadline passes first.
  """
  deadline = monotonic() + timeout
  attempt = 0
  while True:
    attempt += 1
    result = check()
    if result is not None:
      return result

    remaining = deadline - monotonic()
    if remaining <= 0:
      raise error(f"Timed out after {timeout:.0f}s waiting for {description}")

    if attempt % 10 == 0:
      logger.info("Still waiting for %s (%.0fs left)", description, remaining)
    sleep(min(interval, remaining))
