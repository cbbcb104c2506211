import time
from typing import Callable, TypeVar

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_S = 1.0


def retry_with_backoff(
    fn: Callable[[], T],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay_s: float = DEFAULT_INITIAL_DELAY_S,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """Call ``fn`` up to ``max_attempts`` times with doubling delays.

    Delays start at ``initial_delay_s`` and double after each failure
    (1s, 2s, ... with the defaults). There is no jitter. Once the attempts are
    used up the last error is re-raised unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    delay = initial_delay_s
    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except retry_on as err:
            if attempt >= max_attempts:
                raise
            if on_retry is not None:
                on_retry(attempt, err)
            sleep(delay)
            delay *= 2

    raise RuntimeError("retry loop exhausted unexpectedly")
