from openai import APIConnectionError, APIStatusError
from tenacity import RetryCallState, retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from kodo.logging import get_logger

_logger = get_logger(__name__)

MAX_ATTEMPTS = 3
TRANSIENT_STATUSES = frozenset({408, 409, 429})


def is_transient(exc: BaseException) -> bool:
    match exc:
        case APIStatusError(status_code=status):
            return status in TRANSIENT_STATUSES or status >= 500
        case APIConnectionError():
            return True
    return False


def _before_sleep(state: RetryCallState) -> None:
    _logger.warning(
        "Provider request failed, attempt %d of %d: %s",
        state.attempt_number,
        MAX_ATTEMPTS,
        state.outcome.exception() if state.outcome else None,
    )


@retry(
    retry=retry_if_exception(is_transient),
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential_jitter(initial=0.5, max=8, jitter=2),
    before_sleep=_before_sleep,
    reraise=True,
)
async def with_retry(fn, *args, **kwargs):
    return await fn(*args, **kwargs)
