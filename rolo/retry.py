from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from rolo.logging import get_logger

_logger = get_logger(__name__)

RETRYABLE_STATUS = frozenset({408, 409, 429})


def is_retryable(exc: BaseException) -> bool:
    # litellm maps provider errors onto exceptions carrying an HTTP status
    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        return False
    return status in RETRYABLE_STATUS or status >= 500


def _log_retry(retry_state) -> None:
    _logger.warning(
        "Embedding call failed (attempt %d/3), retrying: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


@retry(
    retry=retry_if_exception(is_retryable),
    stop=stop_after_attempt(3),
    wait=wait_exponential_jitter(initial=0.5, max=8, jitter=2),
    reraise=True,
    before_sleep=_log_retry,
)
async def with_retry(fn, *args, **kwargs):
    return await fn(*args, **kwargs)
