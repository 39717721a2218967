"""Outcome types for persistence calls and the policy that settles them.

Every Usage Recorder call returns ``Ok`` or ``Err`` instead of raising. Call
sites hand the outcome to ``settle`` together with the name of the step; the
policy table decides whether an error is logged and swallowed or re-raised.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

from meeting_minutes.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]


class FailurePolicy(str, Enum):
    LOG_AND_CONTINUE = "log_and_continue"
    PROPAGATE = "propagate"


PERSISTENCE_POLICIES: dict[str, FailurePolicy] = {
    # Usage accounting never blocks delivering the transcript
    "record_job": FailurePolicy.LOG_AND_CONTINUE,
    "usage_lookup": FailurePolicy.LOG_AND_CONTINUE,
    "post_check": FailurePolicy.LOG_AND_CONTINUE,
    "terminal_write": FailurePolicy.LOG_AND_CONTINUE,
    "expire_stale": FailurePolicy.LOG_AND_CONTINUE,
    "job_lookup": FailurePolicy.LOG_AND_CONTINUE,
    # Operator-invoked routines must report failure
    "bootstrap": FailurePolicy.PROPAGATE,
    "monthly_reset": FailurePolicy.PROPAGATE,
}


def policy_for(step: str) -> FailurePolicy:
    return PERSISTENCE_POLICIES.get(step, FailurePolicy.PROPAGATE)


def settle(outcome: "Result[T, Exception]", step: str, **context: object) -> T | None:
    """Unwrap an outcome according to the policy registered for ``step``.

    Returns the value on success. On failure either logs and returns None or
    re-raises the wrapped error.
    """
    if isinstance(outcome, Ok):
        return outcome.value

    if policy_for(step) is FailurePolicy.PROPAGATE:
        raise outcome.error

    logger.warning(
        "persistence_step_failed",
        step=step,
        error=str(outcome.error),
        error_type=type(outcome.error).__name__,
        **context,
    )
    return None
