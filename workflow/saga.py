"""
Ordered multi-step writes with explicit compensation.

The backing store offers no transaction spanning a team and a registration,
so cross-entity operations are expressed as a Saga: steps run in order, and
when one fails every completed step's compensation runs in reverse order.
Compensations (and steps flagged ``durable``) are retried until applied,
because abandoning one would silently leak team budget.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import WorkflowError, CompensationFailed

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 5.0


def retry_until_applied(
    fn: Callable[[], Any],
    description: str,
    max_attempts: int = 0,
    backoff_seconds: float = 0.5
) -> Any:
    """
    Call ``fn`` until it returns without raising.

    Business-rule errors are not transient and fail immediately. Anything
    else (database hiccups, lost connections) is retried with linear backoff.
    ``max_attempts`` of 0 means no limit.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except WorkflowError as e:
            logger.critical(f"{description} rejected and cannot be retried: {e}")
            raise CompensationFailed(f"{description} failed: {e.message}") from e
        except Exception as e:
            if max_attempts and attempt >= max_attempts:
                logger.critical(f"{description} failed after {attempt} attempts: {e}")
                raise CompensationFailed(f"{description} failed after {attempt} attempts") from e
            logger.warning(f"{description} attempt {attempt} failed, retrying: {e}")
            time.sleep(min(backoff_seconds * attempt, MAX_BACKOFF_SECONDS))


@dataclass
class SagaStep:
    name: str
    action: Callable[[], Any]
    compensation: Optional[Callable[[], Any]] = None
    durable: bool = False


class Saga:
    def __init__(self, name: str, max_attempts: int = 0, backoff_seconds: float = 0.5):
        self.name = name
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._steps: List[SagaStep] = []

    def step(
        self,
        name: str,
        action: Callable[[], Any],
        compensation: Callable[[], Any] = None,
        durable: bool = False
    ) -> "Saga":
        self._steps.append(SagaStep(name, action, compensation, durable))
        return self

    def run(self) -> Dict[str, Any]:
        results: Dict[str, Any] = {}
        completed: List[SagaStep] = []

        for step in self._steps:
            try:
                if step.durable:
                    results[step.name] = retry_until_applied(
                        step.action,
                        f"{self.name}.{step.name}",
                        self.max_attempts,
                        self.backoff_seconds
                    )
                else:
                    results[step.name] = step.action()
            except Exception:
                if completed:
                    logger.warning(f"Saga {self.name} failed at step '{step.name}', compensating")
                self._compensate(completed)
                raise
            completed.append(step)

        return results

    def _compensate(self, completed: List[SagaStep]):
        for step in reversed(completed):
            if step.compensation is None:
                continue
            retry_until_applied(
                step.compensation,
                f"{self.name}.{step.name} compensation",
                self.max_attempts,
                self.backoff_seconds
            )
            logger.info(f"Saga {self.name}: compensated step '{step.name}'")
