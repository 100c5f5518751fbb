"""
Estimation gateway -- the boundary to the cost-estimation oracle.

Responsibility:
    ``EstimationGateway.estimate(summary)`` turns a ``ProjectSummary`` into
    an ``EstimateResult`` or raises ``EstimationFailedError``.  The project
    state machine treats the oracle as a black box: it never retries and
    never inspects why a call failed.

Implementations:
    HttpEstimationGateway     -- OpenAI-compatible chat-completions endpoint
                                 (JSON response format) over httpx.
    RetryingEstimationGateway -- bounded retries with exponential backoff
                                 around any gateway.
    DeadlineEstimationGateway -- caller-imposed wall-clock limit around any
                                 gateway.

Failure modes:
    - EstimationTimeoutError when the HTTP call or the deadline expires.
    - EstimationFailedError for transport errors, non-2xx responses and
      payloads without a positive ``estimatedCost``.
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

import httpx

from voicecraft_kernel.domain.estimation import EstimateResult, ProjectSummary
from voicecraft_kernel.exceptions import EstimationFailedError, EstimationTimeoutError
from voicecraft_kernel.logging_config import get_logger

logger = get_logger("services.estimation")

SYSTEM_PROMPT = (
    "You are an expert audio project estimator. Given a project with audio "
    "files, estimate the cost and time required for an expert to complete "
    "the work. Consider audio editing complexity, number of files, total "
    "duration, project priority and quality requirements.\n\n"
    "Respond with a JSON object containing:\n"
    "- estimatedCost (in USD)\n"
    "- estimatedDuration (in hours)\n"
    "- breakdown (object with cost and time breakdown)\n"
    "- recommendations (array of strings)"
)


class EstimationGateway(ABC):
    """Port to the estimation oracle."""

    @abstractmethod
    def estimate(self, summary: ProjectSummary) -> EstimateResult:
        ...


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        return None


def parse_estimate_payload(payload: dict[str, Any]) -> EstimateResult:
    """
    Build an EstimateResult from the oracle's JSON object.

    Raises EstimationFailedError unless estimatedCost is a positive,
    finite number.
    """
    if not isinstance(payload, dict):
        raise EstimationFailedError("estimate payload is not a JSON object")

    cost = _to_decimal(payload.get("estimatedCost"))
    if cost is None or not cost.is_finite() or cost <= 0:
        raise EstimationFailedError(
            f"estimate payload has no positive estimatedCost: {payload.get('estimatedCost')!r}"
        )

    duration = _to_decimal(payload.get("estimatedDuration"))
    if duration is not None and (not duration.is_finite() or duration < 0):
        duration = None

    breakdown = payload.get("breakdown")
    assumptions = payload.get("assumptions", payload.get("recommendations")) or ()
    if isinstance(assumptions, str):
        assumptions = (assumptions,)

    return EstimateResult(
        cost=cost,
        duration_hours=duration,
        breakdown=breakdown if isinstance(breakdown, dict) else {},
        assumptions=tuple(str(a) for a in assumptions),
        raw=payload,
    )


class HttpEstimationGateway(EstimationGateway):
    """
    Chat-completions client.

    Pass ``client`` to supply a preconfigured ``httpx.Client`` (tests use
    one backed by ``httpx.MockTransport``); otherwise one is created for
    ``base_url`` and owned by the gateway.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        model: str = "gpt-4",
        timeout_seconds: float = 30.0,
        temperature: float = 0.7,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpEstimationGateway:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _request_body(self, summary: ProjectSummary) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": summary.to_prompt()},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }

    def estimate(self, summary: ProjectSummary) -> EstimateResult:
        project_id = summary.project_id
        t0 = time.monotonic()
        try:
            response = self._client.post(
                "/chat/completions",
                json=self._request_body(summary),
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning(
                "estimation_request_timeout",
                extra={"project_id": str(project_id), "timeout_seconds": self.timeout_seconds},
            )
            raise EstimationTimeoutError(self.timeout_seconds, project_id=project_id) from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "estimation_request_rejected",
                extra={
                    "project_id": str(project_id),
                    "status_code": exc.response.status_code,
                },
            )
            raise EstimationFailedError(
                f"oracle returned HTTP {exc.response.status_code}", project_id=project_id
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "estimation_request_error",
                extra={"project_id": str(project_id), "error": str(exc)},
            )
            raise EstimationFailedError(f"transport error: {exc}", project_id=project_id) from exc

        try:
            content = response.json(parse_float=Decimal)["choices"][0]["message"]["content"]
            payload = json.loads(content or "{}", parse_float=Decimal)
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EstimationFailedError(
                f"malformed oracle response: {exc}", project_id=project_id
            ) from exc

        try:
            result = parse_estimate_payload(payload)
        except EstimationFailedError as exc:
            raise EstimationFailedError(exc.detail, project_id=project_id) from exc

        logger.info(
            "estimation_received",
            extra={
                "project_id": str(project_id),
                "cost": result.cost,
                "duration_hours": result.duration_hours,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return result


class RetryingEstimationGateway(EstimationGateway):
    """Retry EstimationFailedError up to max_attempts, doubling the delay."""

    def __init__(
        self,
        inner: EstimationGateway,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.inner = inner
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def estimate(self, summary: ProjectSummary) -> EstimateResult:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self.inner.estimate(summary)
            except EstimationFailedError as exc:
                if attempt == self.max_attempts:
                    logger.warning(
                        "estimation_retries_exhausted",
                        extra={
                            "project_id": str(summary.project_id),
                            "attempts": attempt,
                            "error_code": exc.code,
                        },
                    )
                    raise
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.info(
                    "estimation_retry_scheduled",
                    extra={
                        "project_id": str(summary.project_id),
                        "attempt": attempt,
                        "delay_seconds": delay,
                        "error_code": exc.code,
                    },
                )
                self._sleep(delay)
        raise AssertionError("unreachable")


class DeadlineEstimationGateway(EstimationGateway):
    """
    Give up on the inner gateway after timeout_seconds.

    The abandoned call keeps running on its worker thread; its result is
    discarded.
    """

    def __init__(self, inner: EstimationGateway, timeout_seconds: float, max_workers: int = 4):
        self.inner = inner
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="estimation"
        )

    def estimate(self, summary: ProjectSummary) -> EstimateResult:
        future = self._executor.submit(self.inner.estimate, summary)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            logger.warning(
                "estimation_deadline_exceeded",
                extra={
                    "project_id": str(summary.project_id),
                    "timeout_seconds": self.timeout_seconds,
                },
            )
            raise EstimationTimeoutError(
                self.timeout_seconds, project_id=summary.project_id
            ) from exc

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
