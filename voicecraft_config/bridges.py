"""
Config -> Kernel Bridges.

Functions that convert a KernelConfiguration into kernel objects.  They
live in voicecraft_config (the producer) because the kernel must NEVER
import voicecraft_config.

Usage:
    from voicecraft_config import get_active_config
    from voicecraft_config.bridges import bootstrap, build_estimation_gateway

    config = get_active_config()
    engine = bootstrap(config)
    gateway = build_estimation_gateway(config)
"""

from __future__ import annotations

import os
from typing import Mapping

import httpx
from sqlalchemy.engine import Engine

from voicecraft_config.schema import KernelConfiguration
from voicecraft_kernel.db.engine import create_tables, init_engine_from_url
from voicecraft_kernel.db.immutability import register_immutability_listeners
from voicecraft_kernel.domain.credits import DEFAULT_OPERATION_COSTS, BillableOperation
from voicecraft_kernel.logging_config import configure_logging
from voicecraft_kernel.services.estimation_gateway import (
    DeadlineEstimationGateway,
    EstimationGateway,
    HttpEstimationGateway,
    RetryingEstimationGateway,
)


def init_engine(config: KernelConfiguration) -> Engine:
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        sqlite_busy_timeout=db.sqlite_busy_timeout,
    )


def operation_costs(config: KernelConfiguration) -> dict[BillableOperation, int]:
    """Configured operation prices, falling back to the built-in defaults."""
    costs = dict(DEFAULT_OPERATION_COSTS)
    costs.update({BillableOperation(k): v for k, v in config.credits.operation_costs.items()})
    return costs


def build_estimation_gateway(
    config: KernelConfiguration,
    client: httpx.Client | None = None,
    environ: Mapping[str, str] | None = None,
) -> EstimationGateway:
    """
    HTTP gateway wrapped in retries and, when configured, a deadline.

    The API key is read from the environment variable named by
    ``estimation.api_key_env``; a missing key leaves the request
    unauthenticated.
    """
    settings = config.estimation
    env = os.environ if environ is None else environ
    gateway: EstimationGateway = HttpEstimationGateway(
        base_url=settings.base_url,
        api_key=env.get(settings.api_key_env),
        model=settings.model,
        timeout_seconds=settings.timeout_seconds,
        temperature=settings.temperature,
        client=client,
    )
    if settings.max_attempts > 1:
        gateway = RetryingEstimationGateway(
            gateway,
            max_attempts=settings.max_attempts,
            backoff_seconds=settings.backoff_seconds,
        )
    if settings.deadline_seconds is not None:
        gateway = DeadlineEstimationGateway(gateway, timeout_seconds=settings.deadline_seconds)
    return gateway


def bootstrap(config: KernelConfiguration, create_schema: bool = True) -> Engine:
    """Logging, engine, immutability listeners and (optionally) tables."""
    configure_logging(level=config.logging.level)
    engine = init_engine(config)
    register_immutability_listeners()
    if create_schema:
        create_tables()
    return engine
