"""Drive a server-side rewrite (copy) to completion.

Large or cross-location copies are not finished in one request: the service
answers with ``done=False`` and a rewrite token, and the client repeats the
identical request carrying that token until ``done=True``.
"""

from __future__ import annotations

import dataclasses
import logging
import random
import time
from enum import Enum
from typing import Any
from typing import Callable
from typing import Dict
from typing import Optional

from cloudstore.config import Config
from cloudstore.config import get_config
from cloudstore.errors import RewriteIncompleteError
from cloudstore.errors import StorageError
from cloudstore.models.object import ObjectResource
from cloudstore.models.object import RewriteResponse
from cloudstore.services.base import StorageService
from cloudstore.services.encryption_headers import request_options


logger = logging.getLogger(__name__)


def compute_backoff_ms(attempt: int, base_ms: int = 1000, max_ms: int = 10000) -> float:
    """Compute exponential backoff with jitter."""
    exp_backoff = base_ms * (2 ** (attempt - 1))
    jitter = random.uniform(0, exp_backoff * 0.1)
    return float(min(exp_backoff + jitter, max_ms))


class RewriteState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


@dataclasses.dataclass(frozen=True)
class RewriteDescriptor:
    source_bucket: str
    source_name: str
    destination_bucket: str
    destination_name: str
    mutations: Optional[Dict[str, Any]] = None
    predefined_acl: Optional[str] = None
    source_generation: Optional[int] = None
    headers: Dict[str, str] = dataclasses.field(default_factory=dict)
    rewrite_token: Optional[str] = None

    def with_token(self, rewrite_token: Optional[str]) -> "RewriteDescriptor":
        return dataclasses.replace(self, rewrite_token=rewrite_token)

    @property
    def options(self) -> Dict[str, Dict[str, str]]:
        return request_options(self.headers)


class RewriteLoop:
    """One rewrite sequence. Instances are single-use and share nothing."""

    def __init__(
        self,
        service: StorageService,
        config: Optional[Config] = None,
        *,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
        max_iterations: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ):
        self.service = service
        self.config = config or get_config()
        self._sleep = sleep if sleep is not None else time.sleep
        self._clock = clock if clock is not None else time.monotonic
        self.max_iterations = max_iterations if max_iterations is not None else self.config.rewrite_max_iterations
        self.deadline_seconds = (
            deadline_seconds if deadline_seconds is not None else self.config.rewrite_deadline_seconds
        )
        self.state = RewriteState.PENDING
        self.iterations = 0

    def _call(self, descriptor: RewriteDescriptor) -> RewriteResponse:
        raw = self.service.rewrite_object(
            descriptor.source_bucket,
            descriptor.source_name,
            descriptor.destination_bucket,
            descriptor.destination_name,
            descriptor.mutations,
            destination_predefined_acl=descriptor.predefined_acl,
            source_generation=descriptor.source_generation,
            rewrite_token=descriptor.rewrite_token,
            options=descriptor.options,
        )
        self.iterations += 1
        return RewriteResponse.model_validate(raw)

    def _check_budget(self, started_at: float, rewrite_token: Optional[str]) -> None:
        if self.iterations >= self.max_iterations:
            raise RewriteIncompleteError(
                f"Rewrite not done after {self.iterations} requests",
                iterations=self.iterations,
                rewrite_token=rewrite_token,
            )
        if self.deadline_seconds and self._clock() - started_at >= self.deadline_seconds:
            raise RewriteIncompleteError(
                f"Rewrite not done within {self.deadline_seconds}s ({self.iterations} requests)",
                iterations=self.iterations,
                rewrite_token=rewrite_token,
            )

    def run(self, descriptor: RewriteDescriptor) -> ObjectResource:
        """Issue rewrite requests until the service reports completion.

        Returns:
            The destination object resource from the final response

        Raises:
            RewriteIncompleteError: iteration cap or deadline exceeded
            StorageError: the final response carries no resource
        """
        if self.state is not RewriteState.PENDING:
            raise RuntimeError("RewriteLoop instances cannot be reused")

        started_at = self._clock()
        source = f"{descriptor.source_bucket}/{descriptor.source_name}"
        destination = f"{descriptor.destination_bucket}/{descriptor.destination_name}"
        logger.info(f"Rewriting {source} -> {destination}")

        response = self._call(descriptor)
        while not response.done:
            self.state = RewriteState.IN_PROGRESS
            if response.total_bytes_rewritten is not None and response.object_size:
                logger.debug(
                    f"Rewrite {source} -> {destination}: "
                    f"{response.total_bytes_rewritten}/{response.object_size} bytes after {self.iterations} requests"
                )

            self._check_budget(started_at, response.rewrite_token)

            delay_ms = compute_backoff_ms(
                self.iterations,
                base_ms=self.config.rewrite_backoff_base_ms,
                max_ms=self.config.rewrite_backoff_max_ms,
            )
            self._sleep(delay_ms / 1000.0)

            descriptor = descriptor.with_token(response.rewrite_token)
            response = self._call(descriptor)

        self.state = RewriteState.DONE
        if response.resource is None:
            raise StorageError(f"Rewrite {source} -> {destination} completed without a resource")

        logger.info(f"Rewrite {source} -> {destination} done after {self.iterations} requests")
        return response.resource
