"""Attempt orchestration and the profiling run."""

import asyncio
import logging
import time
from typing import Optional, Tuple

from .codec import RequestCodec
from .connector import Connector, create_ssl_context
from .errors import AttemptError
from .models import (
    AttemptFailure,
    AttemptOutcome,
    AttemptSuccess,
    HttpResponse,
    ProfileConfig,
    ProfileReport,
    UrlTarget,
)
from .resolver import Resolver
from .stats import StatsAggregator

logger = logging.getLogger(__name__)


class Attempt:
    """One resolve, connect, send, receive and close cycle against the target."""

    def __init__(
        self,
        index: int,
        target: UrlTarget,
        resolver: Resolver,
        connector: Connector,
        codec: RequestCodec,
    ):
        self.index = index
        self.target = target
        self.resolver = resolver
        self.connector = connector
        self.codec = codec

    async def run(self) -> Tuple[AttemptOutcome, Optional[HttpResponse]]:
        """
        Execute the cycle. Never raises for per-attempt errors.

        Returns:
            The outcome, plus the parsed response when the attempt succeeded
        """
        started: Optional[float] = None
        try:
            candidates = await self.resolver.resolve(self.target.host, self.target.port)

            started = time.perf_counter()
            async with self.connector.open(
                candidates, self.target.is_tls, self.target.host
            ) as connection:
                await self.codec.send_request(
                    connection, self.codec.encode_request(self.target)
                )
                response = await self.codec.read_response(connection.reader)
                elapsed = time.perf_counter() - started
        except AttemptError as e:
            return (
                AttemptFailure(
                    attempt=self.index,
                    phase=e.phase,
                    detail=str(e),
                    elapsed=time.perf_counter() - started if started is not None else None,
                ),
                None,
            )

        return (
            AttemptSuccess(
                attempt=self.index,
                status=response.status,
                body_size=response.size,
                elapsed=elapsed,
            ),
            response,
        )


class Profiler:
    """
    Runs the configured number of attempts against one target.

    Supports two modes:
    - Sequential: one attempt (and one open connection) at a time
    - Concurrent: up to ``config.concurrency`` attempts in flight
    """

    def __init__(
        self,
        target: UrlTarget,
        config: Optional[ProfileConfig] = None,
        resolver: Optional[Resolver] = None,
        connector: Optional[Connector] = None,
        codec: Optional[RequestCodec] = None,
    ):
        self.target = target
        self.config = config or ProfileConfig()
        self.resolver = resolver or Resolver()
        self.connector = connector or Connector(
            connect_timeout=self.config.connect_timeout,
            ssl_context=create_ssl_context(self.config.insecure_ssl) if target.is_tls else None,
        )
        self.codec = codec or RequestCodec(
            user_agent=self.config.user_agent,
            write_timeout=self.config.write_timeout,
            read_timeout=self.config.read_timeout,
        )
        self.aggregator = StatsAggregator()

    async def run(self) -> ProfileReport:
        """Run every attempt, then reduce the outcomes into a report."""
        total = self.config.count

        logger.info(
            f"Profiling {self.target} with {total} request(s) "
            f"({'sequential' if self.config.is_sequential else f'concurrency {self.config.concurrency}'})"
        )

        if self.config.is_sequential:
            for index in range(1, total + 1):
                await self._run_and_store(index)
        else:
            semaphore = asyncio.Semaphore(self.config.concurrency)

            async def limited_run(index: int) -> None:
                async with semaphore:
                    await self._run_and_store(index)

            await asyncio.gather(*(limited_run(i) for i in range(1, total + 1)))

        return self.aggregator.build_report()

    async def _run_and_store(self, index: int) -> None:
        """Run one attempt and record its outcome."""
        attempt = Attempt(index, self.target, self.resolver, self.connector, self.codec)
        outcome, response = await attempt.run()
        self.aggregator.add_outcome(outcome, response.body if response else None)

        total = self.config.count
        if isinstance(outcome, AttemptSuccess):
            logger.info(
                f"Request {index}/{total}: HTTP {outcome.status}, "
                f"{outcome.body_size} B in {outcome.elapsed * 1000:.0f}ms"
            )
        else:
            logger.warning(
                f"Request {index}/{total} failed ({outcome.phase.value}): {outcome.detail}"
            )
