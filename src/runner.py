"""
Speed test runner for DNS servers.

Orchestrates probing with:
- Up-front validation of the whole candidate list
- Fixed-size batches processed strictly one after another
- Concurrent probes inside a batch under a shared deadline
- Progress notifications as each probe settles
"""

import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from .models import ProbeResult, SpeedTestReport, TestOptions
from .probe import ProbeFunc, UDPProbe
from .statistics import rank_results, summarize
from .validation import validate_servers


logger = logging.getLogger(__name__)

# Type for progress callback: (completed, total, current_ip)
ProgressCallback = Callable[[int, int, str], None]


def split_into_batches(items: Sequence[str], size: int) -> list[list[str]]:
    """Split items into consecutive batches of at most `size`."""
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class SpeedTestRunner:
    """
    Runs DNS speed tests in bounded-concurrency batches.

    Every probe in a batch runs at once; the next batch starts only
    when the current one has fully settled or its deadline has passed.
    Probes still running at the deadline are cancelled and left out of
    the results entirely, they are not counted as unreachable.
    """

    def __init__(
        self,
        options: Optional[TestOptions] = None,
        probe: Optional[ProbeFunc] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the runner.

        Args:
            options: Run options (default: TestOptions())
            probe: Probe to use per server (default: UDPProbe)
            progress_callback: Optional observer called after each probe settles
        """
        self.options = options or TestOptions()
        self.probe = probe or UDPProbe(self.options)
        self.progress_callback = progress_callback
        self._completed = 0

    def _notify(self, total: int, ip: str) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(self._completed, total, ip)
        except Exception:
            logger.exception("Progress callback failed for %s", ip)

    async def _probe_and_report(self, ip: str, total: int) -> ProbeResult:
        result = await self.probe(ip)
        self._completed += 1
        self._notify(total, ip)
        return result

    async def run_batch(self, batch: list[str], total: int) -> list[ProbeResult]:
        """
        Probe one batch concurrently under the batch deadline.

        Args:
            batch: Servers to probe
            total: Total servers in the run, for progress reporting

        Returns:
            Results of probes that settled in time, in batch order
        """
        tasks = [
            asyncio.create_task(self._probe_and_report(ip, total))
            for ip in batch
        ]

        done, pending = await asyncio.wait(
            tasks,
            timeout=self.options.deadline_seconds,
        )

        if pending:
            for task in pending:
                task.cancel()
            # Let cancelled probes close their sockets
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                "Batch deadline of %dms passed, dropped %d of %d probes",
                self.options.deadline_ms,
                len(pending),
                len(batch),
            )

        return [task.result() for task in tasks if task in done]

    async def run(self, servers: Sequence[str]) -> list[ProbeResult]:
        """
        Probe every server, batch by batch.

        Args:
            servers: Candidate IPv4 addresses

        Returns:
            Unranked results accumulated in batch order

        Raises:
            InvalidInputError: If the list is empty or has invalid entries
        """
        return await self._run_validated(validate_servers(servers))

    async def _run_validated(self, servers: list[str]) -> list[ProbeResult]:
        batches = split_into_batches(servers, self.options.batch_size)
        total = len(servers)

        self._completed = 0
        results: list[ProbeResult] = []

        for index, batch in enumerate(batches, start=1):
            batch_results = await self.run_batch(batch, total)
            logger.debug(
                "Batch %d/%d: %d probes, %d settled",
                index,
                len(batches),
                len(batch),
                len(batch_results),
            )
            results.extend(batch_results)

        return results

    async def run_report(self, servers: Sequence[str]) -> SpeedTestReport:
        """
        Probe every server and build a ranked report.

        Args:
            servers: Candidate IPv4 addresses

        Returns:
            SpeedTestReport with ranked results and summary
        """
        servers = validate_servers(servers)
        started_at = datetime.now()
        results = await self._run_validated(servers)
        completed_at = datetime.now()

        return SpeedTestReport(
            ranked=rank_results(results),
            summary=summarize(
                results,
                tested=len(servers),
                started_at=started_at,
                completed_at=completed_at,
            ),
        )


async def test_dns_speed(
    servers: Sequence[str],
    options: Optional[TestOptions] = None,
    *,
    test_domain: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
    probe: Optional[ProbeFunc] = None,
) -> list[ProbeResult]:
    """
    Measure DNS servers and rank them by round-trip time.

    Args:
        servers: Candidate IPv4 addresses
        options: Run options (default: TestOptions())
        test_domain: Domain to query, overrides options.test_domain
        progress_callback: Optional observer called after each probe settles
        probe: Probe to use per server (default: UDPProbe)

    Returns:
        Reachable servers sorted ascending by RTT in milliseconds

    Raises:
        InvalidInputError: If the list is empty or has invalid entries
        ValueError: If the test domain is not a valid DNS name
    """
    servers = validate_servers(servers)
    options = options or TestOptions()
    if test_domain:
        options = dataclasses.replace(options, test_domain=test_domain)

    runner = SpeedTestRunner(
        options=options,
        probe=probe,
        progress_callback=progress_callback,
    )
    results = await runner._run_validated(servers)
    return rank_results(results)

