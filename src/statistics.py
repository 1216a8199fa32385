"""
Ranking and statistics for DNS speed test results.

Ranks reachable servers by round-trip time and calculates
a run summary:
- Basic stats: min, max, average, median
- Percentiles: p95
- Reachability: replied, unreachable, dropped by a batch deadline
"""

from datetime import datetime
from typing import Optional

import numpy as np

from .models import ProbeResult, SpeedTestSummary


def rank_results(results: list[ProbeResult]) -> list[ProbeResult]:
    """
    Rank probe results from fastest to slowest.

    Unreachable results are removed. The sort is stable, so servers
    with equal RTT keep their probe order.

    Args:
        results: Accumulated probe results

    Returns:
        Reachable results sorted ascending by RTT
    """
    reachable = [r for r in results if r.is_reachable]
    return sorted(reachable, key=lambda r: r.rtt)


def summarize(
    results: list[ProbeResult],
    tested: int,
    started_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
) -> SpeedTestSummary:
    """
    Calculate summary statistics for a run.

    Args:
        results: Settled probe results (reachable and unreachable)
        tested: Number of servers submitted for testing
        started_at: When the run started
        completed_at: When the run finished

    Returns:
        SpeedTestSummary with all metrics calculated
    """
    reachable = [r for r in results if r.is_reachable]

    if reachable:
        rtts = np.array([r.rtt for r in reachable])

        min_rtt = float(np.min(rtts))
        max_rtt = float(np.max(rtts))
        avg_rtt = float(np.mean(rtts))
        median_rtt = float(np.median(rtts))
        p95_rtt = float(np.percentile(rtts, 95))
    else:
        min_rtt = max_rtt = avg_rtt = median_rtt = p95_rtt = 0.0

    now = datetime.now()
    return SpeedTestSummary(
        tested=tested,
        settled=len(results),
        reachable=len(reachable),
        unreachable=len(results) - len(reachable),
        min_rtt=min_rtt,
        median_rtt=median_rtt,
        p95_rtt=p95_rtt,
        max_rtt=max_rtt,
        avg_rtt=avg_rtt,
        started_at=started_at or now,
        completed_at=completed_at or now,
    )
