"""
Data models for DNS Speed.

Defines structured types for probe results, run options,
directory configuration and speed test reports.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import dns.exception
import dns.name


# Sentinel RTT for probes that timed out or hit a socket error
UNREACHABLE = math.inf

DEFAULT_TEST_DOMAIN = "google.com"
DEFAULT_TIMEOUT_MS = 500
DEFAULT_GRACE_MS = 100  # Teardown grace on top of the reply timeout
DEFAULT_BATCH_SIZE = 100
DNS_PORT = 53

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "dns-speed"
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60


@dataclass
class ResolverProfile:
    """A well-known public DNS resolver."""
    name: str
    ipv4: str
    provider: str
    description: Optional[str] = None


@dataclass
class ProbeResult:
    """Result of probing a single DNS server."""
    ip: str
    rtt: float  # Milliseconds, or UNREACHABLE

    @property
    def is_reachable(self) -> bool:
        """Check if the server replied before the deadline."""
        return self.rtt != UNREACHABLE

    def to_dict(self) -> dict:
        return {"ip": self.ip, "rtt": self.rtt}


@dataclass(frozen=True)
class TestOptions:
    """Immutable configuration for one speed test run."""
    test_domain: str = DEFAULT_TEST_DOMAIN
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    grace_ms: int = DEFAULT_GRACE_MS
    batch_size: int = DEFAULT_BATCH_SIZE
    port: int = DNS_PORT

    # Not a test class, keep pytest from collecting it
    __test__ = False

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.grace_ms < 0:
            raise ValueError(f"grace_ms must not be negative, got {self.grace_ms}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if not self.test_domain:
            raise ValueError("test_domain must not be empty")
        try:
            dns.name.from_text(self.test_domain)
        except dns.exception.DNSException as e:
            raise ValueError(f"Invalid test domain {self.test_domain!r}: {e}") from e

    @property
    def deadline_ms(self) -> int:
        """Hard bound for a probe, also used as the per-batch deadline."""
        return self.timeout_ms + self.grace_ms

    @property
    def deadline_seconds(self) -> float:
        return self.deadline_ms / 1000


@dataclass(frozen=True)
class DirectoryConfig:
    """Configuration handed to the directory service at construction."""
    proxy: Optional[str] = None
    cache_dir: Path = DEFAULT_CACHE_DIR
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    retries: int = 3
    retry_delay: float = 1.0  # Seconds, multiplied by the attempt number
    request_timeout: float = 30.0
    verify_tls: bool = False  # Public directories are fetched without cert checks


@dataclass
class SpeedTestSummary:
    """Aggregated statistics for a speed test run."""
    tested: int
    settled: int
    reachable: int
    unreachable: int

    # Latency stats over reachable servers (in milliseconds)
    min_rtt: float
    median_rtt: float
    p95_rtt: float
    max_rtt: float
    avg_rtt: float

    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime = field(default_factory=datetime.now)

    @property
    def dropped(self) -> int:
        """Probes abandoned by a batch deadline (neither replied nor timed out)."""
        return self.tested - self.settled

    @property
    def duration_seconds(self) -> float:
        """Total run duration in seconds."""
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def reachable_rate(self) -> float:
        """Percentage of tested servers that replied."""
        if self.tested == 0:
            return 0.0
        return (self.reachable / self.tested) * 100


@dataclass
class SpeedTestReport:
    """Ranked results plus run summary."""
    ranked: list[ProbeResult]
    summary: SpeedTestSummary

    def top(self, count: int) -> list[ProbeResult]:
        """The `count` fastest servers."""
        return self.ranked[:max(count, 0)]

    @property
    def fastest(self) -> Optional[ProbeResult]:
        return self.ranked[0] if self.ranked else None
