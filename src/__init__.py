"""
DNS Speed - find the fastest DNS servers.

Measures the round-trip time of a single UDP query to each candidate
DNS server and ranks the servers that reply.
"""

__version__ = "1.0.0"
__author__ = "DNS Speed Team"

from .models import ProbeResult, SpeedTestReport, TestOptions, UNREACHABLE
from .probe import UDPProbe
from .runner import SpeedTestRunner, test_dns_speed
from .statistics import rank_results
from .validation import InvalidInputError, is_valid_ip

__all__ = [
    "__version__",
    "ProbeResult",
    "SpeedTestReport",
    "TestOptions",
    "UNREACHABLE",
    "UDPProbe",
    "SpeedTestRunner",
    "test_dns_speed",
    "rank_results",
    "InvalidInputError",
    "is_valid_ip",
]
