"""
UDP probe for DNS servers.

Sends a single A query to a server and times the first datagram
that comes back. Timeouts and socket errors are reported as an
unreachable result, never raised.

Any datagram on the probe's socket counts as the reply: the payload,
transaction id and source are not checked. Each probe owns its own
ephemeral socket so concurrent probes cannot answer each other, but a
stray packet to that port would still be accepted.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import dns.flags
import dns.message
import dns.rdataclass
import dns.rdatatype

from .models import UNREACHABLE, ProbeResult, TestOptions


logger = logging.getLogger(__name__)

# Transaction id shared by every probe
QUERY_ID = 1

# Anything that can probe one server, e.g. UDPProbe or a test double
ProbeFunc = Callable[[str], Awaitable[ProbeResult]]


def build_query(domain: str) -> bytes:
    """
    Build the wire form of the probe query.

    One question (A, IN), recursion desired, fixed id, no EDNS.
    """
    message = dns.message.make_query(
        domain,
        dns.rdatatype.A,
        dns.rdataclass.IN,
        use_edns=False,
    )
    message.id = QUERY_ID
    message.flags = dns.flags.RD
    return message.to_wire()


class _ReplyProtocol(asyncio.DatagramProtocol):
    """Resolves a future with the arrival time of the first datagram."""

    def __init__(self, reply: asyncio.Future):
        self.reply = reply

    def datagram_received(self, data: bytes, addr) -> None:
        if not self.reply.done():
            self.reply.set_result(time.perf_counter_ns())

    def error_received(self, exc: Exception) -> None:
        if not self.reply.done():
            self.reply.set_exception(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None and not self.reply.done():
            self.reply.set_exception(exc)


class UDPProbe:
    """
    Times one DNS query per call over a fresh UDP socket.

    Calling the probe never raises for network problems: a reply gives
    the elapsed milliseconds, anything else gives UNREACHABLE.
    """

    def __init__(self, options: Optional[TestOptions] = None):
        """
        Initialize the probe.

        Args:
            options: Run options (test domain, timeouts, port)
        """
        self.options = options or TestOptions()
        self._packet = build_query(self.options.test_domain)

    async def __call__(self, ip: str) -> ProbeResult:
        return await self.probe(ip)

    async def probe(self, ip: str) -> ProbeResult:
        """
        Probe a single server.

        Args:
            ip: IPv4 address of the server

        Returns:
            ProbeResult with the RTT in milliseconds or UNREACHABLE
        """
        loop = asyncio.get_running_loop()
        reply = loop.create_future()
        transport = None

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ReplyProtocol(reply),
                remote_addr=(ip, self.options.port),
            )

            start = time.perf_counter_ns()
            transport.sendto(self._packet)

            end = await asyncio.wait_for(
                reply,
                timeout=self.options.deadline_seconds,
            )
            return ProbeResult(ip=ip, rtt=(end - start) / 1_000_000)

        except asyncio.TimeoutError:
            return ProbeResult(ip=ip, rtt=UNREACHABLE)
        except OSError as e:
            logger.debug("Probe of %s failed: %s", ip, e)
            return ProbeResult(ip=ip, rtt=UNREACHABLE)
        finally:
            if transport is not None:
                transport.close()
