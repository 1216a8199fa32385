# tests/conftest.py
import asyncio

import pytest

from dns_speed.models import UNREACHABLE, ProbeResult


class FakeDNSServer(asyncio.DatagramProtocol):
    """
    Local UDP server standing in for a resolver.
    Replies to every datagram after `delay` seconds, or never if reply=False.
    """
    def __init__(self, delay=0.0, reply=True):
        self.delay = delay
        self.reply = reply
        self.received = []
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.received.append(data)
        if self.reply:
            loop = asyncio.get_running_loop()
            loop.call_later(self.delay, self.transport.sendto, b"\x00\x01\x81\x80", addr)


@pytest.fixture
async def udp_server():
    """Start FakeDNSServers on 127.0.0.1; yields start(delay, reply) -> (port, server)."""
    transports = []

    async def start(delay=0.0, reply=True):
        loop = asyncio.get_running_loop()
        transport, server = await loop.create_datagram_endpoint(
            lambda: FakeDNSServer(delay=delay, reply=reply),
            local_addr=("127.0.0.1", 0),
        )
        transports.append(transport)
        return transport.get_extra_info("sockname")[1], server

    yield start

    for transport in transports:
        transport.close()


class ScriptedProbe:
    """
    Simulated resolvers: ip -> latency in ms.
    None hangs until cancelled, UNREACHABLE settles at once as unreachable.
    """
    def __init__(self, latencies):
        self.latencies = latencies
        self.calls = []
        self.cancelled = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, ip):
        self.calls.append(ip)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            latency = self.latencies.get(ip, 1)
            if latency is None:
                await asyncio.sleep(3600)
            if latency == UNREACHABLE:
                return ProbeResult(ip=ip, rtt=UNREACHABLE)
            await asyncio.sleep(latency / 1000)
            return ProbeResult(ip=ip, rtt=latency)
        except asyncio.CancelledError:
            self.cancelled.append(ip)
            raise
        finally:
            self.in_flight -= 1


@pytest.fixture
def scripted_probe():
    return ScriptedProbe


@pytest.fixture
def make_ips():
    def make(count):
        return [f"10.0.{i // 256}.{i % 256}" for i in range(count)]
    return make
