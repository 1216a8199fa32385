# tests/test_runner.py
import asyncio

import pytest

from dns_speed.models import UNREACHABLE, ProbeResult, TestOptions
from dns_speed.probe import UDPProbe
from dns_speed.runner import SpeedTestRunner, split_into_batches
from dns_speed.runner import test_dns_speed as speed_test
from dns_speed.validation import InvalidInputError


FAST = TestOptions(timeout_ms=40, grace_ms=10)


class RecordingRunner(SpeedTestRunner):
    """Records each batch and how many probes were still running when it started."""
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.batch_sizes = []
        self.in_flight_at_start = []

    async def run_batch(self, batch, total):
        self.batch_sizes.append(len(batch))
        self.in_flight_at_start.append(self.probe.in_flight)
        return await super().run_batch(batch, total)


def test_split_into_batches():
    items = [str(i) for i in range(250)]
    batches = split_into_batches(items, 100)

    assert [len(b) for b in batches] == [100, 100, 50]
    assert [ip for b in batches for ip in b] == items


def test_split_into_batches_rejects_bad_size():
    with pytest.raises(ValueError):
        split_into_batches(["1.1.1.1"], 0)


async def test_empty_list_is_rejected(scripted_probe):
    probe = scripted_probe({})
    with pytest.raises(InvalidInputError):
        await speed_test([], probe=probe)
    assert probe.calls == []


async def test_invalid_ip_is_rejected_before_probing(scripted_probe):
    probe = scripted_probe({})
    with pytest.raises(InvalidInputError) as excinfo:
        await speed_test(["8.8.8.8", "not-an-ip"], probe=probe)

    assert "not-an-ip" in str(excinfo.value)
    assert excinfo.value.invalid == ["not-an-ip"]
    assert probe.calls == []


async def test_results_sorted_by_rtt(scripted_probe):
    probe = scripted_probe({"8.8.8.8": 50, "1.1.1.1": 10})

    results = await speed_test(["8.8.8.8", "1.1.1.1"], probe=probe)

    assert results == [
        ProbeResult(ip="1.1.1.1", rtt=10),
        ProbeResult(ip="8.8.8.8", rtt=50),
    ]
    assert [r.to_dict() for r in results] == [
        {"ip": "1.1.1.1", "rtt": 10},
        {"ip": "8.8.8.8", "rtt": 50},
    ]


async def test_unreachable_servers_are_left_out(scripted_probe):
    probe = scripted_probe({"1.1.1.1": 5, "9.9.9.9": UNREACHABLE})

    results = await speed_test(["9.9.9.9", "1.1.1.1"], probe=probe)

    assert [r.ip for r in results] == ["1.1.1.1"]


async def test_silent_server_is_absent(scripted_probe):
    probe = scripted_probe({"1.1.1.1": 5, "9.9.9.9": None})

    results = await speed_test(["9.9.9.9", "1.1.1.1"], options=FAST, probe=probe)

    assert [r.ip for r in results] == ["1.1.1.1"]
    assert "9.9.9.9" not in [r.ip for r in results]


async def test_deadline_drops_unsettled_probes(scripted_probe):
    probe = scripted_probe({"1.1.1.1": 5, "9.9.9.9": None, "8.8.8.8": UNREACHABLE})
    runner = SpeedTestRunner(options=FAST, probe=probe)

    results = await runner.run(["9.9.9.9", "1.1.1.1", "8.8.8.8"])

    # The hung probe is dropped, not recorded as unreachable
    assert results == [
        ProbeResult(ip="1.1.1.1", rtt=5),
        ProbeResult(ip="8.8.8.8", rtt=UNREACHABLE),
    ]
    assert probe.cancelled == ["9.9.9.9"]
    assert probe.in_flight == 0


async def test_batches_run_sequentially(scripted_probe, make_ips):
    servers = make_ips(250)
    probe = scripted_probe({ip: 1 for ip in servers})
    runner = RecordingRunner(options=TestOptions(batch_size=100), probe=probe)

    results = await runner.run(servers)

    assert runner.batch_sizes == [100, 100, 50]
    assert runner.in_flight_at_start == [0, 0, 0]
    assert probe.max_in_flight == 100
    assert [r.ip for r in results] == servers


async def test_each_batch_has_its_own_deadline(scripted_probe, make_ips):
    servers = make_ips(6)
    latencies = {ip: 1 for ip in servers}
    latencies[servers[0]] = None  # hangs in round 1
    latencies[servers[4]] = None  # hangs in round 3
    probe = scripted_probe(latencies)
    options = TestOptions(timeout_ms=40, grace_ms=10, batch_size=2)
    runner = RecordingRunner(options=options, probe=probe)

    loop = asyncio.get_running_loop()
    started = loop.time()
    results = await runner.run(servers)
    elapsed = loop.time() - started

    assert runner.batch_sizes == [2, 2, 2]
    assert runner.in_flight_at_start == [0, 0, 0]
    assert probe.cancelled == [servers[0], servers[4]]
    assert [r.ip for r in results] == [servers[1], servers[2], servers[3], servers[5]]
    # Two deadlines of 50ms plus one quick round
    assert elapsed < 1.0


async def test_progress_reported_per_settled_probe(scripted_probe):
    servers = ["1.1.1.1", "8.8.8.8", "9.9.9.9"]
    probe = scripted_probe({"1.1.1.1": 1, "8.8.8.8": UNREACHABLE, "9.9.9.9": None})
    events = []

    await speed_test(
        servers,
        options=FAST,
        probe=probe,
        progress_callback=lambda done, total, ip: events.append((done, total, ip)),
    )

    assert [done for done, _, _ in events] == [1, 2]
    assert all(total == 3 for _, total, _ in events)
    assert {ip for _, _, ip in events} == {"1.1.1.1", "8.8.8.8"}


async def test_progress_counter_spans_batches(scripted_probe, make_ips):
    servers = make_ips(5)
    probe = scripted_probe({})
    events = []
    runner = SpeedTestRunner(
        options=TestOptions(batch_size=2),
        probe=probe,
        progress_callback=lambda done, total, ip: events.append(done),
    )

    await runner.run(servers)

    assert events == [1, 2, 3, 4, 5]


async def test_failing_progress_callback_does_not_abort(scripted_probe):
    probe = scripted_probe({"1.1.1.1": 1})

    def broken(done, total, ip):
        raise RuntimeError("display went away")

    results = await speed_test(["1.1.1.1"], probe=probe, progress_callback=broken)

    assert [r.ip for r in results] == ["1.1.1.1"]


async def test_same_scenario_gives_same_order(scripted_probe):
    latencies = {"1.1.1.1": 30, "8.8.8.8": 10, "9.9.9.9": 20, "1.0.0.1": UNREACHABLE}
    servers = list(latencies)

    first = await speed_test(servers, probe=scripted_probe(latencies))
    second = await speed_test(servers, probe=scripted_probe(latencies))

    assert first == second
    assert [r.ip for r in first] == ["8.8.8.8", "9.9.9.9", "1.1.1.1"]


async def test_duplicates_are_probed_each_time(scripted_probe):
    probe = scripted_probe({"1.1.1.1": 1})

    results = await speed_test(["1.1.1.1", "1.1.1.1"], probe=probe)

    assert probe.calls == ["1.1.1.1", "1.1.1.1"]
    assert len(results) == 2


async def test_run_report_summary(scripted_probe):
    probe = scripted_probe({"1.1.1.1": 10, "8.8.8.8": UNREACHABLE, "9.9.9.9": None})
    runner = SpeedTestRunner(options=FAST, probe=probe)

    report = await runner.run_report(["1.1.1.1", "8.8.8.8", "9.9.9.9"])

    assert [r.ip for r in report.ranked] == ["1.1.1.1"]
    assert report.fastest == ProbeResult(ip="1.1.1.1", rtt=10)
    assert report.summary.tested == 3
    assert report.summary.settled == 2
    assert report.summary.reachable == 1
    assert report.summary.unreachable == 1
    assert report.summary.dropped == 1
    assert report.summary.completed_at >= report.summary.started_at


def test_test_domain_override_reaches_probe():
    runner = SpeedTestRunner(options=TestOptions(test_domain="example.org"))

    assert isinstance(runner.probe, UDPProbe)
    assert runner.probe.options.test_domain == "example.org"


async def test_test_domain_keyword_overrides_options(monkeypatch):
    seen = []

    class CapturingProbe:
        def __init__(self, options):
            seen.append(options.test_domain)

        async def __call__(self, ip):
            return ProbeResult(ip=ip, rtt=1)

    monkeypatch.setattr("dns_speed.runner.UDPProbe", CapturingProbe)

    await speed_test(["1.1.1.1"], TestOptions(test_domain="a.example"), test_domain="b.example")

    assert seen == ["b.example"]


def test_invalid_test_domain_is_rejected():
    with pytest.raises(ValueError, match="Invalid test domain"):
        TestOptions(test_domain="a" * 70 + ".com")


async def test_server_list_is_checked_before_test_domain(scripted_probe):
    probe = scripted_probe({})

    with pytest.raises(InvalidInputError):
        await speed_test([], test_domain="a" * 70 + ".com", probe=probe)

    with pytest.raises(ValueError, match="Invalid test domain"):
        await speed_test(["1.1.1.1"], test_domain="a" * 70 + ".com", probe=probe)

    assert probe.calls == []


async def test_run_report_validates_once(scripted_probe, monkeypatch):
    from dns_speed import runner as runner_module

    checked = []
    original = runner_module.validate_servers

    def counting_validate(servers):
        checked.append(list(servers))
        return original(servers)

    monkeypatch.setattr(runner_module, "validate_servers", counting_validate)
    runner = SpeedTestRunner(options=FAST, probe=scripted_probe({"1.1.1.1": 1}))

    report = await runner.run_report(["1.1.1.1"])

    assert checked == [["1.1.1.1"]]
    assert report.summary.tested == 1
