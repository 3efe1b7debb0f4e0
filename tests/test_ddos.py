import asyncio
import ipaddress
import threading
from unittest import mock

import pytest

from woofwaf.ddos import ZSCORE_WINDOW_SIZE, DDOSChecker, time_to_date
from woofwaf.honeypot import BLOCKED_IP, IPData
from woofwaf.security import Error, HttpRequest

CLIENT = ipaddress.ip_address("192.0.2.7")
PREFIX = "Too many request initiated. IP blocked until: "


class FakeQuery:
    def __init__(self):
        self.tracker = {}
        self.lock = threading.Lock()
        self.requested = []

    def update_tracker_info(self, ip):
        self.requested.append(ip)


def _checker(connections=100, limit=100, block=60, interval=10):
    query = FakeQuery()
    return DDOSChecker(connections, limit, block, interval, query), query


def test_time_to_date_epoch():
    assert time_to_date(0) == "Thu Jan  1 00:00:00 1970\n"


def test_time_to_date_out_of_range():
    assert time_to_date(10**20) == "Error formatting time"


def test_unknown_ip_is_looked_up_and_allowed():
    checker, query = _checker()
    result = checker.check(HttpRequest(), CLIENT)
    assert result.allowed is True
    assert query.requested == [CLIENT]


def test_request_limit_blocks():
    checker, query = _checker(limit=3)
    query.tracker[CLIENT] = IPData()
    results = [checker.check(HttpRequest(), CLIENT) for _ in range(3)]
    assert [r.allowed for r in results] == [True, True, False]
    assert results[2].error is Error.DDOS
    assert results[2].message.startswith(PREFIX)
    assert checker.check(HttpRequest(), CLIENT).allowed is False


def test_connection_limit_blocks():
    checker, query = _checker(connections=2)
    query.tracker[CLIENT] = IPData()
    result = checker.check(HttpRequest(), CLIENT)
    assert result.allowed is False
    assert result.error is Error.DDOS


def test_honeypot_blocked_ip():
    checker, query = _checker()
    query.tracker[CLIENT] = IPData(blocked_until=BLOCKED_IP)
    result = checker.check(HttpRequest(), CLIENT)
    assert result.allowed is False
    assert result.message == PREFIX + time_to_date(BLOCKED_IP)


def test_old_timestamps_expire():
    checker, query = _checker(limit=2, interval=10)
    query.tracker[CLIENT] = IPData()
    with mock.patch("woofwaf.ddos.time.time", return_value=1000.0):
        first = checker.check(HttpRequest(), CLIENT)
    with mock.patch("woofwaf.ddos.time.time", return_value=1020.0):
        second = checker.check(HttpRequest(), CLIENT)
    assert first.allowed is True
    assert second.allowed is True
    assert list(query.tracker[CLIENT].timestamps) == [1020.0]


def test_block_expires():
    checker, query = _checker(limit=1, block=30)
    query.tracker[CLIENT] = IPData()
    with mock.patch("woofwaf.ddos.time.time", return_value=1000.0):
        assert checker.check(HttpRequest(), CLIENT).allowed is False
    assert query.tracker[CLIENT].blocked_until == 1030.0


def test_remove_expired_connection():
    checker, query = _checker()
    query.tracker[CLIENT] = IPData()
    checker.check(HttpRequest(), CLIENT)
    before = query.tracker[CLIENT].current_connections
    checker.remove_expired_connection(CLIENT)
    assert query.tracker[CLIENT].current_connections == before - 1


def test_remove_unknown_connection_leaves_tracker_empty():
    checker, query = _checker()
    checker.remove_expired_connection(CLIENT)
    assert query.tracker == {}


def test_zscore_needs_two_samples():
    checker, _ = _checker()
    assert checker.calc_zscore() == 0.0
    checker.update_total_traffic()
    assert checker.calc_zscore() == 0.0


def test_steady_traffic_keeps_limit():
    checker, query = _checker(limit=40)
    query.tracker[CLIENT] = IPData()
    for _ in range(5):
        checker.check(HttpRequest(), ipaddress.ip_address("198.51.100.1"))
        checker.update_total_traffic()
    assert checker.samples == (1, 1, 1, 1, 1)
    assert checker.current_request_limit == 40


def test_spike_tightens_limit():
    checker, _ = _checker(limit=100)
    other = ipaddress.ip_address("198.51.100.2")
    for _ in range(10):
        checker.check(HttpRequest(), other)
        checker.update_total_traffic()
    for _ in range(50):
        checker.check(HttpRequest(), other)
    checker.update_total_traffic()
    assert checker.calc_zscore() > 0
    assert 50 <= checker.current_request_limit < 100


def test_drop_relaxes_limit():
    checker, _ = _checker(limit=100)
    other = ipaddress.ip_address("198.51.100.3")
    for _ in range(10):
        for _ in range(20):
            checker.check(HttpRequest(), other)
        checker.update_total_traffic()
    checker.update_total_traffic()
    assert checker.calc_zscore() < 0
    assert 100 < checker.current_request_limit <= 150


def test_window_is_bounded():
    checker, _ = _checker()
    for _ in range(ZSCORE_WINDOW_SIZE + 50):
        checker.update_total_traffic()
    assert len(checker.samples) == ZSCORE_WINDOW_SIZE - 1


@pytest.mark.asyncio
async def test_run_records_periods():
    checker, _ = _checker(interval=0.01)
    task = asyncio.create_task(checker.run())
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(checker.samples) >= 1
    assert set(checker.samples) == {0}