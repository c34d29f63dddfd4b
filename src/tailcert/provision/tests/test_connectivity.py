"""
连通性闸门测试：使用假时钟，避免真实等待。
"""

import pytest

from src.tailcert.host.schemas import TailscaleStatus
from src.tailcert.provision.errors import ConnectivityError
from src.tailcert.provision.services.connectivity import wait_until_online


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class OnlineAfter:
    """前 k 次查询离线，之后在线。"""

    def __init__(self, k: int) -> None:
        self.k = k
        self.calls = 0

    def __call__(self) -> TailscaleStatus:
        self.calls += 1
        return TailscaleStatus(online=self.calls > self.k)


@pytest.mark.parametrize("k", [0, 1, 3, 10])
def test_returns_after_k_offline_polls(k):
    clock = FakeClock()
    source = OnlineAfter(k)
    polls = wait_until_online(source, timeout=300, interval=5, clock=clock, sleep=clock.sleep)
    assert polls == k
    assert source.calls == k + 1
    assert clock.sleeps == [5] * k


def test_times_out_when_never_online():
    clock = FakeClock()
    with pytest.raises(ConnectivityError):
        wait_until_online(lambda: TailscaleStatus(online=False), timeout=300, interval=5, clock=clock, sleep=clock.sleep)
    assert clock.now >= 300


def test_status_errors_count_as_offline():
    clock = FakeClock()
    answers = iter([RuntimeError("not running"), TailscaleStatus(online=True)])

    def status_fn():
        item = next(answers)
        if isinstance(item, Exception):
            raise item
        return item

    assert wait_until_online(status_fn, timeout=300, interval=5, clock=clock, sleep=clock.sleep) == 1


def test_uses_configured_defaults(monkeypatch):
    from src.tailcert.config import config

    monkeypatch.setattr(config, "connect_timeout_seconds", 12)
    monkeypatch.setattr(config, "connect_poll_interval_seconds", 4)
    clock = FakeClock()
    with pytest.raises(ConnectivityError):
        wait_until_online(lambda: TailscaleStatus(), clock=clock, sleep=clock.sleep)
    assert clock.sleeps == [4, 4, 4]
