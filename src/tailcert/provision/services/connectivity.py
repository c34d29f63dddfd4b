"""
连通性闸门：轮询 tailscale status，直到 Self.Online 为 true 或超时。

超时按每轮采样的已用时间判断，而非硬定时器；轮询间隔带来的累计漂移是可接受的。
"""

from __future__ import annotations

import time
from typing import Callable

from loguru import logger

from ...config import config
from ...host import tailscale
from ...host.schemas import TailscaleStatus
from ..errors import ConnectivityError


def _is_online(status_fn: Callable[[], TailscaleStatus]) -> bool:
    try:
        return status_fn().online
    except (RuntimeError, OSError) as e:
        logger.debug(f"查询 Tailscale 状态失败，按离线处理：{e}")
        return False


def wait_until_online(
    status_fn: Callable[[], TailscaleStatus] | None = None,
    timeout: float | None = None,
    interval: float | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    阻塞直到本节点上线。
    :return: 上线前经历的离线轮询次数。
    :raises ConnectivityError: 自进入循环起已用时间达到 timeout。
    """
    status_fn = status_fn or tailscale.status
    timeout = config.connect_timeout_seconds if timeout is None else timeout
    interval = config.connect_poll_interval_seconds if interval is None else interval

    start = clock()
    offline_polls = 0
    while True:
        if _is_online(status_fn):
            logger.info("Tailscale 已连接。")
            return offline_polls
        if clock() - start >= timeout:
            raise ConnectivityError("等待 Tailscale 连接超时，请检查 Tailscale 配置。")
        logger.info("正在等待 Tailscale 连接...")
        offline_polls += 1
        sleep(interval)
