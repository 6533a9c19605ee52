"""自动过期的调度逻辑。

``ExpiryPolicy`` 只记录 ``id -> deadline``；``ExpiryScheduler`` 把它绑定到计时器，
计时器触发时只回调 ``on_expire``，通知由会话层负责。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

from image_compressor.core.config import RETENTION_SECONDS

LOGGER = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def asyncio_timers(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """默认计时器：使用当前运行中的事件循环。"""

    return asyncio.get_running_loop().call_later(delay, callback)


class ExpiryPolicy:
    """纯粹的过期时间登记表。"""

    def __init__(self, retention: float = RETENTION_SECONDS) -> None:
        self.retention = retention
        self._deadlines: dict[str, float] = {}

    def register(self, item_id: str, created_at: float) -> float:
        deadline = created_at + self.retention
        self._deadlines[item_id] = deadline
        return deadline

    def discard(self, item_id: str) -> bool:
        return self._deadlines.pop(item_id, None) is not None


class ExpiryScheduler:
    """为每个条目安排一次性的自动移除计时器。"""

    def __init__(
        self,
        on_expire: Callable[[str], None],
        timers: Optional[TimerFactory] = None,
    ) -> None:
        self.policy = ExpiryPolicy()
        self._on_expire = on_expire
        self._timers = timers or asyncio_timers
        self._handles: dict[str, TimerHandle] = {}

    def schedule(self, item_id: str, created_at: float) -> None:
        self.cancel(item_id)
        self.policy.register(item_id, created_at)
        self._handles[item_id] = self._timers(self.policy.retention, lambda: self._fire(item_id))

    def cancel(self, item_id: str) -> bool:
        """取消尚未触发的计时器；已触发或不存在时返回 False。"""

        handle = self._handles.pop(item_id, None)
        self.policy.discard(item_id)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        ids = list(self._handles)
        for item_id in ids:
            self.cancel(item_id)
        return len(ids)

    def pending(self) -> list[str]:
        return list(self._handles)

    def _fire(self, item_id: str) -> None:
        if self._handles.pop(item_id, None) is None:
            return
        self.policy.discard(item_id)
        LOGGER.debug("条目 %s 保留期已到", item_id)
        self._on_expire(item_id)
