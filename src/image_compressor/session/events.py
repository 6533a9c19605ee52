"""会话事件分发：展示层通过订阅接收提示与过期通知。"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)

NOTICE = "notice"
ITEM_EXPIRED = "item_expired"

CHANNELS = frozenset({NOTICE, ITEM_EXPIRED})

Listener = Callable[[Any], None]


class EventHub:
    """按频道管理回调列表。"""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, channel: str, listener: Listener) -> Callable[[], None]:
        """注册回调，返回取消订阅的函数。"""

        if channel not in CHANNELS:
            raise ValueError(f"未知的事件频道: {channel}")
        self._listeners[channel].append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners[channel].remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, channel: str, payload: Any) -> None:
        for listener in list(self._listeners[channel]):
            try:
                listener(payload)
            except Exception:  # noqa: BLE001
                LOGGER.exception("事件回调执行异常 (%s)", channel)
