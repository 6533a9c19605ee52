"""资源句柄登记表：替代浏览器中的 object URL。"""

from __future__ import annotations

import logging
import uuid

from image_compressor.core.exceptions import ResourceReleaseError
from image_compressor.core.models import ResourceHandle

LOGGER = logging.getLogger(__name__)

URL_PREFIX = "blob:image-compressor/"


class ResourceRegistry:
    """负责分配与释放资源句柄，每个句柄只能释放一次。"""

    def __init__(self) -> None:
        self._live: dict[str, ResourceHandle] = {}

    def create(self, data: bytes, media_type: str) -> ResourceHandle:
        handle = ResourceHandle(url=f"{URL_PREFIX}{uuid.uuid4()}", media_type=media_type, data=data)
        self._live[handle.url] = handle
        LOGGER.debug("分配资源句柄 %s (%d 字节)", handle.url, handle.size)
        return handle

    def release(self, handle: ResourceHandle) -> None:
        """释放句柄；重复释放或释放未知句柄视为程序错误。"""

        if self._live.pop(handle.url, None) is None:
            raise ResourceReleaseError(f"句柄未登记或已释放: {handle.url}")
        LOGGER.debug("释放资源句柄 %s", handle.url)

    def is_live(self, handle: ResourceHandle) -> bool:
        return handle.url in self._live

    def live_handles(self) -> list[ResourceHandle]:
        return list(self._live.values())

    def __len__(self) -> int:
        return len(self._live)
