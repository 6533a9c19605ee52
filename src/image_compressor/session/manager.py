"""会话/生命周期管理：持有上传条目、资源句柄与自动过期策略。

条目集合只经由 ``ingest`` / ``recompress`` / ``remove`` / ``reset`` 修改；
展示层通过 ``snapshot()`` 读取副本并订阅 ``events``。
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from typing import Callable, Iterable, Optional

from image_compressor.core.config import CompressionOptions, SessionConfig, normalize_format
from image_compressor.core.exceptions import CompressionError, ContextError, DecodeError, ImageWriteError
from image_compressor.core.models import BatchResult, ImageItem, ItemFailure, Notice, UploadedFile
from image_compressor.core.output_manager import (
    ExportResult,
    OutputManager,
    SavedFile,
    compressed_filename,
    download_filename,
)
from image_compressor.core.progress import ProgressUpdate
from image_compressor.core.resources import ResourceRegistry
from image_compressor.core.uploads import filter_image_files
from image_compressor.processing.engine import compress
from image_compressor.session.events import ITEM_EXPIRED, NOTICE, EventHub
from image_compressor.session.expiry import ExpiryScheduler, TimerFactory
from image_compressor.utils.formatting import format_ratio

LOGGER = logging.getLogger(__name__)

ProgressCallback = Optional[Callable[[ProgressUpdate], None]]


class Session:
    """一次浏览会话内的图片集合。"""

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        *,
        registry: Optional[ResourceRegistry] = None,
        timers: Optional[TimerFactory] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or SessionConfig()
        # 提前校验默认值
        self.config.options()
        self.registry = registry or ResourceRegistry()
        self.events = EventHub()
        self._clock = clock
        self._items: dict[str, ImageItem] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._expiry = ExpiryScheduler(self._handle_expired, timers)

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def quality(self) -> float:
        return self.config.default_quality

    @property
    def format(self) -> str:
        return normalize_format(self.config.default_format)

    def get(self, item_id: str) -> Optional[ImageItem]:
        item = self._items.get(item_id)
        return replace(item) if item is not None else None

    def snapshot(self) -> tuple[ImageItem, ...]:
        """按插入顺序返回条目副本。"""

        return tuple(replace(item) for item in self._items.values())

    def pending_expiry(self) -> list[str]:
        return self._expiry.pending()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    async def ingest(
        self,
        files: Iterable[UploadedFile],
        options: Optional[CompressionOptions] = None,
        progress_callback: ProgressCallback = None,
    ) -> BatchResult:
        """逐个压缩上传的图片；单个失败不会中断其余文件。"""

        options = options or self.config.options()
        uploads = filter_image_files(files)
        total = len(uploads)
        succeeded: list[ImageItem] = []
        failed: list[ItemFailure] = []

        _emit_progress(progress_callback, 0, total, "开始压缩")

        for completed, upload in enumerate(uploads, start=1):
            outcome = await self._ingest_one(upload, options)
            if isinstance(outcome, ItemFailure):
                failed.append(outcome)
            else:
                succeeded.append(replace(outcome))
            _emit_progress(progress_callback, completed, total, f"完成 {upload.name}", failed=len(failed))

        if succeeded:
            self._notify("success", _summary_title(len(succeeded)), _ratio_description(succeeded))
        LOGGER.info("上传处理完成：成功 %d 张，失败 %d 张", len(succeeded), len(failed))
        return BatchResult(succeeded=succeeded, failed=failed)

    async def recompress(self, item_id: str, options: Optional[CompressionOptions] = None) -> Optional[ImageItem]:
        """以新选项重新压缩单个条目。

        未知 id 返回 None；压缩失败时保留原有压缩结果，发出提示并重新抛出异常。
        """

        options = options or self.config.options()
        try:
            return await self._recompress_serialized(item_id, options)
        except CompressionError as exc:
            self._report_recompress_failure(item_id, exc)
            raise

    async def recompress_all(self, options: Optional[CompressionOptions] = None) -> BatchResult:
        """逐个重新压缩所有条目，失败的条目保持原状。"""

        options = options or self.config.options()
        succeeded: list[ImageItem] = []
        failed: list[ItemFailure] = []

        for item_id in list(self._items):
            try:
                updated = await self._recompress_serialized(item_id, options)
            except CompressionError as exc:
                failed.append(self._report_recompress_failure(item_id, exc))
                continue
            if updated is not None:
                succeeded.append(updated)

        return BatchResult(succeeded=succeeded, failed=failed)

    async def set_quality(self, quality: float) -> BatchResult:
        """更新默认质量并对全部条目生效。"""

        self.config.set_quality(quality)
        result = await self.recompress_all()
        if result.succeeded:
            self._notify("success", f"质量已调整为 {round(quality * 100)}%")
        return result

    async def set_format(self, fmt: str) -> BatchResult:
        """更新默认格式并对全部条目生效。"""

        fmt = normalize_format(fmt)
        self.config.default_format = fmt
        result = await self.recompress_all()
        if result.succeeded:
            self._notify("success", f"已转换为 {fmt.upper()}")
        return result

    async def export(self, output: OutputManager, fmt: Optional[str] = None) -> ExportResult:
        """（可选地转换格式后）将每个条目当前的压缩结果保存到输出目录。"""

        failed: list[ItemFailure] = []
        if fmt is not None:
            options = self.config.options(fmt)
            failed.extend((await self.recompress_all(options)).failed)

        saved = []
        for item in list(self._items.values()):
            handle = item.compressed_handle
            if handle is None:
                continue
            filename = download_filename(item.name, item.options.format)
            try:
                saved.append(output.save(handle, filename))
            except ImageWriteError as exc:
                LOGGER.error("保存 %s 失败：%s", item.name, exc)
                failed.append(ItemFailure(name=item.name, stage="error-write", message=str(exc), item_id=item.id))
                self._notify("error", "下载失败", f"{item.name}: {exc}")

        if saved:
            self._notify("success", "开始下载", f"共 {len(saved)} 张图片")
        return ExportResult(saved=saved, failed=failed)

    def download(self, item_id: str, output: OutputManager) -> Optional[SavedFile]:
        """保存单个条目当前的压缩结果，文件名追加 _compressed；未知 id 返回 None。"""

        item = self._items.get(item_id)
        if item is None or item.compressed_handle is None:
            return None

        filename = compressed_filename(item.name, item.options.format)
        try:
            saved = output.save(item.compressed_handle, filename)
        except ImageWriteError as exc:
            LOGGER.error("保存 %s 失败：%s", item.name, exc)
            self._notify("error", "下载失败", f"{item.name}: {exc}")
            raise
        self._notify("success", "开始下载", saved.path.name)
        return saved

    def remove(self, item_id: str) -> bool:
        """移除条目并释放其全部句柄；重复移除为空操作。"""

        item = self._items.pop(item_id, None)
        if item is None:
            return False
        self._expiry.cancel(item_id)
        self._locks.pop(item_id, None)
        self._release_item(item)
        LOGGER.debug("已移除条目 %s (%s)", item_id, item.name)
        return True

    def reset(self) -> int:
        """移除全部条目并取消所有计时器，返回移除数量。"""

        removed = sum(1 for item_id in list(self._items) if self.remove(item_id))
        self._expiry.cancel_all()
        return removed

    def close(self) -> None:
        self.reset()

    async def _ingest_one(self, upload: UploadedFile, options: CompressionOptions) -> ImageItem | ItemFailure:
        original_handle = self.registry.create(upload.content, upload.media_type)
        try:
            result = await compress(
                upload.content,
                options,
                self.registry,
                original_size=upload.size,
                name=upload.name,
            )
        except CompressionError as exc:
            self.registry.release(original_handle)
            LOGGER.warning("处理 %s 失败：%s", upload.name, exc)
            self._notify("error", "图片处理失败", f"{upload.name}: {exc}")
            return ItemFailure(name=upload.name, stage=_failure_stage(exc), message=str(exc))

        item = ImageItem(
            id=uuid.uuid4().hex,
            name=upload.name,
            media_type=upload.media_type,
            original_bytes=upload.content,
            original_handle=original_handle,
            original_size=upload.size,
            options=options,
            created_at=self._clock(),
        )
        item.apply_result(result, options)
        self._items[item.id] = item
        self._expiry.schedule(item.id, item.created_at)
        return item

    async def _recompress_serialized(self, item_id: str, options: CompressionOptions) -> Optional[ImageItem]:
        if item_id not in self._items:
            return None

        lock = self._locks.setdefault(item_id, asyncio.Lock())
        async with lock:
            item = self._items.get(item_id)
            if item is None:
                return None

            result = await compress(
                item.original_bytes,
                options,
                self.registry,
                original_size=item.original_size,
                name=item.name,
            )

            if self._items.get(item_id) is not item:
                # 编码期间条目已被移除
                self.registry.release(result.output_handle)
                return None

            previous = item.apply_result(result, options)
            if previous is not None:
                self.registry.release(previous)
            return replace(item)

    def _report_recompress_failure(self, item_id: str, exc: CompressionError) -> ItemFailure:
        item = self._items.get(item_id)
        name = item.name if item is not None else item_id
        LOGGER.warning("重新压缩 %s 失败：%s", name, exc)
        self._notify("error", "更新压缩失败", f"{name}: {exc}")
        return ItemFailure(name=name, stage=_failure_stage(exc), message=str(exc), item_id=item_id)

    def _handle_expired(self, item_id: str) -> None:
        if not self.remove(item_id):
            return
        LOGGER.info("条目 %s 已超过保留期，自动移除", item_id)
        self.events.publish(ITEM_EXPIRED, item_id)

    def _release_item(self, item: ImageItem) -> None:
        self.registry.release(item.original_handle)
        if item.compressed_handle is not None:
            self.registry.release(item.compressed_handle)
            item.compressed_handle = None

    def _notify(self, level: str, title: str, description: Optional[str] = None) -> None:
        self.events.publish(NOTICE, Notice(level=level, title=title, description=description))


def _failure_stage(exc: CompressionError) -> str:
    if isinstance(exc, DecodeError):
        return "error-decode"
    if isinstance(exc, ContextError):
        return "error-context"
    return "error-encode"


def _summary_title(count: int) -> str:
    if count == 1:
        return "图片压缩成功"
    return f"{count} 张图片压缩成功"


def _ratio_description(items: list[ImageItem]) -> str:
    original = sum(item.original_size for item in items)
    compressed = sum(item.compressed_size or 0 for item in items)
    return f"体积减少 {format_ratio((1 - compressed / original) * 100)}"


def _emit_progress(
    callback: ProgressCallback,
    completed: int,
    total: int,
    message: Optional[str] = None,
    *,
    failed: int = 0,
) -> None:
    if not callback:
        return
    status = "done" if completed >= total else "running"
    callback(ProgressUpdate(total=total, completed=completed, failed=failed, message=message, status=status))
