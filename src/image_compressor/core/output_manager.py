"""下载边界：输出文件名、冲突处理与写入。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import count
from pathlib import Path
from typing import Union

from image_compressor.core.config import OutputConfig
from image_compressor.core.exceptions import ImageWriteError, InvalidConfigurationError
from image_compressor.core.models import ItemFailure, ResourceHandle

LOGGER = logging.getLogger(__name__)

FILE_EXTENSIONS = {
    "jpeg": ".jpg",
    "png": ".png",
    "webp": ".webp",
}

DEFAULT_EXTENSION = ".jpg"

CONFLICT_STRATEGIES = {"overwrite", "skip", "rename"}


def file_extension_for(fmt: str) -> str:
    """返回格式对应的扩展名，未知格式默认 .jpg。"""

    return FILE_EXTENSIONS.get((fmt or "").lower(), DEFAULT_EXTENSION)


def download_filename(original_name: str, fmt: str) -> str:
    """取原文件名第一个点之前的部分并拼接新扩展名。"""

    base = original_name.split(".")[0] or "image"
    return base + file_extension_for(fmt)


def compressed_filename(original_name: str, fmt: str) -> str:
    """单张下载：去掉最后一个扩展名后追加 _compressed。"""

    stem, dot, _ = original_name.rpartition(".")
    base = (stem if dot else original_name) or "image"
    return f"{base}_compressed{file_extension_for(fmt)}"


@dataclass(slots=True)
class SavedFile:
    """单个下载文件的写入结果。"""

    path: Path
    action: str  # write | overwrite | rename | skip


@dataclass(slots=True)
class ExportResult:
    saved: list[SavedFile]
    failed: list[ItemFailure]


class OutputManager:
    """负责处理输出目录、冲突策略与文件写入。"""

    def __init__(self, config: OutputConfig) -> None:
        if config.conflict_strategy not in CONFLICT_STRATEGIES:
            raise InvalidConfigurationError(f"未知的冲突策略: {config.conflict_strategy}")
        self.config = config
        self.output_dir = config.output_dir.resolve()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def save(self, data: Union[bytes, ResourceHandle], filename: str) -> SavedFile:
        """将字节或资源句柄内容写入输出目录。"""

        payload = data.data if isinstance(data, ResourceHandle) else data
        destination = self.output_dir / Path(filename).name

        action = "write"
        if destination.exists():
            strategy = self.config.conflict_strategy
            if strategy == "skip":
                LOGGER.info("跳过输出（已存在）：%s", destination)
                return SavedFile(path=destination, action="skip")
            if strategy == "rename":
                destination = self._generate_renamed_path(destination)
                action = "rename"
            else:
                action = "overwrite"

        try:
            destination.write_bytes(payload)
        except OSError as exc:
            raise ImageWriteError(f"写入文件失败: {destination}") from exc

        LOGGER.debug("已写入 %s (%s)", destination, action)
        return SavedFile(path=destination, action=action)

    def _generate_renamed_path(self, destination: Path) -> Path:
        """在 rename 策略下生成新的文件名。"""

        stem = destination.stem
        suffix = destination.suffix

        for idx in count(1):
            candidate = destination.with_name(f"{stem}_{idx}{suffix}")
            if not candidate.exists():
                return candidate

        # 理论上不会执行到此处
        return destination
