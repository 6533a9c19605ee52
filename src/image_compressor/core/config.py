"""压缩选项与会话配置模型。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from image_compressor.core.exceptions import InvalidConfigurationError

SUPPORTED_FORMATS = ("jpeg", "png", "webp")

FORMAT_ALIASES = {
    "jpeg": "jpeg",
    "jpg": "jpeg",
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "png": "png",
    "image/png": "png",
    "webp": "webp",
    "image/webp": "webp",
}

# 自动移除的保留时长（秒），不通过任何配置项暴露。
RETENTION_SECONDS = 600

DEFAULT_MAX_DIMENSION = 2000


def normalize_format(value: str) -> str:
    """将格式名或 MIME 类型统一为 jpeg/png/webp。"""

    key = (value or "").strip().lower()
    try:
        return FORMAT_ALIASES[key]
    except KeyError:
        raise InvalidConfigurationError(f"不支持的输出格式: {value}") from None


@dataclass(slots=True, frozen=True)
class CompressionOptions:
    """单次压缩调用的参数。

    quality 取值 (0, 1]，仅对有损格式生效；png 始终无损编码。
    max_width / max_height 分别限制两个轴向的最大尺寸。
    """

    quality: float
    format: str
    max_width: int = DEFAULT_MAX_DIMENSION
    max_height: int = DEFAULT_MAX_DIMENSION

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", normalize_format(self.format))
        if not 0 < self.quality <= 1:
            raise InvalidConfigurationError(f"quality 必须位于 (0, 1] 区间: {self.quality}")
        if self.max_width <= 0 or self.max_height <= 0:
            raise InvalidConfigurationError("max_width / max_height 必须大于 0")

    @property
    def is_lossless(self) -> bool:
        return self.format == "png"

    @property
    def effective_quality(self) -> float:
        """编码器实际使用的质量值。"""

        return 1.0 if self.is_lossless else self.quality


@dataclass(slots=True)
class SessionConfig:
    """会话级默认值，应用于新上传与批量重压缩。"""

    default_quality: float = 0.6
    default_format: str = "jpeg"
    max_width: int = DEFAULT_MAX_DIMENSION
    max_height: int = DEFAULT_MAX_DIMENSION

    def options(self, fmt: Optional[str] = None) -> CompressionOptions:
        """根据当前默认值构建压缩选项；fmt 覆盖默认格式，png 固定使用质量 1。"""

        fmt = normalize_format(fmt or self.default_format)
        quality = 1.0 if fmt == "png" else self.default_quality
        return CompressionOptions(
            quality=quality,
            format=fmt,
            max_width=self.max_width,
            max_height=self.max_height,
        )

    def set_quality(self, quality: float) -> None:
        if not 0 < quality <= 1:
            raise InvalidConfigurationError(f"quality 必须位于 (0, 1] 区间: {quality}")
        self.default_quality = quality


@dataclass(slots=True)
class OutputConfig:
    """下载输出目录与冲突策略配置。"""

    output_dir: Path
    conflict_strategy: str = "rename"  # overwrite | skip | rename
