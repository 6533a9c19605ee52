"""压缩引擎：解码、等比缩放、按目标格式重新编码。

引擎本身无状态，只在调用时向传入的 ``ResourceRegistry`` 申请一个输出句柄。
解码与编码两个步骤通过 ``asyncio.to_thread`` 执行，是仅有的挂起点。
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Optional

from PIL import Image

from image_compressor.core.config import CompressionOptions
from image_compressor.core.exceptions import ContextError, EncodeError
from image_compressor.core.models import CompressionResult
from image_compressor.core.resources import ResourceRegistry
from image_compressor.processing.image_loader import decode_image, flatten_alpha, normalize_mode

LOGGER = logging.getLogger(__name__)

PILLOW_FORMATS = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
}

MEDIA_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def pillow_format(fmt: str) -> str:
    return PILLOW_FORMATS[fmt]


def media_type_for(fmt: str) -> str:
    return MEDIA_TYPES[fmt]


def compression_ratio(original_size: int, compressed_size: int) -> float:
    """返回压缩率百分比；输出变大时为负值。"""

    return (1 - compressed_size / original_size) * 100


def compute_target_size(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """按先宽后高的顺序计算等比缩放后的尺寸，不放大。

    高度判断使用宽度缩放后的（未取整）高度。
    """

    target_w = float(width)
    target_h = float(height)

    if target_w > max_width:
        ratio = max_width / target_w
        target_w = float(max_width)
        target_h = target_h * ratio

    if target_h > max_height:
        ratio = max_height / target_h
        target_h = float(max_height)
        target_w = target_w * ratio

    return max(1, _round_half_up(target_w)), max(1, _round_half_up(target_h))


def quality_to_pillow(quality: float) -> int:
    """将 (0, 1] 的质量值映射为 Pillow 的 1~100。"""

    return max(1, min(100, _round_half_up(quality * 100)))


async def compress(
    content: bytes,
    options: CompressionOptions,
    registry: ResourceRegistry,
    *,
    original_size: Optional[int] = None,
    name: str = "<memory>",
) -> CompressionResult:
    """压缩单张图片，返回编码结果与统计数据。

    失败时抛出 ``DecodeError`` / ``EncodeError`` / ``ContextError``，
    不修改输入内容。返回的 ``output_handle`` 由调用者负责释放。
    """

    source_size = len(content) if original_size is None else original_size

    image = await asyncio.to_thread(decode_image, content, name)
    try:
        target_size = compute_target_size(image.width, image.height, options.max_width, options.max_height)
        resized = _resample(image, target_size)
    finally:
        image.close()

    try:
        encoded = await asyncio.to_thread(_encode, resized, options)
    finally:
        resized.close()

    handle = registry.create(encoded, media_type_for(options.format))
    compressed_size = len(encoded)
    result = CompressionResult(
        encoded_bytes=encoded,
        output_handle=handle,
        original_size=source_size,
        compressed_size=compressed_size,
        compression_ratio=compression_ratio(source_size, compressed_size),
        width=target_size[0],
        height=target_size[1],
        format=options.format,
    )
    LOGGER.debug(
        "压缩完成 %s: %dx%d %s %d -> %d 字节 (%.1f%%)",
        name,
        result.width,
        result.height,
        options.format,
        source_size,
        compressed_size,
        result.compression_ratio,
    )
    return result


def _resample(image: Image.Image, target_size: tuple[int, int]) -> Image.Image:
    """将栅格重采样到目标尺寸（LANCZOS）。"""

    try:
        if image.size == target_size:
            return image.copy()
        working = image
        if image.mode not in {"RGB", "RGBA", "L", "LA"}:
            working = normalize_mode(image)
        return working.resize(target_size, Image.LANCZOS)
    except (MemoryError, ValueError) as exc:
        raise ContextError(f"无法创建 {target_size[0]}x{target_size[1]} 的画布") from exc


def _encode(image: Image.Image, options: CompressionOptions) -> bytes:
    image_format = pillow_format(options.format)
    save_params: dict[str, object] = {}
    image_to_save = image

    if options.format == "jpeg":
        save_params.update(quality=quality_to_pillow(options.effective_quality), optimize=True)
        image_to_save = flatten_alpha(image)
    elif options.format == "webp":
        save_params.update(quality=quality_to_pillow(options.effective_quality), method=4)
        image_to_save = normalize_mode(image)
    else:
        # png 忽略 quality，始终无损
        save_params.update(optimize=True)
        image_to_save = normalize_mode(image)

    buffer = io.BytesIO()
    try:
        image_to_save.save(buffer, format=image_format, **save_params)
    except (OSError, KeyError, ValueError) as exc:
        raise EncodeError(f"编码为 {options.format} 失败: {exc}") from exc

    encoded = buffer.getvalue()
    if not encoded:
        raise EncodeError(f"编码器未产出 {options.format} 数据")
    return encoded


def _round_half_up(value: float) -> int:
    return int(value + 0.5)
