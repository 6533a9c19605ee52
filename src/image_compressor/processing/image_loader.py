"""图片解码与基础预处理实现。"""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from image_compressor.core.exceptions import DecodeError

LOGGER = logging.getLogger(__name__)


def decode_image(content: bytes, name: str = "<memory>") -> Image.Image:
    """将原始字节解码为像素栅格，并执行 EXIF 旋转校正。

    返回值为新的 Image 对象，调用者负责关闭。
    """

    if not content:
        raise DecodeError(f"空文件无法解码: {name}")

    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()

            # EXIF Orientation 校正
            transposed = ImageOps.exif_transpose(img)
            return transposed.copy()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError, SyntaxError) as exc:
        LOGGER.debug("无法识别图像数据 %s: %s", name, exc)
        raise DecodeError(f"无法加载图像: {name}") from exc


def flatten_alpha(img: Image.Image) -> Image.Image:
    """将任意模式图像转换为 RGB，透明区域以白色背景混合。"""

    if img.mode == "RGB":
        return img

    if img.mode in {"RGBA", "LA"} or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background

    # 其他模式（P/CMYK/L/I;16 等）直接转换
    return img.convert("RGB")


def normalize_mode(img: Image.Image) -> Image.Image:
    """保留 Alpha 通道，将其余模式统一到 RGB/RGBA。"""

    if img.mode in {"RGB", "RGBA"}:
        return img
    if img.mode in {"LA", "PA"} or (img.mode == "P" and "transparency" in img.info):
        return img.convert("RGBA")
    return img.convert("RGB")
