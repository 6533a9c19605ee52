"""展示用的格式化工具。"""

from __future__ import annotations

import math

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size: int) -> str:
    """以 1024 为底格式化字节数，保留两位小数并去掉多余的零。"""

    if size < 0:
        raise ValueError(f"字节数不能为负: {size}")
    if size == 0:
        return "0 Bytes"

    index = min(int(math.floor(math.log(size, 1024))), len(SIZE_UNITS) - 1)
    # log 的浮点误差可能让边界值落到上一个单位
    if index + 1 < len(SIZE_UNITS) and size >= 1024 ** (index + 1):
        index += 1
    elif index > 0 and size < 1024**index:
        index -= 1

    value = f"{size / 1024 ** index:.2f}".rstrip("0").rstrip(".")
    return f"{value} {SIZE_UNITS[index]}"


def format_ratio(ratio: float) -> str:
    """压缩率百分比，保留一位小数。"""

    return f"{ratio:.1f}%"
