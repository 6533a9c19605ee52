"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from image_compressor.core.models import ImageItem, ItemFailure

HEADER = ["name", "status", "format", "width", "height", "original_size", "compressed_size", "compression_ratio", "message"]


def write_csv_report(
    items: Iterable[ImageItem],
    failures: Iterable[ItemFailure],
    output_dir: Path,
    filename: str,
) -> Path:
    """将压缩结果与失败记录写入 CSV 报告。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for item in items:
            writer.writerow(
                [
                    item.name,
                    "compressed",
                    item.options.format,
                    item.width,
                    item.height,
                    item.original_size,
                    _format_optional(item.compressed_size),
                    _format_ratio(item.compression_ratio),
                    "",
                ]
            )
        for failure in failures:
            writer.writerow([failure.name, failure.stage, "", "", "", "", "", "", failure.message])
    return report_path


def _format_optional(value: int | None) -> str:
    if value is None:
        return ""
    return str(value)


def _format_ratio(value: float | None) -> str:
    if value is None:
        return ""
    return f"{value:.2f}"
