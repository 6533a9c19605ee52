"""命令行入口。"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from image_compressor.core.config import SUPPORTED_FORMATS, OutputConfig, SessionConfig, normalize_format
from image_compressor.core.exceptions import DecodeError, InvalidConfigurationError
from image_compressor.core.models import BatchResult, ImageItem, Notice
from image_compressor.core.output_manager import ExportResult, OutputManager
from image_compressor.core.progress import ProgressUpdate
from image_compressor.core.report import write_csv_report
from image_compressor.core.uploads import collect_uploads, load_upload
from image_compressor.processing.engine import compute_target_size
from image_compressor.processing.image_loader import decode_image
from image_compressor.session.events import NOTICE
from image_compressor.session.manager import Session
from image_compressor.utils.formatting import format_file_size, format_ratio
from image_compressor.utils.logging import setup_logging

app = typer.Typer(help="本地图片压缩与格式转换工具。")
console = Console()


def _parse_format(value: str) -> str:
    try:
        return normalize_format(value)
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(f"格式必须为 {', '.join(SUPPORTED_FORMATS)} 之一") from exc


def _parse_quality(value: float) -> float:
    if not 0 < value <= 1:
        raise typer.BadParameter("质量必须位于 (0, 1] 区间")
    return value


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("压缩图片", total=update.total)
        description = "压缩图片" if not update.failed else f"压缩图片（失败 {update.failed}）"
        progress.update(task_id, completed=update.completed, description=description)
        if update.message:
            progress.log(update.message)

    return callback


def _print_notice(notice: Notice) -> None:
    style = {"success": "green", "error": "red"}.get(notice.level, "blue")
    text = f"[{style}]{notice.title}[/{style}]"
    if notice.description:
        text += f" {notice.description}"
    console.print(text)


def _summary_table(items: List[ImageItem]) -> Table:
    table = Table(title="压缩结果")
    table.add_column("文件")
    table.add_column("尺寸", justify="right")
    table.add_column("原始大小", justify="right")
    table.add_column("压缩后", justify="right")
    table.add_column("压缩率", justify="right")
    for item in items:
        table.add_row(
            item.name,
            f"{item.width}x{item.height}",
            format_file_size(item.original_size),
            format_file_size(item.compressed_size or 0),
            format_ratio(item.compression_ratio or 0.0),
        )
    return table


async def _run_session(
    session: Session,
    sources: List[Path],
    output: OutputManager,
    recursive: bool,
    progress: Progress,
) -> tuple[BatchResult, ExportResult, List[ImageItem]]:
    async with session:
        uploads = collect_uploads(sources, recursive=recursive)
        result = await session.ingest(uploads, progress_callback=_build_progress_callback(progress))
        exported = await session.export(output)
        return result, exported, list(session.snapshot())


@app.command("run")
def run_cli(  # noqa: PLR0913
    source: List[Path] = typer.Argument(..., help="源图片文件或目录，可指定多个"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    quality: float = typer.Option(0.6, "--quality", "-q", callback=_parse_quality, help="压缩质量 (0, 1]"),
    fmt: str = typer.Option("jpeg", "--format", "-f", callback=_parse_format, help="输出格式 jpeg/png/webp"),
    max_width: int = typer.Option(2000, "--max-width", min=1, help="输出最大宽度"),
    max_height: int = typer.Option(2000, "--max-height", min=1, help="输出最大高度"),
    allow_recursive: bool = typer.Option(True, "--recursive/--no-recursive", help="是否递归扫描目录"),
    conflict_strategy: str = typer.Option("rename", "--on-conflict", help="文件名冲突策略"),
    write_report: bool = typer.Option(True, "--report/--no-report", help="是否写入 report.csv"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """批量压缩图片并保存到输出目录。"""

    setup_logging(verbose=verbose)
    logging.getLogger(__name__).debug("CLI 参数解析完成")

    sources = [p.expanduser().resolve() for p in source]
    output_dir = output.expanduser().resolve()

    try:
        output_manager = OutputManager(OutputConfig(output_dir=output_dir, conflict_strategy=conflict_strategy))
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc), param_hint="--on-conflict") from exc

    session = Session(
        SessionConfig(default_quality=quality, default_format=fmt, max_width=max_width, max_height=max_height)
    )
    session.events.subscribe(NOTICE, _print_notice)

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
    )

    with progress:
        result, exported, items = asyncio.run(
            _run_session(session, sources, output_manager, allow_recursive, progress)
        )

    if items:
        console.print(_summary_table(items))

    typer.echo(
        f"处理完成：成功 {len(result.succeeded)} 张，失败 {len(result.failed)} 张，"
        f"已保存 {sum(1 for saved in exported.saved if saved.action != 'skip')} 个文件。"
    )
    if write_report:
        report_path = write_csv_report(items, [*result.failed, *exported.failed], output_dir, "report.csv")
        typer.echo(f"报告文件：{report_path}")

    if result.failed:
        raise typer.Exit(code=1)


@app.command("info")
def info_cli(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="图片文件"),
    max_width: int = typer.Option(2000, "--max-width", min=1),
    max_height: int = typer.Option(2000, "--max-height", min=1),
) -> None:
    """显示图片尺寸及按限制缩放后的目标尺寸。"""

    upload = load_upload(path)
    try:
        image = decode_image(upload.content, upload.name)
    except DecodeError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    with image:
        target = compute_target_size(image.width, image.height, max_width, max_height)
        typer.echo(f"{upload.name}: {upload.media_type}, {format_file_size(upload.size)}")
        typer.echo(f"原始尺寸：{image.width}x{image.height}")
        typer.echo(f"目标尺寸：{target[0]}x{target[1]}")


if __name__ == "__main__":
    app()
