"""上传/下载边界、体积格式化与报告。"""

from __future__ import annotations

import csv
from pathlib import Path

import pytest
from PIL import Image

from image_compressor.core.config import CompressionOptions, OutputConfig, SessionConfig
from image_compressor.core.exceptions import InvalidConfigurationError, ResourceReleaseError, UnsupportedTypeError
from image_compressor.core.models import ImageItem, ItemFailure, UploadedFile
from image_compressor.core.output_manager import (
    OutputManager,
    compressed_filename,
    download_filename,
    file_extension_for,
)
from image_compressor.core.report import write_csv_report
from image_compressor.core.resources import ResourceRegistry
from image_compressor.core.uploads import collect_uploads, ensure_image, filter_image_files
from image_compressor.utils.formatting import format_file_size, format_ratio


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 Bytes"),
        (1, "1 Bytes"),
        (1023, "1023 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (1048576, "1 MB"),
        (1234567, "1.18 MB"),
        (1024**3, "1 GB"),
        (1024**4, "1024 GB"),
    ],
)
def test_format_file_size(size: int, expected: str) -> None:
    assert format_file_size(size) == expected


def test_format_file_size_rejects_negative() -> None:
    with pytest.raises(ValueError):
        format_file_size(-1)


def test_format_ratio() -> None:
    assert format_ratio(42.04) == "42.0%"
    assert format_ratio(-12.5) == "-12.5%"


@pytest.mark.parametrize(
    ("fmt", "ext"),
    [("jpeg", ".jpg"), ("png", ".png"), ("webp", ".webp"), ("gif", ".jpg"), ("", ".jpg")],
)
def test_file_extension_for(fmt: str, ext: str) -> None:
    assert file_extension_for(fmt) == ext


def test_download_filename_uses_name_before_first_dot() -> None:
    assert download_filename("beach.photo.png", "webp") == "beach.webp"
    assert download_filename("scan", "jpeg") == "scan.jpg"
    assert download_filename(".hidden", "png") == "image.png"


def test_filter_image_files_keeps_order() -> None:
    files = [
        UploadedFile("a.png", "image/png", b"1"),
        UploadedFile("b.txt", "text/plain", b"2"),
        UploadedFile("c.webp", "image/webp", b"3"),
    ]

    assert [f.name for f in filter_image_files(files)] == ["a.png", "c.webp"]
    with pytest.raises(UnsupportedTypeError):
        ensure_image(files[1])


def test_collect_uploads_scans_and_detects_media_type(tmp_path: Path) -> None:
    source = tmp_path / "input"
    nested = source / "nested"
    nested.mkdir(parents=True)
    Image.new("RGB", (10, 10), "blue").save(source / "b.png")
    Image.new("RGB", (10, 10), "red").save(nested / "a.jpg")
    (source / "notes.txt").write_text("hello")

    uploads = collect_uploads([source, source / "b.png"])

    assert [u.name for u in uploads] == ["b.png", "a.jpg"]
    assert [u.media_type for u in uploads] == ["image/png", "image/jpeg"]

    flat = collect_uploads([source], recursive=False)
    assert [u.name for u in flat] == ["b.png"]


def test_output_manager_conflict_strategies(tmp_path: Path) -> None:
    registry = ResourceRegistry()
    handle = registry.create(b"new-data", "image/jpeg")

    rename = OutputManager(OutputConfig(output_dir=tmp_path))
    first = rename.save(handle, "dup.jpg")
    second = rename.save(b"other", "dup.jpg")
    assert first.action == "write"
    assert second.action == "rename"
    assert second.path.name == "dup_1.jpg"
    assert first.path.read_bytes() == b"new-data"

    skip = OutputManager(OutputConfig(output_dir=tmp_path, conflict_strategy="skip"))
    skipped = skip.save(b"ignored", "dup.jpg")
    assert skipped.action == "skip"
    assert (tmp_path / "dup.jpg").read_bytes() == b"new-data"

    overwrite = OutputManager(OutputConfig(output_dir=tmp_path, conflict_strategy="overwrite"))
    assert overwrite.save(b"replaced", "dup.jpg").action == "overwrite"
    assert (tmp_path / "dup.jpg").read_bytes() == b"replaced"

    with pytest.raises(InvalidConfigurationError):
        OutputManager(OutputConfig(output_dir=tmp_path, conflict_strategy="merge"))


def test_registry_rejects_double_release() -> None:
    registry = ResourceRegistry()
    handle = registry.create(b"data", "image/png")

    registry.release(handle)
    assert not registry.is_live(handle)
    with pytest.raises(ResourceReleaseError):
        registry.release(handle)


def test_csv_report(tmp_path: Path) -> None:
    registry = ResourceRegistry()
    item = ImageItem(
        id="abc",
        name="cat.png",
        media_type="image/png",
        original_bytes=b"x" * 100,
        original_handle=registry.create(b"x" * 100, "image/png"),
        original_size=100,
        options=CompressionOptions(quality=0.6, format="jpeg"),
        created_at=0.0,
        compressed_handle=registry.create(b"y" * 40, "image/jpeg"),
        compressed_size=40,
        compression_ratio=60.0,
        width=10,
        height=5,
    )
    failure = ItemFailure(name="broken.png", stage="error-decode", message="无法加载图像")

    report = write_csv_report([item], [failure], tmp_path, "report.csv")

    with report.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert rows[0]["name"] == "cat.png"
    assert rows[0]["compression_ratio"] == "60.00"
    assert rows[0]["format"] == "jpeg"
    assert rows[1]["status"] == "error-decode"


def test_compressed_filename_strips_last_extension() -> None:
    assert compressed_filename("holiday.photo.png", "jpeg") == "holiday.photo_compressed.jpg"
    assert compressed_filename("scan", "webp") == "scan_compressed.webp"
    assert compressed_filename(".png", "png") == "image_compressed.png"


def test_session_config_options_for_format_override() -> None:
    config = SessionConfig(default_quality=0.4, default_format="png")

    assert config.options().quality == 1.0
    assert config.options("webp").quality == 0.4
    assert config.options("image/jpeg").format == "jpeg"

    with pytest.raises(InvalidConfigurationError):
        config.set_quality(0)
    config.set_quality(0.9)
    assert config.default_quality == 0.9
