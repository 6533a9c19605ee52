"""上传边界：收集文件、识别媒体类型并筛选图片。"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from image_compressor.core.exceptions import UnsupportedTypeError
from image_compressor.core.models import UploadedFile

mimetypes.add_type("image/webp", ".webp")

DEFAULT_MEDIA_TYPE = "application/octet-stream"


def filter_image_files(files: Iterable[UploadedFile]) -> list[UploadedFile]:
    """静默丢弃媒体类型不是 image/ 开头的文件，保持原有顺序。"""

    return [upload for upload in files if upload.is_image]


def ensure_image(upload: UploadedFile) -> UploadedFile:
    if not upload.is_image:
        raise UnsupportedTypeError(f"不是图片文件: {upload.name} ({upload.media_type})")
    return upload


def guess_media_type(path: Path) -> str:
    media_type, _ = mimetypes.guess_type(path.name)
    return media_type or DEFAULT_MEDIA_TYPE


def load_upload(path: Path) -> UploadedFile:
    """读取磁盘文件为 UploadedFile。"""

    return UploadedFile(name=path.name, media_type=guess_media_type(path), content=path.read_bytes())


def _iter_candidate_files(path: Path, recursive: bool) -> Iterator[Path]:
    """遍历路径下的所有文件。"""

    if path.is_file():
        yield path
        return

    if not path.is_dir():
        return

    iterator = path.rglob("*") if recursive else path.glob("*")
    for candidate in sorted(iterator, key=lambda p: str(p).lower()):
        if candidate.is_file():
            yield candidate


def collect_uploads(paths: Sequence[Path], recursive: bool = True) -> list[UploadedFile]:
    """扫描输入路径，返回识别为图片的文件（按路径排序、去重）。"""

    collected: list[UploadedFile] = []
    seen_paths: set[Path] = set()

    for root in paths:
        for candidate in _iter_candidate_files(root.resolve(), recursive):
            if candidate in seen_paths:
                continue
            seen_paths.add(candidate)

            if not guess_media_type(candidate).startswith("image/"):
                continue
            collected.append(load_upload(candidate))

    return collected
