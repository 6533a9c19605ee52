"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from image_compressor.core.config import CompressionOptions


@dataclass(slots=True, frozen=True)
class UploadedFile:
    """上传边界传入的单个文件。"""

    name: str
    media_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_image(self) -> bool:
        return self.media_type.lower().startswith("image/")


@dataclass(slots=True, frozen=True, eq=False)
class ResourceHandle:
    """内存中二进制数据的引用，需要显式释放。"""

    url: str
    media_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True, frozen=True)
class CompressionResult:
    """压缩引擎单次调用的产出。"""

    encoded_bytes: bytes
    output_handle: ResourceHandle
    original_size: int
    compressed_size: int
    compression_ratio: float
    width: int
    height: int
    format: str


@dataclass(slots=True)
class ImageItem:
    """一张上传图片及其当前的压缩状态。"""

    id: str
    name: str
    media_type: str
    original_bytes: bytes
    original_handle: ResourceHandle
    original_size: int
    options: CompressionOptions
    created_at: float
    compressed_handle: Optional[ResourceHandle] = None
    compressed_size: Optional[int] = None
    compression_ratio: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None

    def apply_result(self, result: CompressionResult, options: CompressionOptions) -> Optional[ResourceHandle]:
        """写入新的压缩结果，返回被替换下来的旧句柄（由调用者释放）。"""

        previous = self.compressed_handle
        self.compressed_handle = result.output_handle
        self.compressed_size = result.compressed_size
        self.compression_ratio = result.compression_ratio
        self.width = result.width
        self.height = result.height
        self.options = options
        return previous


@dataclass(slots=True)
class ItemFailure:
    """记录单个文件的失败信息（用于通知/报告）。"""

    name: str
    stage: str
    message: str
    item_id: Optional[str] = None


@dataclass(slots=True)
class BatchResult:
    """批量操作的产出。"""

    succeeded: list[ImageItem]
    failed: list[ItemFailure]

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


@dataclass(slots=True, frozen=True)
class Notice:
    """面向展示层的用户可见提示。"""

    level: str  # success | error | info
    title: str
    description: Optional[str] = None
