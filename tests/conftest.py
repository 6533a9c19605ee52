"""测试公共工具：内存图片生成与手动推进的计时器。"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Callable

import numpy as np
import pytest
from PIL import Image

from image_compressor.core.models import UploadedFile


def image_bytes(size: tuple[int, int] = (64, 48), color: str = "blue", fmt: str = "PNG", mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def noisy_jpeg_bytes(size: tuple[int, int] = (256, 256), seed: int = 7) -> bytes:
    rng = np.random.default_rng(seed)
    array = rng.integers(0, 256, size=(size[1], size[0], 3), dtype=np.uint8)
    buffer = io.BytesIO()
    Image.fromarray(array, "RGB").save(buffer, format="JPEG", quality=50)
    return buffer.getvalue()


def make_upload(name: str = "photo.png", content: bytes | None = None, media_type: str = "image/png") -> UploadedFile:
    return UploadedFile(name=name, media_type=media_type, content=content if content is not None else image_bytes())


@dataclass
class FakeTimer:
    deadline: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """替代事件循环计时器，通过 advance() 手动推进时间。"""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(deadline=self.now + delay, callback=callback)
        self.timers.append(timer)
        return timer

    def time(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in sorted(self.timers, key=lambda t: t.deadline):
            if timer.cancelled or timer.fired or timer.deadline > self.now:
                continue
            timer.fired = True
            timer.callback()

    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()
