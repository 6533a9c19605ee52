"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class ProgressUpdate:
    """批量压缩过程中的进度信息。"""

    total: int
    completed: int
    failed: int = 0
    message: Optional[str] = None
    status: str = "running"  # running | done

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self.completed / self.total
