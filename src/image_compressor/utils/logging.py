"""日志配置。"""

from __future__ import annotations

import logging

# Pillow 插件在 DEBUG 级别输出大量解码细节
NOISY_LOGGERS = ("PIL",)


def setup_logging(level: int = logging.INFO, *, verbose: bool = False) -> None:
    """初始化项目日志配置；verbose 时输出本项目的 DEBUG 日志。"""

    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
