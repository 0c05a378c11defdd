import logging
import sys

import click


_LEVEL_COLORS = {
    logging.DEBUG: "bright_black",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class _ColorLevelFormatter(logging.Formatter):
    """levelname 만 색상으로 감싼다."""

    def __init__(self, fmt: str, *, use_color: bool) -> None:
        super().__init__(fmt)
        self._use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        if not self._use_color or color is None:
            return text
        return text.replace(
            record.levelname,
            click.style(record.levelname, fg=color, bold=record.levelno >= logging.ERROR),
            1,
        )


def setup_logging(verbosity: int = 0) -> None:
    level = logging.INFO
    if verbosity >= 1:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stdout)
    # 파이프/파일로 리다이렉트된 경우 ANSI 코드를 남기지 않는다.
    handler.setFormatter(
        _ColorLevelFormatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            use_color=sys.stdout.isatty(),
        )
    )
    logging.basicConfig(level=level, handlers=[handler])


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
