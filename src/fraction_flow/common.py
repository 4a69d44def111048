"""
公用组件 - 运行配置、诊断日志和日志初始化
"""

import argparse
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Sequence

from .types import OptionsError

LOGGER_NAME = "fraction_flow"
LOG_FORMAT = "%(asctime)s - [%(threadName)s] %(levelname)s - %(message)s"

USAGE = (
    "Usage: -c [true|false] -d [true|false] -l [true|false] -m [true|false] "
    "-p [true|false] -r [true|false] -s [true|false] -T [tag,...]"
)


def _parse_bool(text: str) -> bool:
    """只接受 true/false"""
    lowered = text.strip().lower()
    if lowered not in ("true", "false"):
        raise argparse.ArgumentTypeError(f"期望 true 或 false，得到 {text!r}")
    return lowered == "true"


def _parse_tags(text: str) -> FrozenSet[str]:
    return frozenset(tag.strip() for tag in text.split(",") if tag.strip())


class _OptionsParser(argparse.ArgumentParser):
    """出错时抛出 OptionsError 而不是退出进程"""

    def error(self, message: str):
        raise OptionsError(message)


def _build_parser() -> _OptionsParser:
    parser = _OptionsParser(prog="fraction_flow", usage=USAGE, add_help=False)
    parser.add_argument("-c", dest="concurrent", type=_parse_bool, default=False)
    parser.add_argument("-d", dest="diagnostics_enabled", type=_parse_bool, default=False)
    parser.add_argument("-l", dest="logging_enabled", type=_parse_bool, default=False)
    parser.add_argument("-m", dest="memoize", type=_parse_bool, default=False)
    parser.add_argument("-p", dest="parallel", type=_parse_bool, default=False)
    parser.add_argument("-r", dest="remote", type=_parse_bool, default=False)
    parser.add_argument("-s", dest="sequential", type=_parse_bool, default=True)
    parser.add_argument("-T", dest="tags", type=_parse_tags, default=frozenset())
    return parser


@dataclass(frozen=True)
class Options:
    """运行配置 - 进程启动时构造一次，之后只读"""
    diagnostics_enabled: bool = False     # 是否输出调试信息
    sequential: bool = True               # 顺序运行流水线
    concurrent: bool = False              # 并发运行流水线
    memoize: bool = False
    logging_enabled: bool = False         # 是否输出库内部日志
    parallel: bool = False
    remote: bool = False
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        """验证配置参数"""
        if not isinstance(self.tags, frozenset):
            object.__setattr__(self, "tags", frozenset(self.tags))
        if any(not isinstance(tag, str) or not tag for tag in self.tags):
            raise ValueError("tags 必须是非空字符串")

    @classmethod
    def parse_args(cls, argv: Optional[Sequence[str]] = None) -> Optional["Options"]:
        """
        解析命令行参数

        参数不合法时打印用法并返回 None。
        """
        try:
            namespace = _build_parser().parse_args(list(argv or []))
        except OptionsError as exc:
            print_usage(str(exc))
            return None
        return cls(**vars(namespace))

    def is_tag_enabled(self, tag: Optional[str]) -> bool:
        """诊断开启且（无标签或标签已激活）"""
        if not self.diagnostics_enabled:
            return False
        return tag is None or tag in self.tags


def print_usage(reason: Optional[str] = None) -> None:
    """打印用法和默认值"""
    if reason:
        print(f"error: {reason}")
    print(USAGE)


def create_default_logger(options: Optional[Options] = None) -> logging.Logger:
    """创建（或复用）包日志器"""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    if options is not None and (options.diagnostics_enabled or options.logging_enabled):
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)
    return logger


class DiagnosticLogger:
    """诊断日志器 - 按 Options 控制调试输出"""

    def __init__(self, options: Optional[Options] = None, logger: Optional[logging.Logger] = None):
        self.options = options or Options()
        self.logger = logger or create_default_logger(self.options)

    def is_enabled(self, tag: Optional[str] = None) -> bool:
        return self.options.is_tag_enabled(tag)

    def debug(self, message: str, tag: Optional[str] = None):
        """诊断关闭或标签未激活时不输出"""
        if not self.is_enabled(tag):
            return
        self._emit(logging.DEBUG, message)

    def print(self, message: str):
        """总是输出（附带线程名）"""
        self._emit(logging.INFO, message)

    def info(self, message: str):
        self._emit(logging.INFO, message)

    def warning(self, message: str):
        self._emit(logging.WARNING, message)

    def error(self, message: str):
        self._emit(logging.ERROR, message)

    def _emit(self, level: int, message: str):
        self.logger.log(level, message)
