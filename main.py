from __future__ import annotations

import logging
import sys
import traceback

from imagestamp.cli import main as cli_main

_log = logging.getLogger("main")


def _install_exception_logging() -> None:
    """未捕获异常先写入日志，再交给默认处理。"""

    def _log_uncaught_exception(exc_type, exc_value, exc_tb) -> None:
        message = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
        _log.error("uncaught exception\n%s", message.rstrip())
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _log_uncaught_exception


def main() -> None:
    _install_exception_logging()
    _log.debug("startup argv=%s", sys.argv[1:])
    cli_main()


if __name__ == "__main__":
    main()
