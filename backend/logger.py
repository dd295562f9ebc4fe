"""
@file purpose: Centralized logging system for the AutoApply backend
Root handlers: a rotating local file, the console and, when a source token
is configured, BetterStack. Records shipped to BetterStack carry the user,
session and platform of the automation that is running.
"""

import logging
import logging.handlers
import os
import queue
import sys  # noqa: E402
import threading  # noqa: E402
import traceback  # noqa: E402
from datetime import datetime  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any, Dict, Optional  # noqa: E402

import requests  # noqa: E402

LOG_FILE_NAME = "autoapply.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5
MAX_REPORTED_DELIVERY_ERRORS = 3

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-15s:%(lineno)-4d | %(message)s"  # noqa: E501
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"


class BetterStackHandler(logging.Handler):
    """Ships log records to BetterStack from a background worker thread"""

    def __init__(self, source_token: str, ingesting_host: str):
        super().__init__()
        self.ingesting_host = ingesting_host
        self.url = f"https://{ingesting_host}/logs"
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {source_token}",
                "Content-Type": "application/json",
            }
        )

        self.context: Dict[str, Any] = {"user_id": "Unknown", "session_id": None, "platform": None}

        self.auth_error_logged = False
        self.error_count = 0

        self.log_queue = queue.Queue()
        self.worker_thread = threading.Thread(target=self._worker, daemon=True)
        self.worker_thread.start()

    def update_context(self, **context):
        self.context.update({key: value for key, value in context.items() if value is not None})

    def build_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self.format(record),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
            "process": "backend",
            "app": "autoapply",
            **self.context,
        }
        if record.exc_info:
            entry["exception"] = traceback.format_exception(*record.exc_info)
        return entry

    def emit(self, record):
        try:
            self.log_queue.put(self.build_entry(record))
        except Exception as e:
            print(f"Failed to queue log for BetterStack: {e}", file=sys.stderr)

    def _report_delivery_failure(self, detail: str):
        # stderr only: logging here would feed the failure back into this handler
        self.error_count += 1
        if self.error_count <= MAX_REPORTED_DELIVERY_ERRORS:
            print(f"BetterStack logging failed: {detail}", file=sys.stderr)
        elif self.error_count == MAX_REPORTED_DELIVERY_ERRORS + 1:
            print("(Suppressing further BetterStack errors...)", file=sys.stderr)

    def _worker(self):
        while True:
            try:
                entry = self.log_queue.get(timeout=1)
            except queue.Empty:
                continue

            try:
                response = self.session.post(self.url, json=entry, timeout=5)
                if response.status_code == 401:
                    if not self.auth_error_logged:
                        print(
                            f"\nWARNING: BetterStack rejected the source token for {self.ingesting_host}. "
                            "Logs will continue to be written locally.\n",
                            file=sys.stderr,
                        )
                        self.auth_error_logged = True
                elif response.status_code not in (200, 202):
                    self._report_delivery_failure(f"{response.status_code} - {response.text}")
            except requests.exceptions.RequestException as e:
                self._report_delivery_failure(str(e))
            finally:
                self.log_queue.task_done()


class AutoApplyLogger:
    """Installs the AutoApply handlers on the root logger, once per process"""

    def __init__(
        self,
        log_file_path: str = None,
        betterstack_token: str = None,
        betterstack_host: str = None,
    ):
        if log_file_path is None:
            from constants import LOG_DIR  # noqa: E402

            log_file_path = Path(LOG_DIR) / LOG_FILE_NAME

        self.log_file_path = Path(log_file_path)
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)

        # Root logger so every module-level logger inherits the handlers
        self.logger = logging.getLogger()
        self.logger.setLevel(logging.DEBUG)

        for noisy in ("urllib3", "requests", "asyncio"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        self.betterstack_handler: Optional[BetterStackHandler] = next(
            (h for h in self.logger.handlers if isinstance(h, BetterStackHandler)), None
        )
        if any(isinstance(h, logging.handlers.RotatingFileHandler) for h in self.logger.handlers):
            return

        file_formatter = logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

        file_handler = logging.handlers.RotatingFileHandler(
            self.log_file_path,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)

        # Windows consoles default to a code page that cannot print every job title
        if sys.platform == "win32":
            import io

            console_stream = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        else:
            console_stream = sys.stdout

        console_handler = logging.StreamHandler(console_stream)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        self.logger.addHandler(console_handler)

        if betterstack_token and betterstack_host:
            self.betterstack_handler = BetterStackHandler(betterstack_token, betterstack_host)
            self.betterstack_handler.setLevel(logging.INFO)
            self.betterstack_handler.setFormatter(file_formatter)
            self.logger.addHandler(self.betterstack_handler)
            self.logger.info(f"BetterStack logging enabled ({betterstack_host})")

        self.logger.info(f"AutoApply backend logging to {self.log_file_path}")
        self.logger.info(f"Python {sys.version.split()[0]}, working directory {os.getcwd()}")

    def get_logger(self, name: str = None) -> logging.Logger:
        return logging.getLogger(name) if name else self.logger

    def update_context(self, **context):
        if self.betterstack_handler:
            self.betterstack_handler.update_context(**context)

    def set_console_level(self, level: int):
        for handler in self.logger.handlers:
            # FileHandler subclasses StreamHandler; only the console is adjusted
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)


# Global logger instance
_global_logger: Optional[AutoApplyLogger] = None


def initialize_logging(
    betterstack_token: str = None, betterstack_host: str = None
) -> AutoApplyLogger:
    """Initialize the global logging system"""
    global _global_logger

    if _global_logger is None:
        _global_logger = AutoApplyLogger(
            betterstack_token=betterstack_token, betterstack_host=betterstack_host
        )

    return _global_logger


def get_logger(name: str = None) -> logging.Logger:
    if _global_logger is None:
        initialize_logging()
    return _global_logger.get_logger(name)


def update_log_context(
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    platform: Optional[str] = None,
):
    """Tag future BetterStack records with the running automation; no-op before initialization"""
    if _global_logger is not None:
        _global_logger.update_context(user_id=user_id, session_id=session_id, platform=platform)


def set_console_level(level: int):
    """Dev-mode sessions print DEBUG records to the console; no-op before initialization"""
    if _global_logger is not None:
        _global_logger.set_console_level(level)
