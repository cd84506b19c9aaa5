"""
Logging setup and per-registration session logging.

The library logs under the ``affine_registration`` hierarchy and installs
no handlers by itself. Applications call ``setup_logging`` to route those
records to a stream, a file, or both. Every registration tags its
messages with a session identifier so that interleaved output of
concurrent calls stays readable.
"""

import logging
import sys
import time
import uuid
from pathlib import Path
from typing import IO, Optional, Union


PACKAGE_LOGGER = "affine_registration"

STREAM_FORMAT = "%(levelname)-8s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s:%(lineno)d %(message)s"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    stream: Optional[IO[str]] = sys.stderr
) -> logging.Logger:
    """
    Route the library's log records to a stream and/or a file.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Level name or number applied to the package logger and handlers
        log_file: Append records to this file; parent directories are created
        stream: Stream for console output, or None to disable it

    Returns:
        The ``affine_registration`` package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(level)

    handlers = []
    if stream is not None:
        stream_handler = logging.StreamHandler(stream)
        stream_handler.setFormatter(logging.Formatter(STREAM_FORMAT))
        handlers.append(stream_handler)
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        package_logger.addHandler(handler)

    # Records would otherwise be printed twice when the root logger is configured
    package_logger.propagate = not handlers
    if log_file is not None:
        package_logger.debug(f"Writing log records to {log_file}")
    return package_logger


def new_session_id(prefix: str = "reg") -> str:
    """Return a short unique identifier for a registration session."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class RegistrationLogger:
    """
    Session-tagged logging for one registration.

    Each message is prefixed with the session identifier and followed by
    ``key=value`` context fields:

        [direct-1a2b3c4d] Starting registration | transform_class=affine
    """

    def __init__(self, session_id: str, logger: Optional[logging.Logger] = None):
        self.session_id = session_id
        self.logger = logger or logging.getLogger(f"{PACKAGE_LOGGER}.session")
        self._started: Optional[float] = None

    def _log(self, level: int, message: str, **fields) -> None:
        if not self.logger.isEnabledFor(level):
            return
        text = f"[{self.session_id}] {message}"
        if fields:
            text += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        self.logger.log(level, text)

    def start_registration(self, **context) -> None:
        self._started = time.monotonic()
        self._log(logging.INFO, "Starting registration", **context)

    def log_iteration(self, iteration: int, metric: float, step: float) -> None:
        self._log(
            logging.DEBUG, "Iteration",
            iteration=iteration, metric=f"{metric:.6f}", step=f"{step:.4g}"
        )

    def log_warning(self, message: str) -> None:
        self._log(logging.WARNING, message)

    def log_error(self, message: str, exception: Optional[BaseException] = None) -> None:
        if exception is not None:
            message = f"{message}: {exception}"
        self._log(logging.ERROR, message)

    def end_registration(self, success: bool = True, **context) -> None:
        """Log the outcome together with the time elapsed since ``start_registration``."""
        if self._started is not None:
            context["duration_sec"] = f"{time.monotonic() - self._started:.2f}"
        if success:
            self._log(logging.INFO, "Registration complete", **context)
        else:
            self._log(logging.ERROR, "Registration failed", **context)
