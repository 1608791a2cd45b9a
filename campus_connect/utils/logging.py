import logging
import sys
import os
from pathlib import Path
from typing import Optional
from loguru import logger
import json
from datetime import date

from campus_connect.utils.context import log_context

DEFAULT_CONFIG = {
    "level": "info",
    "console_format": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | {name}:{function}:{line} - {message}",
    "file_format": "",
    "use_json_logs": False,
}


class InterceptHandler(logging.Handler):
    loglevel_mapping = {
        50: "CRITICAL",
        40: "ERROR",
        30: "WARNING",
        20: "INFO",
        10: "DEBUG",
        0: "NOTSET",
    }

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except (AttributeError, ValueError):
            level = self.loglevel_mapping[record.levelno]

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _bind_request_context(record):
    """Fill request/user ids at emit time so module-level loggers stay current."""
    record["extra"].update(log_context())


class CustomizeLogger:
    @classmethod
    def make_logger(cls, config_path: Path, environment: str = "logger"):
        config = cls.load_logging_config(config_path)
        logging_config = config.get(environment, config.get("logger", DEFAULT_CONFIG))

        filename = logging_config.get("filename")
        return cls.customize_logging(
            log_dir=logging_config.get("log_dir"),
            filename=(
                f"{date.today().strftime('%Y-%m-%d')}-{filename}" if filename else None
            ),
            level=os.getenv("LOG_LEVEL", logging_config.get("level", "info")),
            rotation=logging_config.get("rotation"),
            retention=logging_config.get("retention"),
            console_format=logging_config.get(
                "console_format", DEFAULT_CONFIG["console_format"]
            ),
            file_format=logging_config.get("file_format", ""),
            use_json_logs=logging_config.get("use_json_logs", False),
        )

    @classmethod
    def customize_logging(
        cls,
        log_dir: Optional[str],
        filename: Optional[str],
        level: str,
        rotation: Optional[str],
        retention: Optional[str],
        console_format: str,
        file_format: str,
        use_json_logs: bool = False,
    ):
        logger.remove()
        logger.configure(
            extra={"request_id": "app", "user_id": "-"},
            patcher=_bind_request_context,
        )

        # Console logger with colors
        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            level=level.upper(),
            format=console_format,
            colorize=True,
        )

        # File logger is optional: the test profile has no log_dir
        if log_dir and filename:
            if use_json_logs and file_format == "json":
                logger.add(
                    str(f"{log_dir}/{filename}"),
                    rotation=rotation,
                    retention=retention,
                    enqueue=True,
                    backtrace=True,
                    level=level.upper(),
                    serialize=True,
                    colorize=False,
                )
            else:
                logger.add(
                    str(f"{log_dir}/{filename}"),
                    rotation=rotation,
                    retention=retention,
                    enqueue=True,
                    backtrace=True,
                    level=level.upper(),
                    format=file_format,
                    colorize=False,
                )

        # Redirect standard logging to loguru
        cls._setup_intercept_handlers()

        return logger

    @staticmethod
    def _setup_intercept_handlers():
        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

        intercepted = ["uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"]
        for log_name in intercepted:
            _logger = logging.getLogger(log_name)
            _logger.handlers = [InterceptHandler()]
            _logger.propagate = False

    @staticmethod
    def load_logging_config(config_path: Path) -> dict:
        if not config_path.exists():
            return {"logger": DEFAULT_CONFIG}
        with open(config_path) as config_file:
            return json.load(config_file)


# Initialize logger
config_path = Path(
    os.getenv(
        "LOGGING_CONFIG_PATH",
        Path(__file__).resolve().parents[2] / "logging_config.json",
    )
)
environment = os.getenv("ENVIRONMENT", "development")
custom_logger = CustomizeLogger.make_logger(
    config_path,
    environment if environment in ("production", "test") else "logger",
)


def get_logger():
    """Get the application logger; request and user ids are attached per record."""
    return custom_logger
