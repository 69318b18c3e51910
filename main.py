import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

import uvicorn

from railtrans.api.http import create_app

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(log_dir: str = "logs", level: str = "INFO") -> str:
    """
    Console plus a rotating file (10MB x 5) under `log_dir`.
    Returns the log file path.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "app.log")
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    file_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in (console_handler, file_handler):
        handler.setLevel(numeric_level)
        root_logger.addHandler(handler)

    # uvicorn's access log duplicates RequestIDMiddleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return log_file


log_path = configure_logging(os.getenv("LOG_DIR", "logs"), os.getenv("LOG_LEVEL", "INFO"))
logging.info(f"RailTrans registration API starting: log_file={log_path}, at={datetime.now().strftime(DATE_FORMAT)}")

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
