import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from dashboard.config import settings

def setup_logging(level: str = None, log_to_file: bool = None):
    """Configure application logging (stdout, optional rotating files)."""

    root = logging.getLogger()
    root.setLevel(level or settings.LOG_LEVEL)

    # drop handlers installed by earlier calls
    root.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_to_file is None:
        log_to_file = settings.LOG_TO_FILE

    if log_to_file:
        os.makedirs(settings.LOG_DIR, exist_ok=True)

        file_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, 'dashboard.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

        error_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, 'dashboard_errors.log'),
            maxBytes=5*1024*1024,  # 5MB
            backupCount=3
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root.addHandler(error_handler)

    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

    root.info("Logging configured")
