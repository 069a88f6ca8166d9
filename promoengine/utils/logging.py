"""
promoengine/utils/logging.py
───────────────────────────
Configures structured logging for the evaluation service.
"""
import os
import logging
from logging.handlers import RotatingFileHandler
from flask import has_request_context, request


class RequestFormatter(logging.Formatter):
    """
    Custom formatter that injects request info (URL, remote address)
    into logs when a request context is available.
    """
    def format(self, record):
        if has_request_context():
            record.url = request.url
            record.remote_addr = request.remote_addr
        else:
            record.url = None
            record.remote_addr = None
        return super().format(record)


def setup_logging(app):
    """
    Configure rotating file logging under LOG_DIR plus a stdout stream.
    Max size: 5MB
    Backup count: 5 files
    Format: timestamp | level | module | message

    Engine modules log through `logging.getLogger(__name__)`; their
    records propagate to the `promoengine` logger configured here.
    """
    level = logging.getLevelName(str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    handlers = []

    # 1. File logger (skipped when LOG_DIR is unset or not writable)
    log_dir = app.config.get('LOG_DIR')
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, 'promoengine.log'),
                maxBytes=5 * 1024 * 1024,
                backupCount=5
            )
            file_handler.setFormatter(RequestFormatter(
                '%(asctime)s | %(levelname)s | %(name)s | %(remote_addr)s | %(url)s | %(message)s'
            ))
            file_handler.setLevel(level)
            handlers.append(file_handler)
        except OSError as exc:
            app.logger.warning(f"File logging disabled ({log_dir}): {exc}")

    # 2. Stdout logger
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
    ))
    stream_handler.setLevel(level)
    handlers.append(stream_handler)

    # app.logger is the "promoengine" logger, so engine module records land here too.
    # Drop handlers left by an earlier create_app() in the same process.
    for old in [h for h in app.logger.handlers if getattr(h, '_promoengine', False)]:
        app.logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler._promoengine = True
        app.logger.addHandler(handler)

    app.logger.setLevel(level)
    app.logger.info("Promotion engine service startup")
