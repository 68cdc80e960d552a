import os
import logging
import logging.handlers

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(log_dir: str = None, level: str = 'INFO', verbose: bool = False) -> None:
    """
    Set up the root logger.

    Always logs to stderr; also logs to a rotating ``starter.log`` when
    ``log_dir`` is given.
    """
    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'starter.log'),
            maxBytes=5 * 1024 * 1024,
            backupCount=5
        ))

    root = logging.getLogger('')
    for handler in handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO))

    # per-request noise from the HTTP stack
    logging.getLogger('urllib3').setLevel(logging.WARNING)
