import os
import logging
from logging.handlers import RotatingFileHandler, SysLogHandler


__version__ = '1.0.0'

# Between WARNING and INFO: start/finish markers and other noteworthy events
NOTICE = 25
logging.addLevelName(NOTICE, 'NOTICE')

# -v count -> log level
VERBOSITY_LEVELS = {
    0: logging.ERROR,
    1: NOTICE,
    2: logging.INFO,
    3: logging.DEBUG,
}


def configure_logging(verbosity=0, log_file=None, syslog_facility=None, tag='rotabackup'):
    """Configure application logging"""

    log_level = VERBOSITY_LEVELS[max(0, min(verbosity, 3))]
    handlers = []

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    handlers.append(console_handler)

    # File handler
    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=10
        )
        file_handler.setLevel(log_level)
        file_formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    # Syslog handler
    if syslog_facility:
        syslog_handler = SysLogHandler(
            address=_syslog_address(),
            facility=SysLogHandler.facility_names[syslog_facility]
        )
        syslog_handler.setLevel(log_level)
        syslog_handler.setFormatter(logging.Formatter(f'{tag}: %(levelname)s %(message)s'))
        handlers.append(syslog_handler)

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger(__name__).debug(f"Logging configured (level: {logging.getLevelName(log_level)})")


def _syslog_address():
    """Local syslog socket, falling back to UDP on localhost."""
    for candidate in ('/dev/log', '/var/run/syslog'):
        if os.path.exists(candidate):
            return candidate
    return ('localhost', 514)
