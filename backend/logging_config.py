"""Logging for the survey backend.

The file log holds one JSON object per line so reviewers can grep a
survey's history; the console gets a short human-readable line. Both pass
through ``SensitiveDataFilter`` so owner identifiers never reach disk, and
records emitted while serving a request are tagged with its method, path
and caller.
"""
import json
import logging
import logging.config
import os
import re
from datetime import datetime
from flask import g, has_request_context, request
from shared.models import APP_TIMEZONE

LOG_FILE_NAME = 'property_survey.log'
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

QUIET_LOGGERS = ('werkzeug', 'sqlalchemy.engine', 'libcloud', 'urllib3')


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, stamped in the municipality's timezone."""

    def format(self, record):
        entry = {
            'time': datetime.fromtimestamp(record.created, APP_TIMEZONE).isoformat(timespec='milliseconds'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        context = getattr(record, 'request', None)
        if context:
            entry['request'] = context
        entry.update(getattr(record, 'extra_fields', None) or {})
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class SensitiveDataFilter(logging.Filter):
    """Redact Aadhaar numbers and PANs that end up in log messages."""

    AADHAAR = re.compile(r'(?<!\d)\d{4}[ -]?\d{4}[ -]?\d{4}(?!\d)')
    PAN = re.compile(r'\b[A-Za-z]{5}\d{4}[A-Za-z]\b')

    def filter(self, record):
        message = record.getMessage()
        redacted = self.PAN.sub('[PAN]', self.AADHAAR.sub('[AADHAAR]', message))
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class RequestContextFilter(logging.Filter):
    """Attach the current request (method, path, authenticated email) to the record."""

    def filter(self, record):
        if has_request_context():
            context = {'method': request.method, 'path': request.path}
            user = g.get('user')
            if user:
                context['user'] = user.get('email')
            record.request = context
        return True


def _logging_dict(level, log_file):
    filters = ['redact', 'request']
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'filters': {
            'redact': {'()': SensitiveDataFilter},
            'request': {'()': RequestContextFilter},
        },
        'formatters': {
            'json': {'()': StructuredFormatter},
            'console': {'format': '%(asctime)s %(levelname)-8s %(name)s: %(message)s'},
        },
        'handlers': {
            'file': {
                'class': 'logging.handlers.RotatingFileHandler',
                'filename': log_file,
                'maxBytes': LOG_FILE_MAX_BYTES,
                'backupCount': LOG_FILE_BACKUPS,
                'encoding': 'utf-8',
                'level': level,
                'formatter': 'json',
                'filters': filters,
            },
            'console': {
                'class': 'logging.StreamHandler',
                'level': level,
                'formatter': 'console',
                'filters': filters,
            },
        },
        'loggers': {name: {'level': 'WARNING'} for name in QUIET_LOGGERS},
        'root': {'level': level, 'handlers': ['file', 'console']},
    }


def setup_logging(app=None):
    """Route all backend logging to the rotating JSON file and the console.

    ``LOG_LEVEL`` and ``LOG_DIR`` come from the app config when given,
    otherwise from the environment. Calling this again replaces the
    previous handlers.

    Returns:
        str: Path of the JSON log file
    """
    settings = app.config if app is not None else {}
    level = str(settings.get('LOG_LEVEL') or os.getenv('LOG_LEVEL') or 'INFO').upper()
    if not isinstance(logging.getLevelName(level), int):
        level = 'INFO'

    log_dir = settings.get('LOG_DIR') or os.getenv('LOG_DIR') or os.path.join(
        os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'logs')
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, LOG_FILE_NAME)

    logging.config.dictConfig(_logging_dict(level, log_file))
    logging.getLogger(__name__).info(
        "Logging to %s at %s", log_file, level, extra={'extra_fields': {'log_level': level}})
    return log_file
