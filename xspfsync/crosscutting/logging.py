import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

run_id_var: ContextVar[Optional[str]] = ContextVar('run_id', default=None)
platform_var: ContextVar[Optional[str]] = ContextVar('platform', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)

ROOT_LOGGER = 'xspfsync'
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# key=value or key: value pairs whose value is a credential
_CREDENTIAL_PAIR = re.compile(
    r'(?i)\b(access_token|refresh_token|client_secret|authorization_code|code|'
    r'token|secret|password|key|auth)\s*[:=]\s*["\']?([A-Za-z0-9\-_./]{10,})["\']?'
)
# Subsonic credentials travel as query parameters: p= (password), t= (token), s= (salt)
_SUBSONIC_QUERY = re.compile(r'([?&](?:p|t|s))=([^&\s]+)')
_BEARER = re.compile(r'(?i)(bearer)\s+([A-Za-z0-9\-_.~+/]+=*)')


def _redact(value: str) -> str:
    if len(value) <= 8:
        return '*' * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


class SecretMasker:
    """Redacts tokens, passwords and OAuth codes from log text."""

    def mask_secrets(self, text: str) -> str:
        if not text:
            return text
        text = _SUBSONIC_QUERY.sub(r'\1=***', text)
        text = _BEARER.sub(lambda m: f"{m.group(1)} {_redact(m.group(2))}", text)
        return _CREDENTIAL_PAIR.sub(lambda m: f"{m.group(1)}: {_redact(m.group(2))}", text)

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask string values of a (possibly nested) dictionary."""
        if not data:
            return data
        return {key: self._mask_value(value) for key, value in data.items()}

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.mask_secrets(value)
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        return value


class MaskingTextFormatter(logging.Formatter):
    """Plain text formatter that masks secrets."""

    def __init__(self, fmt: str = TEXT_FORMAT):
        super().__init__(fmt)
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        return self.masker.mask_secrets(super().format(record))


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, tagged with the current run, platform and stage."""

    def __init__(self):
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for key, var in (('runId', run_id_var), ('platform', platform_var), ('stage', stage_var)):
            value = var.get()
            if value:
                entry[key] = value

        if record.exc_info:
            entry['exception'] = self.masker.mask_secrets(self.formatException(record.exc_info))

        fields = getattr(record, 'fields', None)
        if fields:
            entry['fields'] = self.masker.mask_dict(fields)

        return json.dumps(entry, ensure_ascii=False)


class CorrelationContext:
    """Sets run id, platform and stage for the records logged inside the block.

    Only the values given are changed; the previous values come back on exit.
    """

    def __init__(self, run_id: Optional[str] = None,
                 platform: Optional[str] = None,
                 stage: Optional[str] = None):
        self._values = [(run_id_var, run_id), (platform_var, platform), (stage_var, stage)]
        self._tokens = []

    def __enter__(self):
        self._tokens = [(var, var.set(value)) for var, value in self._values if value is not None]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  fmt: str = 'text') -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Logging level name
        log_file: Optional file to mirror console output to
        fmt: "text" for human readable lines, "json" for one JSON object per line

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    formatter = StructuredFormatter() if fmt == 'json' else MaskingTextFormatter()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs):
    """Log message with additional structured fields."""
    extra_fields = dict(fields or {})
    extra_fields.update(kwargs)
    logger.log(getattr(logging, level.upper()), message, extra={'fields': extra_fields})
