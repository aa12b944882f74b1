"""
Logging and monitoring service for the webhook receiver.
"""
import json
import logging
import logging.handlers
import re
import sys
import time
import traceback
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Any, Optional, List, Iterable, Callable
from dataclasses import dataclass, asdict
from contextlib import contextmanager
import threading


REDACTED = "***"

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Bearer/Basic credentials and token fields that may surface in upstream bodies
TOKEN_PATTERNS = [
    re.compile(r'("access_token"\s*:\s*")[^"]*(")'),
    re.compile(r"('access_token'\s*:\s*')[^']*(')"),
    re.compile(r'(\b(?:Bearer|Basic)\s+)[A-Za-z0-9\-._~+/]+=*()'),
]


@dataclass
class LogEntry:
    """Structured log entry for JSON logging."""
    timestamp: str
    level: str
    logger_name: str
    message: str
    module: str
    function: str
    line_number: int
    thread_id: int
    process_id: int
    extra_data: Optional[Dict[str, Any]] = None
    exception_info: Optional[Dict[str, Any]] = None


@dataclass
class PerformanceMetric:
    """Performance metric data structure."""
    operation: str
    duration_ms: float
    timestamp: str
    success: bool
    error_type: Optional[str] = None


@dataclass
class ErrorMetric:
    """Error tracking metric data structure."""
    error_type: str
    error_message: str
    timestamp: str
    extra_data: Optional[Dict[str, Any]] = None


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def __init__(self, redact: Optional[Callable[[str], str]] = None):
        super().__init__()
        self.redact = redact or (lambda text: text)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created).isoformat(),
            level=record.levelname,
            logger_name=record.name,
            message=record.getMessage(),
            module=record.module,
            function=record.funcName,
            line_number=record.lineno,
            thread_id=record.thread,
            process_id=record.process,
            extra_data=getattr(record, 'extra_data', None)
        )

        if record.exc_info:
            log_entry.exception_info = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': self.redact(str(record.exc_info[1])) if record.exc_info[1] else None,
                'traceback': [self.redact(line) for line in traceback.format_exception(*record.exc_info)]
            }

        return json.dumps(asdict(log_entry), default=str)


class SecretRedactionFilter(logging.Filter):
    """
    Masks secret values in log messages before any handler writes them.

    Configured secrets (passwords, client secrets, the P12 blob) are replaced
    verbatim; access tokens and Authorization credentials are matched by pattern.
    """

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        # longest first so a secret containing another is masked whole
        self.secrets = sorted({s for s in secrets if s}, key=len, reverse=True)
        self._exception_formatter = logging.Formatter()

    def redact(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, REDACTED)
        for pattern in TOKEN_PATTERNS:
            text = pattern.sub(lambda m: f"{m.group(1)}{REDACTED}{m.group(2)}", text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None

        # plain formatters reuse exc_text when it is already set
        if record.exc_info and not record.exc_text:
            record.exc_text = self.redact(self._exception_formatter.formatException(record.exc_info))
        elif record.exc_text:
            record.exc_text = self.redact(record.exc_text)

        extra_data = getattr(record, 'extra_data', None)
        if isinstance(extra_data, dict):
            record.extra_data = {
                key: self.redact(value) if isinstance(value, str) else value
                for key, value in extra_data.items()
            }
        return True


class PerformanceMonitor:
    """Timing of pipeline steps (decode, identity, token)."""

    def __init__(self, max_metrics: int = 1000):
        self.metrics: List[PerformanceMetric] = []
        self.max_metrics = max_metrics
        self.lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @contextmanager
    def measure_operation(self, operation: str):
        """Context manager to measure operation performance."""
        start_time = time.time()
        error_type = None

        try:
            yield
        except Exception as e:
            error_type = type(e).__name__
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000

            metric = PerformanceMetric(
                operation=operation,
                duration_ms=duration_ms,
                timestamp=datetime.now().isoformat(),
                success=error_type is None,
                error_type=error_type
            )

            with self.lock:
                self.metrics.append(metric)
                if len(self.metrics) > self.max_metrics:
                    del self.metrics[:len(self.metrics) - self.max_metrics]

            self.logger.debug(
                f"Performance metric: {operation} took {duration_ms:.1f}ms",
                extra={'extra_data': asdict(metric)}
            )

    def get_metrics(self, operation: Optional[str] = None,
                    since: Optional[datetime] = None) -> List[PerformanceMetric]:
        """Get performance metrics with optional filtering."""
        with self.lock:
            filtered_metrics = self.metrics.copy()

        if operation:
            filtered_metrics = [m for m in filtered_metrics if m.operation == operation]

        if since:
            since_iso = since.isoformat()
            filtered_metrics = [m for m in filtered_metrics if m.timestamp >= since_iso]

        return filtered_metrics

    def get_operation_stats(self, operation: str) -> Dict[str, Any]:
        """Get statistics for a specific operation."""
        metrics = self.get_metrics(operation=operation)

        if not metrics:
            return {}

        durations = [m.duration_ms for m in metrics]
        success_count = sum(1 for m in metrics if m.success)

        return {
            'operation': operation,
            'total_calls': len(metrics),
            'success_count': success_count,
            'failure_count': len(metrics) - success_count,
            'success_rate': success_count / len(metrics),
            'avg_duration_ms': sum(durations) / len(durations),
            'min_duration_ms': min(durations),
            'max_duration_ms': max(durations)
        }


class ErrorTracker:
    """Tracks unexpected failures for the health endpoint."""

    def __init__(self, max_errors: int = 500):
        self.errors: List[ErrorMetric] = []
        self.max_errors = max_errors
        self.lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def track_error(self, error: Exception, extra_data: Optional[Dict[str, Any]] = None):
        """Track an error occurrence."""
        error_metric = ErrorMetric(
            error_type=type(error).__name__,
            error_message=str(error),
            timestamp=datetime.now().isoformat(),
            extra_data=extra_data
        )

        with self.lock:
            self.errors.append(error_metric)
            if len(self.errors) > self.max_errors:
                del self.errors[:len(self.errors) - self.max_errors]

        self.logger.error(
            f"Error tracked: {error_metric.error_type}: {error_metric.error_message}",
            extra={'extra_data': extra_data} if extra_data else None
        )

    def get_errors(self, error_type: Optional[str] = None,
                   since: Optional[datetime] = None) -> List[ErrorMetric]:
        """Get error metrics with optional filtering."""
        with self.lock:
            filtered_errors = self.errors.copy()

        if error_type:
            filtered_errors = [e for e in filtered_errors if e.error_type == error_type]

        if since:
            since_iso = since.isoformat()
            filtered_errors = [e for e in filtered_errors if e.timestamp >= since_iso]

        return filtered_errors

    def get_error_summary(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        """Get error summary statistics."""
        errors = self.get_errors(since=since)

        if not errors:
            return {'total_errors': 0, 'error_types': {}}

        error_types = {}
        for error in errors:
            error_types[error.error_type] = error_types.get(error.error_type, 0) + 1

        return {
            'total_errors': len(errors),
            'error_types': error_types,
            'most_common_error': max(error_types.items(), key=lambda x: x[1])[0]
        }


class LoggingService:
    """Logging setup plus lightweight performance and error monitoring."""

    def __init__(self, config, configure_root: bool = True):
        """
        Initialize logging service with configuration.

        Args:
            config: Config with log_level, log_file_path and the secrets to redact
            configure_root: Install handlers on the root logger
        """
        self.config = config
        self.performance_monitor = PerformanceMonitor()
        self.error_tracker = ErrorTracker()
        self.redaction_filter = SecretRedactionFilter(config.secret_values())
        if configure_root:
            self._setup_logging()
        self.logger = logging.getLogger(__name__)
        self.logger.info("Logging service initialized")

    def _setup_logging(self):
        """Install console and optional JSON file handlers on the root logger."""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        root_logger.setLevel(log_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        console_handler.setLevel(log_level)
        console_handler.addFilter(self.redaction_filter)
        root_logger.addHandler(console_handler)

        if self.config.log_file_path:
            Path(self.config.log_file_path).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                filename=self.config.log_file_path,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setFormatter(JSONFormatter(redact=self.redaction_filter.redact))
            file_handler.setLevel(log_level)
            file_handler.addFilter(self.redaction_filter)
            root_logger.addHandler(file_handler)

    def measure_performance(self, operation: str):
        """Get performance measurement context manager."""
        return self.performance_monitor.measure_operation(operation)

    def track_error(self, error: Exception, extra_data: Optional[Dict[str, Any]] = None):
        """Track an error occurrence."""
        self.error_tracker.track_error(error, extra_data)

    def get_performance_stats(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Get performance statistics."""
        if operation:
            return self.performance_monitor.get_operation_stats(operation)

        operations = set(m.operation for m in self.performance_monitor.get_metrics())
        return {
            op: self.performance_monitor.get_operation_stats(op)
            for op in operations
        }

    def get_error_summary(self, since_hours: int = 24) -> Dict[str, Any]:
        """Get error summary for the specified time period."""
        since = datetime.now() - timedelta(hours=since_hours)
        return self.error_tracker.get_error_summary(since=since)

    def get_health_status(self) -> Dict[str, Any]:
        """Get overall health status of the logging system."""
        since = datetime.now() - timedelta(hours=1)
        return {
            'status': 'healthy',
            'recent_errors': self.get_error_summary(since_hours=1).get('total_errors', 0),
            'recent_operations': len(self.performance_monitor.get_metrics(since=since)),
            'timestamp': datetime.now().isoformat()
        }
