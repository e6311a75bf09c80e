"""Failure tracking for providers and the intent interpreter.

- Circuit breaker around the external intent backend
- Per-provider health records used for diagnostics
"""

import asyncio
import inspect
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from loguru import logger


class ServiceState(Enum):
    """Service health states."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    CIRCUIT_OPEN = "circuit_open"


class ErrorSeverity(Enum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class CircuitOpenError(RuntimeError):
    """Raised instead of calling a service whose circuit is open."""


class ProviderTimeout(TimeoutError):
    """A slow provider exceeded its wall-clock budget."""


@dataclass
class ErrorEvent:
    """A single recorded failure."""
    timestamp: datetime
    service: str
    error_type: str
    message: str
    severity: ErrorSeverity
    traceback: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'service': self.service,
            'error_type': self.error_type,
            'message': self.message,
            'severity': self.severity.value,
            'context': self.context
        }


@dataclass
class ServiceHealth:
    """Tracks health of a provider or backend."""
    name: str
    state: ServiceState = ServiceState.HEALTHY
    error_count: int = 0
    success_count: int = 0
    timeout_count: int = 0
    last_error: Optional[ErrorEvent] = None
    last_success: Optional[datetime] = None
    consecutive_failures: int = 0
    circuit_opened_at: Optional[datetime] = None

    @property
    def error_rate(self) -> float:
        total = self.error_count + self.success_count
        if total == 0:
            return 0.0
        return self.error_count / total

    @property
    def is_available(self) -> bool:
        return self.state != ServiceState.CIRCUIT_OPEN

    def record_success(self) -> None:
        self.success_count += 1
        self.consecutive_failures = 0
        self.last_success = datetime.now()
        if self.state in (ServiceState.DEGRADED, ServiceState.UNHEALTHY) and self.error_rate < 0.1:
            self.state = ServiceState.HEALTHY

    def record_failure(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> ErrorEvent:
        self.error_count += 1
        self.consecutive_failures += 1
        if isinstance(error, (ProviderTimeout, asyncio.TimeoutError)):
            self.timeout_count += 1

        self.last_error = ErrorEvent(
            timestamp=datetime.now(),
            service=self.name,
            error_type=type(error).__name__,
            message=str(error),
            severity=ErrorSeverity.HIGH if self.consecutive_failures > 3 else ErrorSeverity.MEDIUM,
            traceback="".join(traceback.format_exception(type(error), error, error.__traceback__)),
            context=context or {},
        )

        if self.state != ServiceState.CIRCUIT_OPEN:
            if self.error_rate > 0.5:
                self.state = ServiceState.UNHEALTHY
            elif self.error_rate > 0.2:
                self.state = ServiceState.DEGRADED
        return self.last_error

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'state': self.state.value,
            'errors': self.error_count,
            'successes': self.success_count,
            'timeouts': self.timeout_count,
            'error_rate': round(self.error_rate, 3),
            'last_error': self.last_error.to_dict() if self.last_error else None,
        }


class CircuitBreaker:
    """Circuit breaker for the intent backend."""

    def __init__(self,
                 name: str,
                 failure_threshold: int = 3,
                 recovery_timeout: int = 30,
                 expected_exception: type = Exception):
        """
        Initialize circuit breaker.

        Args:
            name: Service name
            failure_threshold: Consecutive failures before opening circuit
            recovery_timeout: Seconds before a trial call is let through
            expected_exception: Exception type counted as a failure
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.health = ServiceHealth(name=name)
        self.recovery_attempts = 0

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Call ``func`` under circuit protection.

        Raises:
            CircuitOpenError: If the circuit is open and not yet due for recovery
        """
        if self.health.state == ServiceState.CIRCUIT_OPEN:
            if not self._should_attempt_recovery():
                raise CircuitOpenError(f"Circuit breaker {self.name} is open")
            logger.info(f"Circuit breaker {self.name}: Attempting recovery")
            self.recovery_attempts += 1

        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except self.expected_exception as e:
            self.health.record_failure(e)
            if self.health.consecutive_failures >= self.failure_threshold:
                self._open_circuit()
            raise

        self._record_success()
        return result

    def _record_success(self):
        was_open = self.health.state == ServiceState.CIRCUIT_OPEN
        self.health.record_success()
        if was_open:
            logger.info(f"Circuit breaker {self.name}: Circuit closed after recovery")
            self.health.state = ServiceState.HEALTHY
            self.health.circuit_opened_at = None
            self.recovery_attempts = 0

    def _open_circuit(self):
        logger.warning(
            f"Circuit breaker {self.name}: Opening circuit after "
            f"{self.health.consecutive_failures} failures"
        )
        self.health.state = ServiceState.CIRCUIT_OPEN
        self.health.circuit_opened_at = datetime.now()

    def _should_attempt_recovery(self) -> bool:
        if not self.health.circuit_opened_at:
            return True

        elapsed = (datetime.now() - self.health.circuit_opened_at).total_seconds()
        backoff = self.recovery_timeout * (2 ** min(self.recovery_attempts, 5))
        return elapsed >= backoff

    def reset(self):
        self.health = ServiceHealth(name=self.name)
        self.recovery_attempts = 0
