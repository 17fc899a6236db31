import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..circuit_breaker import CircuitBreaker
from ..formatter import FormattedNotification
from ..models import NotificationType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    detail: str = ""


class Provider(ABC):
    """A channel's delivery adapter.

    Adapters are capability-gated: ``initialize`` checks for credentials and
    leaves the adapter disabled when they are missing. A disabled adapter
    never reaches its transport and every ``send`` reports failure.
    Transport exceptions are recorded by the circuit breaker and re-raised.
    """

    type: NotificationType

    def __init__(self, breaker: CircuitBreaker | None = None):
        self.enabled = False
        self.breaker = breaker or CircuitBreaker(name=self.type.value)

    @property
    def name(self) -> str:
        return self.type.value

    def initialize(self) -> bool:
        self.enabled = self.is_configured()
        if self.enabled:
            logger.info(f"✅ {self.name} provider ready")
        else:
            logger.warning(f"{self.name} provider disabled: credentials not configured")
        return self.enabled

    async def send(self, notification: FormattedNotification) -> DeliveryResult:
        if not self.enabled:
            logger.error(f"❌ {self.name} provider disabled, cannot deliver {notification.notification_id}")
            return DeliveryResult(False, "provider disabled")

        if not self.breaker.allow_request():
            logger.warning(f"CIRCUIT OPEN: {self.name} delivery skipped for {notification.notification_id}")
            return DeliveryResult(False, "circuit open")

        try:
            result = await self.deliver(notification)
        except Exception:
            self.breaker.record_failure()
            raise

        if result.success:
            self.breaker.record_success()
        else:
            self.breaker.record_failure()
        return result

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the credentials this adapter needs are present."""

    @abstractmethod
    async def deliver(self, notification: FormattedNotification) -> DeliveryResult:
        """Hand the notification to the external transport."""

    async def close(self) -> None:
        pass
