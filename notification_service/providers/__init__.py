from ..circuit_breaker import CircuitBreaker
from ..config import Settings
from ..models import NotificationType
from .base import DeliveryResult, Provider
from .email import EmailProvider
from .push import PushProvider
from .sms import SmsProvider


def build_providers(settings: Settings) -> dict[NotificationType, Provider]:
    """Create and initialize one adapter per channel.

    Channels without credentials come back disabled rather than failing.
    """

    def breaker(name):
        return CircuitBreaker(
            name=name,
            failure_threshold=settings.circuit_failure_threshold,
            recovery_time=settings.circuit_recovery_time,
        )

    providers = {
        NotificationType.EMAIL: EmailProvider(settings.smtp, breaker("email")),
        NotificationType.SMS: SmsProvider(settings.sms, breaker("sms")),
        NotificationType.PUSH: PushProvider(settings.push, breaker("push")),
    }
    for provider in providers.values():
        provider.initialize()
    return providers


__all__ = [
    "DeliveryResult",
    "EmailProvider",
    "Provider",
    "PushProvider",
    "SmsProvider",
    "build_providers",
]
