"""
PaymentGateway: the capability interface for the hosted payment processor.

Checkout and settlement never import a processor-specific module. They ask
the registry for the gateway selected at startup and call these methods.
Amounts are always in the processor's minor unit (whole yen for JPY).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional


# Processor-side status meaning "held, waiting for capture"
CAPTURABLE_STATUS = "requires_capture"


@dataclass
class PaymentAuthorization:
    """A hold created at checkout. The client secret goes to the payment UI."""
    intent_id: str
    client_secret: str
    amount: int
    currency: str
    demo: bool = False


@dataclass
class PaymentIntentInfo:
    """Processor view of an existing hold/charge."""
    intent_id: str
    status: str
    amount: int
    currency: str
    amount_received: int = 0
    demo: bool = False

    @property
    def is_capturable(self) -> bool:
        return self.status == CAPTURABLE_STATUS


@dataclass
class CaptureResult:
    """Confirmation of a capture request."""
    intent_id: str
    captured_amount: int
    status: str
    currency: str
    demo: bool = False


class PaymentGateway(ABC):
    """
    Abstract base for all payment processor integrations.
    """

    name: str = "base"
    is_demo: bool = False

    @abstractmethod
    async def create_authorization(
        self,
        amount: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentAuthorization:
        """
        Hold ``amount`` on the customer's payment method without capturing it.
        """
        pass

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo:
        """
        Fetch the current state of a hold.
        """
        pass

    @abstractmethod
    async def capture(self, intent_id: str, amount: int, idempotency_key: Optional[str] = None) -> CaptureResult:
        """
        Capture exactly ``amount`` from an existing hold.
        """
        pass

    @abstractmethod
    async def cancel(self, intent_id: str) -> PaymentIntentInfo:
        """
        Release an uncaptured hold.
        """
        pass
