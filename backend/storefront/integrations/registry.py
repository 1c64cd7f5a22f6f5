"""
Payment gateway selection.

The gateway is chosen once per process from configuration. Handlers never
null-check a processor client; they depend on ``get_payment_gateway``.

- STRIPE_SECRET_KEY set      -> StripeGateway (demo is unreachable)
- unset, demo allowed        -> DemoPaymentGateway
- unset, demo not allowed    -> ConfigurationError
"""

import logging
from typing import Optional

from storefront.config import Settings, get_settings
from storefront.errors import ConfigurationError
from storefront.integrations.base import PaymentGateway

logger = logging.getLogger(__name__)

_gateway: Optional[PaymentGateway] = None


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    """Instantiate the gateway the configuration asks for."""
    if settings.STRIPE_SECRET_KEY:
        from storefront.integrations.stripe import StripeGateway
        return StripeGateway(
            secret_key=settings.STRIPE_SECRET_KEY,
            api_base=settings.STRIPE_API_BASE,
            api_version=settings.STRIPE_API_VERSION,
            timeout=settings.STRIPE_TIMEOUT_SECONDS,
        )

    if settings.demo_payments_allowed:
        from storefront.integrations.demo import DemoPaymentGateway
        logger.warning("STRIPE_SECRET_KEY not set: running payments in DEMO mode, no real charges")
        return DemoPaymentGateway()

    raise ConfigurationError(
        "Payment processing not configured. Set STRIPE_SECRET_KEY "
        "(demo payments are disabled outside DEBUG)."
    )


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the process-wide gateway."""
    global _gateway
    if _gateway is None:
        _gateway = build_payment_gateway(get_settings())
        logger.info(f"Payment gateway selected: {_gateway.name}")
    return _gateway


def reset_payment_gateway():
    """Forget the selected gateway (used when settings change, e.g. in tests)."""
    global _gateway
    _gateway = None
