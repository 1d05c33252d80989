"""Explicit payment gateway configuration handed to provider clients."""
from dataclasses import dataclass
from typing import Literal

from app.config import settings

GatewayMode = Literal["test", "production"]


@dataclass(frozen=True)
class PaymentGatewayConfig:
    """
    mode="test" never touches the provider: transactions and payouts are
    synthesized and treated as paid. mode="production" talks to the provider,
    optionally against its sandbox host.
    """
    mode: GatewayMode = "test"
    api_key: str = ""
    api_secret: str = ""
    sandbox: bool = False
    timeout: int = 30

    @property
    def is_test(self) -> bool:
        return self.mode == "test"

    @classmethod
    def from_settings(cls) -> "PaymentGatewayConfig":
        return cls(
            mode="test" if settings.threepay_test_mode else "production",
            api_key=settings.threepay_api_key,
            api_secret=settings.threepay_api_secret,
            sandbox=settings.threepay_sandbox,
            timeout=settings.threepay_timeout_seconds,
        )
