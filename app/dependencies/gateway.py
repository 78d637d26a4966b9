from functools import lru_cache

from app.config import settings
from app.services.cashfree_client import CashfreeClient, GatewayConfig


@lru_cache(maxsize=1)
def get_payment_gateway() -> CashfreeClient:
    # one client (and one pooled requests.Session) per process
    return CashfreeClient(GatewayConfig.from_settings(settings))
