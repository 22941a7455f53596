"""KIS OpenAPI integration (paper/live).

The TR_ID/endpoint table lives in `routing`; everything else is built on top of
one `KISClient` per account:

- OAuth2 access token issuance with proactive renewal and a 1/min issuance guard
- Hashkey signing for order-mutating bodies
- Domestic/overseas equity, domestic/overseas derivatives and bonds
"""
from .bond import Bond
from .broker import AccountSnapshot, Broker, KISBroker
from .client import KISClient
from .domestic_future import DomesticFuture
from .domestic_stock import DomesticStock
from .overseas_future import OverseasFuture
from .overseas_stock import OverseasStock
from .settings import KISSettings

__all__ = [
    "AccountSnapshot",
    "Bond",
    "Broker",
    "DomesticFuture",
    "DomesticStock",
    "KISBroker",
    "KISClient",
    "KISSettings",
    "OverseasFuture",
    "OverseasStock",
]
