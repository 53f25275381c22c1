"""Platform adapters for Indonesian e-commerce and service platforms."""

from .shopee import SHOPEE_CONFIG, ShopeeAdapter
from .tokopedia import TOKOPEDIA_CONFIG, TokopediaAdapter
from .lazada import LAZADA_CONFIG, LazadaAdapter
from .blibli import BLIBLI_CONFIG, BlibliAdapter
from .traveloka import TRAVELOKA_CONFIG, TravelokaAdapter
from .grab import GRAB_CONFIG, GrabAdapter

__all__ = [
    # Marketplaces
    "ShopeeAdapter",
    "TokopediaAdapter",
    "LazadaAdapter",
    "BlibliAdapter",
    # Travel and services
    "TravelokaAdapter",
    "GrabAdapter",
    # Configs
    "SHOPEE_CONFIG",
    "TOKOPEDIA_CONFIG",
    "LAZADA_CONFIG",
    "BLIBLI_CONFIG",
    "TRAVELOKA_CONFIG",
    "GRAB_CONFIG",
]
