"""Commerce service gateways used by the bulk order processor."""

from .base import CommerceGateway, ProgressListener
from .catalog import CatalogGateway, CatalogProduct, load_catalog
from .http_gateway import HttpCommerceGateway

__all__ = [
    "CatalogGateway",
    "CatalogProduct",
    "CommerceGateway",
    "HttpCommerceGateway",
    "ProgressListener",
    "load_catalog",
]
