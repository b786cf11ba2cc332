from backoffice.business.finance.calculator import (
    DocumentTotals,
    PricedItem,
    document_totals,
    line_amount,
    price_items,
    round_cents,
    to_amount,
)
from backoffice.business.finance.items import ITEMS_SCHEMA_VERSION, decode_items, encode_items

__all__ = [
    "DocumentTotals",
    "ITEMS_SCHEMA_VERSION",
    "PricedItem",
    "decode_items",
    "document_totals",
    "encode_items",
    "line_amount",
    "price_items",
    "round_cents",
    "to_amount",
]
