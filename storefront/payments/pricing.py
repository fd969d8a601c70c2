"""
Règles de prix: taxe forfaitaire et total autorisé (unités mineures).
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from storefront.config import TAX_RATE


def compute_tax(subtotal: int, rate: Optional[float] = None) -> int:
    """Taxe = subtotal x taux, arrondie au cent le plus proche (demi vers le haut)."""
    rate = TAX_RATE if rate is None else rate
    value = Decimal(int(subtotal)) * Decimal(str(rate))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_breakdown(subtotal: int, shipping: int, rate: Optional[float] = None) -> Dict[str, int]:
    tax = compute_tax(subtotal, rate)
    return {
        "subtotal": int(subtotal),
        "tax": tax,
        "shipping": int(shipping),
        "total": int(subtotal) + tax + int(shipping),
    }
