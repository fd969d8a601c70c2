"""
Heuristique de colisage: un seul colis représentatif pour tout le panier.
"""
from typing import Iterable, List

from storefront.config import PACKING_INEFFICIENCY, MIN_PARCEL_WEIGHT_KG
from storefront.errors import ValidationError
from .models import Parcel, ShippingItem


def build_parcel(items: Iterable[ShippingItem], inefficiency: float = PACKING_INEFFICIENCY) -> Parcel:
    """
    - Un seul article en quantité 1: le colis reprend ses dimensions.
    - Sinon: volume total x marge d'inefficacité, et une boîte qui contient au moins
      la plus grande dimension de chaque axe.
    """
    lines: List[ShippingItem] = list(items or [])
    if not lines:
        raise ValidationError("Aucun article à expédier")

    weight = sum(i.weight * i.quantity for i in lines)
    weight = max(round(weight, 3), MIN_PARCEL_WEIGHT_KG)

    if len(lines) == 1 and lines[0].quantity == 1:
        d = lines[0].dimensions
        return Parcel(length=d.length, width=d.width, height=d.height, weight=weight)

    volume = sum(i.dimensions.length * i.dimensions.width * i.dimensions.height * i.quantity for i in lines)
    packed_volume = volume * max(inefficiency, 1.0)
    side = packed_volume ** (1.0 / 3.0)

    length = max(max(i.dimensions.length for i in lines), side)
    width = max(max(i.dimensions.width for i in lines), side)
    height = max(max(i.dimensions.height for i in lines), packed_volume / (length * width))

    return Parcel(
        length=round(length, 1),
        width=round(width, 1),
        height=round(height, 1),
        weight=weight,
    )
