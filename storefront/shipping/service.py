"""
Cas d'usage 'shipping': calcul et re-validation des tarifs, adresses, étiquettes, suivi.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from storefront.config import (
    DEFAULT_ITEM_DIMENSIONS_CM,
    DEFAULT_ITEM_WEIGHT_KG,
    FREE_SHIPPING_DOMESTIC_METHODS,
    FREE_SHIPPING_DOMESTIC_THRESHOLD,
    FREE_SHIPPING_INTERNATIONAL_METHODS,
    FREE_SHIPPING_INTERNATIONAL_THRESHOLD,
    WAREHOUSE_ADDRESS,
)
from storefront.errors import NoRatesAvailable, OrderNotFound, PreconditionFailed, ShippingMethodUnavailable
from storefront.orders import repository as orders_repo
from . import shippo_client
from .models import Dimensions, ShippingAddress, ShippingItem, ShippingRate
from .parcel import build_parcel

logger = logging.getLogger(__name__)

US_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")


def is_domestic(address: ShippingAddress) -> bool:
    return (address.country or "").upper() == str(WAREHOUSE_ADDRESS.get("country") or "US").upper()


def apply_free_shipping(rate: ShippingRate, address: ShippingAddress, order_value: Optional[int]) -> ShippingRate:
    """Met le tarif à zéro si le seuil de la zone est atteint et le service éligible."""
    if order_value is None:
        return rate
    if is_domestic(address):
        threshold, methods = FREE_SHIPPING_DOMESTIC_THRESHOLD, FREE_SHIPPING_DOMESTIC_METHODS
    else:
        threshold, methods = FREE_SHIPPING_INTERNATIONAL_THRESHOLD, FREE_SHIPPING_INTERNATIONAL_METHODS
    if order_value >= threshold and rate.service_code in methods:
        return rate.model_copy(update={"rate": 0, "free_shipping": True, "original_rate": rate.rate})
    return rate


def sort_rates(rates: Iterable[ShippingRate]) -> List[ShippingRate]:
    """Tarifs offerts d'abord, puis prix croissant."""
    return sorted(rates, key=lambda r: (r.rate != 0, r.rate))


def shipping_items_from_lines(lines) -> List[ShippingItem]:
    """Convertit des CartLine en articles expédiables (valeurs par défaut si poids/dimensions absents)."""
    items: List[ShippingItem] = []
    for line in lines:
        dims = dict(DEFAULT_ITEM_DIMENSIONS_CM)
        for k, v in (line.dimensions or {}).items():
            if k in dims and v:
                dims[k] = float(v)
        items.append(ShippingItem(
            product_id=line.product_id,
            quantity=line.quantity,
            weight=float(line.weight if line.weight is not None else DEFAULT_ITEM_WEIGHT_KG),
            dimensions=Dimensions(**dims),
        ))
    return items


def calculate_shipping_rates(address: ShippingAddress, items: Iterable[ShippingItem], order_value: Optional[int] = None) -> List[ShippingRate]:
    """
    Calcule les offres de livraison pour un colis unique représentatif.
    - NoRatesAvailable si Shippo ne renvoie aucun tarif exploitable
    - RateProviderError (propagée) si Shippo est injoignable ou refuse la requête
    """
    parcel = build_parcel(items)
    rates = shippo_client.create_shipment_rates(address, parcel)
    if not rates:
        logger.warning("shipping.calculate aucun tarif country=%s zip=%s", address.country, address.postal_code)
        raise NoRatesAvailable()
    return sort_rates(apply_free_shipping(r, address, order_value) for r in rates)


def find_rate_by_service(rates: Iterable[ShippingRate], service_code: str) -> ShippingRate:
    for rate in rates:
        if rate.service_code == service_code:
            return rate
    raise ShippingMethodUnavailable(service_code)


def get_shipping_rate(rate_id: str, address: ShippingAddress, order_value: Optional[int] = None) -> ShippingRate:
    """
    Re-résout une offre déjà cotée par son jeton (GET /rates/{id}).
    ShippingMethodUnavailable si Shippo ne connaît plus ce jeton.
    """
    if not rate_id:
        raise ShippingMethodUnavailable("(jeton absent)")
    rate = shippo_client.get_rate(rate_id)
    if rate is None:
        raise ShippingMethodUnavailable(rate_id)
    return apply_free_shipping(rate, address, order_value)


def validate_address(address: ShippingAddress) -> Dict[str, Any]:
    """
    Validation simple: champs requis, puis format du code postal US.
    Retour: {valid: bool, suggestions: [adresse corrigée]}
    """
    required = [address.address_line1, address.city, address.state, address.postal_code, address.country]
    if not all((v or "").strip() for v in required):
        return {"valid": False, "suggestions": []}
    if address.country == "US" and not US_ZIP_RE.match(address.postal_code.strip()):
        digits = re.sub(r"\D", "", address.postal_code)[:5]
        suggestion = address.model_copy(update={"postal_code": digits})
        return {"valid": False, "suggestions": [suggestion.model_dump()]}
    return {"valid": True, "suggestions": []}


def track_shipment(carrier: str, tracking_number: str) -> Dict[str, Any]:
    return shippo_client.track_shipment((carrier or "usps").lower(), tracking_number)


def generate_shipping_label(service_client, order_id: str, rate_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Achète l'étiquette d'une commande et enregistre tracking_number / label_url.
    Si la commande a déjà un numéro de suivi, renvoie l'étiquette existante sans nouvel achat.
    """
    order = orders_repo.get_order(service_client, order_id)
    if not order:
        raise OrderNotFound(order_id)
    if order.get("tracking_number"):
        return {
            "tracking_number": order.get("tracking_number"),
            "label_url": order.get("label_url"),
            "carrier": None,
            "cost": None,
            "existing": True,
        }

    token = rate_id or order.get("shipping_rate_id")
    if not token:
        raise PreconditionFailed("Aucun tarif de livraison enregistré pour cette commande")

    label = shippo_client.purchase_label(token)
    orders_repo.update_order(service_client, order_id, {
        "tracking_number": label.get("tracking_number"),
        "label_url": label.get("label_url"),
    })
    logger.info("shipping.label order=%s tracking=%s", order_id, label.get("tracking_number"))
    return {**label, "existing": False}
