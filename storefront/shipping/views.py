import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from storefront.addresses.repository import require_address
from storefront.carts.service import get_cart_snapshot
from storefront.errors import AppError, EmptyCart, ValidationError
from storefront.utils.db import get_scoped_client, get_service_client
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_admin
from . import service as shipping_service
from .models import ShippingAddress, ShippingRateRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/shipping", tags=["Shipping API"])


# module storefront.shipping.views
@router.post("/calculate", dependencies=[Depends(optional_rate_limit(times=30, seconds=60))])
def calculate_rates(body: ShippingRateRequest, client=Depends(get_scoped_client)):
    """
    Offres de livraison triées (offertes d'abord, puis prix croissant).
    - Entrée: {address, items, order_value} ou {address_id, cart_id}
    - Avec cart_id: articles et valeur de commande lus depuis le panier courant
    """
    try:
        address = body.address
        if address is None and body.address_id:
            address = require_address(client, body.address_id)
        if address is None:
            raise ValidationError("Adresse de livraison requise")

        items = body.items
        order_value = body.order_value
        if body.cart_id:
            snapshot = get_cart_snapshot(client, body.cart_id)
            if snapshot.is_empty:
                raise EmptyCart(body.cart_id)
            items = shipping_service.shipping_items_from_lines(snapshot.items)
            order_value = snapshot.subtotal
        if not items:
            raise ValidationError("Aucun article à expédier")

        rates = shipping_service.calculate_shipping_rates(address, items, order_value=order_value)
        return {"rates": [r.model_dump() for r in rates]}
    except AppError:
        raise
    except Exception:
        logger.exception("Erreur calculate_rates")
        raise HTTPException(status_code=500, detail="Erreur lors du calcul des frais de port")


@router.post("/validate-address")
def validate_address(address: ShippingAddress):
    return shipping_service.validate_address(address)


@router.get("/tracking/{carrier}/{tracking_number}")
def track(carrier: str, tracking_number: str):
    return shipping_service.track_shipment(carrier, tracking_number)


@router.get("/tracking/{tracking_number}")
def track_default_carrier(tracking_number: str, carrier: Optional[str] = "usps"):
    return shipping_service.track_shipment(carrier or "usps", tracking_number)


@router.post("/orders/{order_id}/create-label")
def create_label(
    order_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    service_client=Depends(get_service_client),
):
    """Achète l'étiquette d'une commande (admin). Renvoie l'étiquette existante si déjà achetée."""
    label = shipping_service.generate_shipping_label(service_client, order_id)
    logger.info("shipping.create_label order=%s by=%s", order_id, admin.get("id"))
    return label
