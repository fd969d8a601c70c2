"""
Cas d'usage 'payments': orchestre panier, tarifs, taxe, Stripe et matérialisation.
Le montant facturé est toujours recalculé côté serveur, jamais repris du client.
"""
import logging
from typing import Any, Dict, Optional

from storefront.addresses.repository import require_address
from storefront.carts.service import get_cart_snapshot
from storefront.config import STRIPE_CURRENCY
from storefront.errors import AuthorizationError, EmptyCart
from storefront.orders.materializer import materialize_order
from storefront.shipping import service as shipping_service
from . import stripe_client
from .metadata import extract_metadata, make_metadata
from .pricing import compute_breakdown

logger = logging.getLogger(__name__)


def create_payment_intent(
    scoped_client,
    *,
    user_id: Optional[str],
    cart_id: str,
    shipping_address_id: str,
    billing_address_id: str,
    shipping_method: str,
    shipping_rate_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    1) panier (vide -> EmptyCart)  2) adresses  3) tarifs recalculés sur le panier courant
    4) offre correspondant à la méthode choisie (sinon ShippingMethodUnavailable)
    5-6) taxe et total  7) PaymentIntent avec les métadonnées de reconstruction.
    Le jeton de tarif embarqué est celui de l'offre fraîchement cotée.
    """
    snapshot = get_cart_snapshot(scoped_client, cart_id)
    if snapshot.is_empty:
        raise EmptyCart(cart_id)

    shipping_address = require_address(scoped_client, shipping_address_id)
    require_address(scoped_client, billing_address_id)

    rates = shipping_service.calculate_shipping_rates(
        shipping_address,
        shipping_service.shipping_items_from_lines(snapshot.items),
        order_value=snapshot.subtotal,
    )
    rate = shipping_service.find_rate_by_service(rates, shipping_method)
    if shipping_rate_id and shipping_rate_id != rate.rate_id:
        logger.info("payments.create_intent jeton client remplacé par l'offre recalculée method=%s", shipping_method)

    amounts = compute_breakdown(snapshot.subtotal, rate.rate)
    meta = make_metadata(
        cart_id=cart_id,
        user_id=user_id,
        shipping_address_id=shipping_address_id,
        billing_address_id=billing_address_id,
        shipping_method=rate.service_code,
        shipping_rate_id=rate.rate_id,
        subtotal=amounts["subtotal"],
        tax=amounts["tax"],
        shipping_cost=amounts["shipping"],
        extra=metadata,
    )
    intent = stripe_client.create_payment_intent(
        amount=amounts["total"],
        currency=STRIPE_CURRENCY,
        metadata=meta,
        customer=customer_id,
    )
    logger.info("payments.create_intent pi=%s cart=%s total=%s", intent.get("id"), cart_id, amounts["total"])
    return {
        "client_secret": intent.get("client_secret"),
        "payment_intent_id": intent.get("id"),
        "amount": amounts["total"],
        "subtotal": amounts["subtotal"],
        "tax": amounts["tax"],
        "shipping": amounts["shipping"],
        "currency": STRIPE_CURRENCY,
        "shipping_rate": rate.model_dump(),
    }


def confirm_payment_intent(scoped_client, service_client, payment_intent_id: str, user_id: Optional[str]) -> Dict[str, Any]:
    """
    Chemin de confirmation synchrone (alternative au webhook).
    - 403 si le PaymentIntent appartient à un autre utilisateur
    - Paiement réussi et cart_id présent: matérialise la commande (idempotent)
    """
    intent = stripe_client.retrieve_payment_intent(payment_intent_id)
    meta = extract_metadata(intent)
    if meta.user_id and user_id and meta.user_id != user_id:
        raise AuthorizationError("Paiement appartenant à un autre utilisateur")

    status = intent.get("status") or ""
    result: Dict[str, Any] = {
        "status": status,
        "payment_intent_id": payment_intent_id,
        "amount": intent.get("amount"),
        "currency": intent.get("currency"),
        "order_id": None,
        "created": False,
    }
    if status == "succeeded" and meta.cart_id:
        materialized = materialize_order(intent, scoped_client, service_client)
        result["order_id"] = materialized.order_id
        result["created"] = materialized.created
    return result
