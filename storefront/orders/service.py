"""
Cas d'usage 'orders': consultation, annulation client et mise à jour de statut (admin).
"""
import logging
from typing import Any, Dict, List, Optional

from storefront.errors import OrderNotCancelable, OrderNotFound, ValidationError
from storefront.shipping import service as shipping_service
from . import repository
from .status import ALL_STATUSES, CANCELABLE_STATUSES, OrderStatus

logger = logging.getLogger(__name__)


def _with_items(client, orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    items = repository.get_items_for_orders(client, [o.get("id") for o in orders])
    return [{**o, "items": items.get(str(o.get("id")), [])} for o in orders]


def list_user_orders(client, user_id: str, status: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    return _with_items(client, repository.list_orders(client, user_id=user_id, status=status, limit=limit))


def list_all_orders(service_client, status: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
    return _with_items(service_client, repository.list_orders(service_client, status=status, limit=limit))


def get_order(client, order_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
    """Commande + lignes. Avec user_id, la commande doit appartenir à cet utilisateur."""
    if user_id:
        order = repository.get_user_order(client, order_id, user_id)
    else:
        order = repository.get_order(client, order_id)
    if not order:
        raise OrderNotFound(order_id)
    return {**order, "items": repository.get_order_items(client, order_id)}


def get_order_by_payment_intent(client, payment_intent_id: str) -> Dict[str, Any]:
    order = repository.get_order_by_payment_intent(client, payment_intent_id)
    if not order:
        raise OrderNotFound(payment_intent_id)
    return {**order, "items": repository.get_order_items(client, order["id"])}


def cancel_order(scoped_client, service_client, order_id: str, user_id: str) -> Dict[str, Any]:
    """
    Annulation par le client.
    - OrderNotFound si la commande n'est pas la sienne
    - OrderNotCancelable hors pending/paid/processing
    - Mise à jour conditionnelle sur le statut courant, puis remise en stock.
      Un échec de remise en stock est journalisé sans annuler l'annulation.
    """
    order = repository.get_user_order(scoped_client, order_id, user_id)
    if not order:
        raise OrderNotFound(order_id)
    if order.get("status") not in CANCELABLE_STATUSES:
        raise OrderNotCancelable(order_id, str(order.get("status")))

    updated = repository.update_order_if_status(
        service_client, order_id, {"status": OrderStatus.CANCELLED.value}, CANCELABLE_STATUSES
    )
    if not updated:
        current = repository.get_order(service_client, order_id) or {}
        raise OrderNotCancelable(order_id, str(current.get("status")))

    for item in repository.get_order_items(service_client, order_id):
        try:
            repository.adjust_inventory(service_client, item["product_id"], int(item.get("quantity") or 0))
        except Exception:
            logger.exception("orders.cancel remise en stock échouée order=%s product=%s", order_id, item.get("product_id"))

    logger.info("orders.cancel order=%s user=%s", order_id, user_id)
    return updated


def update_order_status(service_client, order_id: str, status: str, tracking_number: Optional[str] = None, notes: Optional[str] = None) -> Dict[str, Any]:
    """
    Mise à jour administrateur vers n'importe quel statut connu.
    Passage à 'shipped' sans numéro de suivi: achat de l'étiquette avec le jeton de tarif enregistré.
    """
    if status not in ALL_STATUSES:
        raise ValidationError(f"Statut invalide: {status}")
    order = repository.get_order(service_client, order_id)
    if not order:
        raise OrderNotFound(order_id)

    fields: Dict[str, Any] = {"status": status}
    if tracking_number:
        fields["tracking_number"] = tracking_number
    if notes is not None:
        fields["notes"] = notes

    if status == OrderStatus.SHIPPED.value and not tracking_number and not order.get("tracking_number"):
        label = shipping_service.generate_shipping_label(service_client, order_id, order.get("shipping_rate_id"))
        fields["tracking_number"] = label.get("tracking_number")
        if label.get("label_url"):
            fields["label_url"] = label.get("label_url")

    updated = repository.update_order(service_client, order_id, fields)
    logger.info("orders.update_status order=%s %s -> %s", order_id, order.get("status"), status)
    return updated or {**order, **fields}
