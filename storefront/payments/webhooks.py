"""
Dispatcher des événements Stripe (webhook).

Chaque événement est traité puis résumé par un WebhookResult. Le webhook répond
toujours 200 à Stripe une fois la signature validée: les échecs de traitement sont
journalisés (outcome=handled_with_failure), jamais propagés.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple

from storefront.orders import repository as orders_repo
from storefront.orders.materializer import materialize_order
from storefront.orders.status import PAYMENT_FAILABLE_STATUSES, OrderStatus, dispute_status
from . import stripe_client
from .metadata import extract_metadata

logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    HANDLED = "handled"
    HANDLED_WITH_FAILURE = "handled_with_failure"
    UNRECOGNIZED = "unrecognized"


class WebhookResult(NamedTuple):
    event_type: str
    outcome: WebhookOutcome
    detail: Optional[str] = None


def _ts(seconds: Any) -> Optional[str]:
    if not seconds:
        return None
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc).isoformat()


def _intent_id_from_charge_ref(obj: Dict[str, Any]) -> Optional[str]:
    """
    Litiges et alertes Radar référencent une charge; le PaymentIntent est lu sur
    l'objet s'il y figure, sinon via la charge.
    """
    pi = obj.get("payment_intent")
    if isinstance(pi, dict):
        pi = pi.get("id")
    if pi:
        return str(pi)
    charge_id = obj.get("charge")
    if isinstance(charge_id, dict):
        charge_id = charge_id.get("id")
    if not charge_id:
        return None
    charge = stripe_client.retrieve_charge(str(charge_id))
    pi = charge.get("payment_intent")
    return str(pi) if pi else None


def _order_for(service_client, payment_intent_id: Optional[str], event_type: str) -> Optional[Dict[str, Any]]:
    if not payment_intent_id:
        logger.warning("payments.webhook %s sans PaymentIntent associé", event_type)
        return None
    order = orders_repo.get_order_by_payment_intent(service_client, payment_intent_id)
    if not order:
        logger.warning("payments.webhook %s aucune commande pour pi=%s", event_type, payment_intent_id)
    return order


# --- Handlers ---

def handle_payment_intent_succeeded(obj: Dict[str, Any], service_client) -> str:
    if not extract_metadata(obj).cart_id:
        logger.info("payments.webhook payment_intent.succeeded sans cart_id pi=%s, ignoré", obj.get("id"))
        return "no_cart"
    # Contexte système: lectures et écritures via le client service-role
    result = materialize_order(obj, service_client, service_client)
    return f"order={result.order_id} created={result.created}"


def handle_charge_succeeded(obj: Dict[str, Any], service_client) -> str:
    pi = obj.get("payment_intent")
    order = _order_for(service_client, str(pi) if pi else None, "charge.succeeded")
    if not order:
        return "no_order"
    orders_repo.update_order(service_client, order["id"], {
        "receipt_url": obj.get("receipt_url"),
        "payment_method_details": obj.get("payment_method_details") or {},
    })
    return f"order={order['id']}"


def handle_payment_failed(obj: Dict[str, Any], service_client) -> str:
    order = _order_for(service_client, obj.get("id"), "payment_intent.payment_failed")
    if not order:
        return "no_order"
    if order.get("status") not in PAYMENT_FAILABLE_STATUSES:
        return f"order={order['id']} status={order.get('status')} inchangé"
    message = (obj.get("last_payment_error") or {}).get("message") or "Paiement refusé"
    orders_repo.update_order_if_status(
        service_client,
        order["id"],
        {"status": OrderStatus.PAYMENT_FAILED.value},
        PAYMENT_FAILABLE_STATUSES,
        note=message,
    )
    return f"order={order['id']}"


def _refund_amounts(obj: Dict[str, Any]) -> Tuple[int, int]:
    """
    (montant payé, montant remboursé). Une charge porte amount_refunded; un PaymentIntent
    non, on lit alors sa dernière charge.
    """
    if obj.get("object") == "charge":
        return int(obj.get("amount") or 0), int(obj.get("amount_refunded") or 0)
    charge = obj.get("latest_charge")
    if isinstance(charge, str) and charge:
        charge = stripe_client.retrieve_charge(charge)
    if isinstance(charge, dict) and charge.get("amount_refunded") is not None:
        return int(charge.get("amount") or 0), int(charge.get("amount_refunded") or 0)
    amount = int(obj.get("amount_received") or obj.get("amount") or 0)
    return amount, amount


def handle_refund(obj: Dict[str, Any], service_client) -> str:
    # charge.refunded: l'objet est une charge; payment_intent.refunded: un PaymentIntent
    if obj.get("object") == "charge" or str(obj.get("id") or "").startswith(("ch_", "py_")):
        obj = {"object": "charge", **obj}
        pi = obj.get("payment_intent")
    else:
        pi = obj.get("id")
    order = _order_for(service_client, str(pi) if pi else None, "refund")
    if not order:
        return "no_order"

    status = OrderStatus.REFUNDED.value
    note = "Commande intégralement remboursée"
    amount, refunded = _refund_amounts(obj)
    if amount and refunded and refunded < amount:
        status = OrderStatus.PARTIALLY_REFUNDED.value
        note = f"Commande partiellement remboursée ({refunded / amount * 100:.2f}%)"
    orders_repo.update_order(service_client, order["id"], {"status": status}, note=note)
    return f"order={order['id']} status={status}"


def handle_dispute_created(obj: Dict[str, Any], service_client) -> str:
    order = _order_for(service_client, _intent_id_from_charge_ref(obj), "charge.dispute.created")
    if not order:
        return "no_order"
    orders_repo.update_order(service_client, order["id"], {
        "status": OrderStatus.DISPUTED.value,
        "dispute_status": obj.get("status"),
        "dispute_reason": obj.get("reason"),
        "dispute_evidence": obj.get("evidence"),
        "dispute_created_at": _ts(obj.get("created")),
    }, note=f"Litige reçu: {obj.get('reason')}")
    return f"order={order['id']}"


def handle_dispute_updated(obj: Dict[str, Any], service_client) -> str:
    order = _order_for(service_client, _intent_id_from_charge_ref(obj), "charge.dispute.updated")
    if not order:
        return "no_order"
    orders_repo.update_order(service_client, order["id"], {
        "dispute_status": obj.get("status"),
        "dispute_evidence": obj.get("evidence"),
    }, note=f"Litige mis à jour: {obj.get('status')}")
    return f"order={order['id']}"


def handle_dispute_closed(obj: Dict[str, Any], service_client) -> str:
    order = _order_for(service_client, _intent_id_from_charge_ref(obj), "charge.dispute.closed")
    if not order:
        return "no_order"
    outcome = obj.get("status") or ""
    if outcome == "won":
        status, note = OrderStatus.PAID.value, "Litige gagné"
    elif outcome == "lost":
        status, note = OrderStatus.CHARGEBACK.value, "Litige perdu: rétrofacturation appliquée"
    else:
        status, note = dispute_status(outcome), f"Litige clos avec le statut: {outcome}"
    orders_repo.update_order(service_client, order["id"], {
        "status": status,
        "dispute_status": outcome,
        "dispute_resolved_at": datetime.now(timezone.utc).isoformat(),
    }, note=note)
    return f"order={order['id']} status={status}"


def _fraud_details(obj: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": obj.get("id"),
        "created": obj.get("created"),
        "fraud_type": obj.get("fraud_type"),
        "actionable": obj.get("actionable"),
        "reason": "Fraude potentielle détectée par Stripe Radar",
    }


# Alerte Radar: la commande est signalée (fraud_warning) sans toucher à son statut,
# une commande expédiée ou livrée le reste.
def handle_fraud_warning_created(obj: Dict[str, Any], service_client) -> str:
    order = _order_for(service_client, _intent_id_from_charge_ref(obj), "radar.early_fraud_warning.created")
    if not order:
        return "no_order"
    orders_repo.update_order(service_client, order["id"], {
        "fraud_warning": True,
        "fraud_warning_details": _fraud_details(obj),
    }, note=f"ALERTE FRAUDE: {obj.get('fraud_type')}")
    return f"order={order['id']}"


def handle_fraud_warning_updated(obj: Dict[str, Any], service_client) -> str:
    order = _order_for(service_client, _intent_id_from_charge_ref(obj), "radar.early_fraud_warning.updated")
    if not order:
        return "no_order"
    orders_repo.update_order(service_client, order["id"], {
        "fraud_warning": True,
        "fraud_warning_details": _fraud_details(obj),
    }, note=f"Alerte fraude mise à jour: {obj.get('fraud_type')}")
    return f"order={order['id']}"


HANDLERS: Dict[str, Callable[[Dict[str, Any], Any], str]] = {
    "payment_intent.succeeded": handle_payment_intent_succeeded,
    "charge.succeeded": handle_charge_succeeded,
    "payment_intent.payment_failed": handle_payment_failed,
    "payment_intent.refunded": handle_refund,
    "charge.refunded": handle_refund,
    "charge.dispute.created": handle_dispute_created,
    "charge.dispute.updated": handle_dispute_updated,
    "charge.dispute.closed": handle_dispute_closed,
    "radar.early_fraud_warning.created": handle_fraud_warning_created,
    "radar.early_fraud_warning.updated": handle_fraud_warning_updated,
}


def dispatch_event(event: Dict[str, Any], service_client) -> WebhookResult:
    """
    Aiguille un événement vérifié vers son handler.
    Ne lève jamais: l'échec d'un handler est journalisé et résumé dans le résultat.
    """
    event_type = str((event or {}).get("type") or "")
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info("payments.webhook événement ignoré type=%s id=%s", event_type, (event or {}).get("id"))
        return WebhookResult(event_type, WebhookOutcome.UNRECOGNIZED)

    obj = ((event.get("data") or {}).get("object")) or {}
    try:
        detail = handler(obj, service_client)
    except Exception as e:
        logger.exception("payments.webhook échec type=%s id=%s", event_type, event.get("id"))
        return WebhookResult(event_type, WebhookOutcome.HANDLED_WITH_FAILURE, str(e))
    logger.info("payments.webhook type=%s id=%s %s", event_type, event.get("id"), detail)
    return WebhookResult(event_type, WebhookOutcome.HANDLED, detail)
