"""
Matérialisation d'une commande à partir d'un PaymentIntent réussi.

Appelée par la confirmation synchrone et par le webhook, éventuellement en même temps:
le résultat est identique quel que soit le chemin. L'unicité de
orders.stripe_payment_intent_id garantit au plus une commande par paiement;
l'insertion perdante est absorbée et la commande gagnante est renvoyée.

Étapes après l'insertion, toutes rejouables:
- lignes de commande en upsert
- stock décrémenté par delta atomique (increment_inventory), une seule fois par ligne
  grâce à order_items.inventory_applied_at
- panier vidé
- materialized_at renseigné en dernier

Une commande trouvée avec materialized_at vide a été interrompue: l'appel suivant
(webhook rejoué ou confirmation) termine ces étapes avant de la renvoyer.
"""
import logging
from typing import Any, Dict, List, NamedTuple, Optional

from storefront.addresses.repository import require_address
from storefront.carts.service import get_cart_snapshot
from storefront.carts import repository as carts_repo
from storefront.config import AMOUNT_DRIFT_POLICY
from storefront.errors import AmountMismatch, CartNotFound, DuplicateOrder, EmptyCart, ShippingMethodMismatch, ValidationError
from storefront.payments.metadata import CheckoutMetadata, extract_metadata
from storefront.payments.pricing import compute_tax
from storefront.shipping import service as shipping_service
from . import repository
from .status import OrderStatus

logger = logging.getLogger(__name__)


class MaterializationResult(NamedTuple):
    order_id: str
    created: bool


def _item_rows(order_id: str, lines) -> List[Dict[str, Any]]:
    # Prix figés au moment de l'achat
    return [
        {
            "order_id": order_id,
            "product_id": line.product_id,
            "quantity": line.quantity,
            "unit_price": line.price,
            "total_price": line.line_total,
        }
        for line in lines
    ]


def _complete(service_client, order_id: str, rows: List[Dict[str, Any]], cart_id: Optional[str]) -> bool:
    """Étapes 7 à 10. False si un décrément de stock a échoué (materialized_at reste vide)."""
    repository.insert_order_items(service_client, rows)

    failed: List[str] = []
    for row in rows:
        product_id = row["product_id"]
        if not repository.claim_item_inventory(service_client, order_id, product_id):
            continue
        try:
            repository.adjust_inventory(service_client, product_id, -int(row["quantity"]))
        except Exception:
            logger.exception("orders.materialize décrément de stock échoué order=%s product=%s", order_id, product_id)
            repository.release_item_inventory(service_client, order_id, product_id)
            failed.append(product_id)

    if cart_id:
        carts_repo.clear_cart(service_client, cart_id)

    if failed:
        logger.error("orders.materialize incomplète order=%s produits=%s", order_id, failed)
        return False
    repository.mark_materialized(service_client, order_id)
    return True


def _resume(order: Dict[str, Any], meta: CheckoutMetadata, scoped_client, service_client) -> None:
    order_id = str(order["id"])
    rows = repository.get_order_items(service_client, order_id)
    if not rows and meta.cart_id:
        try:
            snapshot = get_cart_snapshot(scoped_client, meta.cart_id)
        except CartNotFound:
            snapshot = None
        if snapshot is not None and not snapshot.is_empty:
            rows = _item_rows(order_id, snapshot.items)
    if not rows:
        logger.error("orders.materialize reprise impossible order=%s: ni lignes ni panier", order_id)
        return
    logger.warning("orders.materialize reprise de la commande interrompue order=%s", order_id)
    _complete(service_client, order_id, rows, meta.cart_id)


def _existing(scoped_client, service_client, payment_intent_id: str, meta: CheckoutMetadata) -> Optional[MaterializationResult]:
    order = repository.get_order_by_payment_intent(service_client, payment_intent_id)
    if not order:
        return None
    if not order.get("materialized_at"):
        _resume(order, meta, scoped_client, service_client)
    return MaterializationResult(str(order["id"]), False)


def materialize_order(intent: Dict[str, Any], scoped_client, service_client, drift_policy: Optional[str] = None) -> MaterializationResult:
    """
    Crée la commande d'un PaymentIntent réussi, ou renvoie celle qui existe déjà.
    - scoped_client: lectures (panier, adresses); service_client: écritures système
    - Erreurs: EmptyCart, CartNotFound, AddressNotFound, ShippingMethodUnavailable,
      ShippingMethodMismatch, AmountMismatch (politique "reject")
    """
    pi_id = str(intent.get("id") or "")
    if not pi_id:
        raise ValidationError("PaymentIntent sans identifiant")
    policy = (drift_policy or AMOUNT_DRIFT_POLICY or "flag").lower()
    meta = extract_metadata(intent)

    # 1) Idempotence: commande déjà créée pour ce paiement
    found = _existing(scoped_client, service_client, pi_id, meta)
    if found:
        return found

    if not meta.cart_id:
        raise ValidationError("Métadonnées incomplètes: cart_id manquant")

    # 2) Panier courant. Vide: une invocation concurrente vient peut-être de le vider
    snapshot = get_cart_snapshot(scoped_client, meta.cart_id)
    if snapshot.is_empty:
        found = _existing(scoped_client, service_client, pi_id, meta)
        if found:
            return found
        raise EmptyCart(meta.cart_id)

    # 3) Adresses
    shipping_address = require_address(scoped_client, meta.shipping_address_id)
    require_address(scoped_client, meta.billing_address_id)

    # 4) Le jeton de tarif doit toujours correspondre à la méthode payée
    rate = shipping_service.get_shipping_rate(meta.shipping_rate_id, shipping_address, order_value=snapshot.subtotal)
    if rate.service_code != meta.shipping_method:
        logger.error(
            "orders.materialize méthode incohérente pi=%s attendu=%s obtenu=%s",
            pi_id, meta.shipping_method, rate.service_code,
        )
        raise ShippingMethodMismatch(meta.shipping_method or "", rate.service_code)

    # 5) Montants recalculés; le total enregistré reste le montant autorisé
    subtotal = snapshot.subtotal
    tax = compute_tax(subtotal)
    shipping_cost = rate.rate
    authorized = int(intent.get("amount") or 0)
    computed = subtotal + tax + shipping_cost

    notes: List[str] = []
    status = OrderStatus.PAID.value
    if computed != authorized:
        if policy == "reject":
            logger.error("orders.materialize montant rejeté pi=%s autorisé=%s recalculé=%s", pi_id, authorized, computed)
            raise AmountMismatch(authorized, computed)
        logger.warning("orders.materialize écart de montant pi=%s autorisé=%s recalculé=%s", pi_id, authorized, computed)
        status = OrderStatus.FLAGGED_FOR_REVIEW.value
        notes.append(f"Écart de montant: autorisé {authorized}, recalculé {computed}")

    oversold = [line for line in snapshot.items if line.inventory_quantity is not None and line.inventory_quantity < line.quantity]
    for line in oversold:
        logger.warning(
            "orders.materialize survente product=%s stock=%s demandé=%s pi=%s",
            line.product_id, line.inventory_quantity, line.quantity, pi_id,
        )
        notes.append(f"Survente {line.product_id}: stock {line.inventory_quantity}, commandé {line.quantity}")

    # 6) Insertion; le doublon concurrent est absorbé
    payload = {
        "user_id": meta.user_id,
        "status": status,
        "total_amount": authorized,
        "subtotal": subtotal,
        "tax": tax,
        "shipping_cost": shipping_cost,
        "discount_amount": 0,
        "stripe_payment_intent_id": pi_id,
        "billing_address_id": meta.billing_address_id,
        "shipping_address_id": meta.shipping_address_id,
        "shipping_method": meta.shipping_method,
        "shipping_rate_id": meta.shipping_rate_id,
        "tracking_number": None,
        "notes": "\n".join(notes) or None,
    }
    try:
        order = repository.insert_order(service_client, payload)
    except DuplicateOrder:
        logger.info("orders.materialize doublon absorbé pi=%s", pi_id)
        winner = repository.get_order_by_payment_intent(service_client, pi_id)
        if not winner:
            raise
        return MaterializationResult(str(winner["id"]), False)

    order_id = str(order["id"])

    # 7-10) Lignes, stock (une fois par ligne), panier vidé, materialized_at
    _complete(service_client, order_id, _item_rows(order_id, snapshot.items), meta.cart_id)

    logger.info("orders.materialize created order=%s pi=%s total=%s status=%s", order_id, pi_id, authorized, status)
    return MaterializationResult(order_id, True)
