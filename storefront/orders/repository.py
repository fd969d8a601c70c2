"""
Accès aux données pour la feature 'orders'.
Les clients Supabase sont fournis par l'appelant (RLS utilisateur ou service-role).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from postgrest.exceptions import APIError

from storefront.errors import DuplicateOrder
from storefront.utils.db import is_unique_violation

logger = logging.getLogger(__name__)

# module storefront.orders.repository
def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _first(res) -> Optional[Dict[str, Any]]:
    rows = res.data or []
    if isinstance(rows, dict):
        return rows
    return rows[0] if rows else None

def get_order(client, order_id: str) -> Optional[Dict[str, Any]]:
    res = client.table("orders").select("*").eq("id", order_id).limit(1).execute()
    return _first(res)

def get_user_order(client, order_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    res = (
        client.table("orders")
        .select("*")
        .eq("id", order_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    return _first(res)

def get_order_by_payment_intent(client, payment_intent_id: str) -> Optional[Dict[str, Any]]:
    res = (
        client.table("orders")
        .select("*")
        .eq("stripe_payment_intent_id", payment_intent_id)
        .limit(1)
        .execute()
    )
    return _first(res)

def list_orders(client, user_id: Optional[str] = None, status: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    query = client.table("orders").select("*")
    if user_id:
        query = query.eq("user_id", user_id)
    if status:
        query = query.eq("status", status)
    res = query.order("created_at", desc=True).limit(limit).execute()
    return res.data or []

def get_order_items(client, order_id: str) -> List[Dict[str, Any]]:
    res = (
        client.table("order_items")
        .select("id, order_id, product_id, quantity, unit_price, total_price, inventory_applied_at")
        .eq("order_id", order_id)
        .execute()
    )
    return res.data or []

def get_items_for_orders(client, order_ids: Iterable[str]) -> Dict[str, List[Dict[str, Any]]]:
    ids = [str(i) for i in order_ids if i]
    if not ids:
        return {}
    res = (
        client.table("order_items")
        .select("id, order_id, product_id, quantity, unit_price, total_price, inventory_applied_at")
        .in_("order_id", ids)
        .execute()
    )
    grouped: Dict[str, List[Dict[str, Any]]] = {i: [] for i in ids}
    for row in res.data or []:
        grouped.setdefault(str(row.get("order_id")), []).append(row)
    return grouped

def insert_order(client, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insère une commande. La contrainte d'unicité sur stripe_payment_intent_id
    est la garantie d'idempotence: un doublon lève DuplicateOrder.
    """
    try:
        res = client.table("orders").insert(payload).execute()
    except APIError as e:
        if is_unique_violation(e):
            raise DuplicateOrder(payload.get("stripe_payment_intent_id") or "") from e
        logger.exception("orders.repository.insert_order failed pi=%s", payload.get("stripe_payment_intent_id"))
        raise
    row = _first(res)
    if not row:
        # Lecture après écriture si la représentation n'est pas renvoyée
        row = get_order_by_payment_intent(client, payload.get("stripe_payment_intent_id"))
    return row or {}

def insert_order_items(client, rows: List[Dict[str, Any]]) -> None:
    """Upsert idempotent: une ligne par (order_id, product_id), les doublons sont ignorés."""
    if not rows:
        return
    client.table("order_items").upsert(rows, on_conflict="order_id,product_id", ignore_duplicates=True).execute()

def adjust_inventory(client, product_id: str, delta: int) -> None:
    """Delta de stock atomique côté base (négatif = décrément)."""
    client.rpc("increment_inventory", {"p_product_id": product_id, "p_quantity": int(delta)}).execute()

def _merge_notes(current: Optional[str], note: str) -> str:
    # Rejeu d'un même événement: la note n'est pas dupliquée
    lines = [l for l in (current or "").split("\n") if l]
    if lines and lines[-1] == note:
        return "\n".join(lines)
    return "\n".join(lines + [note])

def _with_note(client, order_id: str, fields: Dict[str, Any], note: Optional[str]) -> Dict[str, Any]:
    payload = {**fields, "updated_at": _now_iso()}
    if note:
        current = get_order(client, order_id) or {}
        payload["notes"] = _merge_notes(current.get("notes"), note)
    return payload

def update_order(client, order_id: str, fields: Dict[str, Any], note: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """`note` est ajoutée à la suite des notes existantes (écarts de montant, survente...), jamais en remplacement."""
    payload = _with_note(client, order_id, fields, note)
    res = client.table("orders").update(payload).eq("id", order_id).execute()
    row = _first(res)
    if row is None:
        # Fallback: relire la ligne si l'update ne renvoie pas de représentation
        row = get_order(client, order_id)
    return row

def update_order_if_status(client, order_id: str, fields: Dict[str, Any], statuses: List[str], note: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Mise à jour conditionnelle (statut courant dans `statuses`).
    None si aucune ligne n'a été modifiée: la commande a changé d'état entre-temps.
    """
    payload = _with_note(client, order_id, fields, note)
    res = (
        client.table("orders")
        .update(payload)
        .eq("id", order_id)
        .in_("status", list(statuses))
        .execute()
    )
    return _first(res)

def claim_item_inventory(client, order_id: str, product_id: str) -> bool:
    """
    Réserve le décrément de stock d'une ligne: seul l'appel qui fait passer
    inventory_applied_at de null à une date obtient True.
    """
    res = (
        client.table("order_items")
        .update({"inventory_applied_at": _now_iso()})
        .eq("order_id", order_id)
        .eq("product_id", product_id)
        .is_("inventory_applied_at", "null")
        .execute()
    )
    return bool(res.data)

def release_item_inventory(client, order_id: str, product_id: str) -> None:
    """Annule la réservation après un décrément échoué, pour qu'une reprise le retente."""
    (
        client.table("order_items")
        .update({"inventory_applied_at": None})
        .eq("order_id", order_id)
        .eq("product_id", product_id)
        .execute()
    )

def mark_materialized(client, order_id: str) -> None:
    client.table("orders").update({"materialized_at": _now_iso()}).eq("id", order_id).execute()
