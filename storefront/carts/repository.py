"""
Accès aux données pour la feature 'carts'.
Lecture robuste: lignes et produits sont lus séparément puis joints ici,
on ne dépend pas de la forme des sélections imbriquées PostgREST.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from .models import CartLine

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, name, price, sku, weight, dimensions, inventory_quantity"

# module storefront.carts.repository
def get_cart(client, cart_id: str) -> Optional[Dict[str, Any]]:
    res = (
        client.table("carts")
        .select("id, user_id, created_at, updated_at")
        .eq("id", cart_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def fetch_cart_items(client, cart_id: str) -> List[Dict[str, Any]]:
    res = (
        client.table("cart_items")
        .select("id, cart_id, product_id, quantity")
        .eq("cart_id", cart_id)
        .order("created_at")
        .execute()
    )
    return res.data or []

def fetch_products(client, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {id: produit} pour les ids donnés."""
    id_list = sorted({str(i) for i in ids if i})
    if not id_list:
        return {}
    res = client.table("products").select(PRODUCT_COLUMNS).in_("id", id_list).execute()
    return {str(p.get("id")): p for p in (res.data or [])}

def _to_line(item: Dict[str, Any], product: Dict[str, Any]) -> CartLine:
    return CartLine(
        id=str(item.get("id")),
        cart_id=str(item.get("cart_id")),
        product_id=str(item.get("product_id")),
        quantity=int(item.get("quantity") or 0),
        name=product.get("name") or "",
        sku=product.get("sku"),
        price=int(product.get("price") or 0),
        weight=product.get("weight"),
        dimensions=product.get("dimensions") or None,
        inventory_quantity=product.get("inventory_quantity"),
    )

def get_cart_lines(client, cart_id: str) -> List[CartLine]:
    items = fetch_cart_items(client, cart_id)
    products = fetch_products(client, (i.get("product_id") for i in items))
    lines: List[CartLine] = []
    for item in items:
        product = products.get(str(item.get("product_id")))
        if not product:
            logger.warning("carts.repository.get_cart_lines produit absent cart=%s product=%s", cart_id, item.get("product_id"))
            continue
        lines.append(_to_line(item, product))
    return lines

def get_cart_item(client, cart_id: str, product_id: str) -> Optional[Dict[str, Any]]:
    res = (
        client.table("cart_items")
        .select("id, cart_id, product_id, quantity")
        .eq("cart_id", cart_id)
        .eq("product_id", product_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def insert_cart_item(client, cart_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
    payload = {"cart_id": cart_id, "product_id": product_id, "quantity": quantity}
    res = client.table("cart_items").insert(payload).execute()
    rows = res.data or []
    return rows[0] if rows else payload

def update_cart_item_quantity(client, item_id: str, quantity: int) -> Optional[Dict[str, Any]]:
    res = client.table("cart_items").update({"quantity": quantity}).eq("id", item_id).execute()
    rows = res.data or []
    return rows[0] if rows else None

def clear_cart(client, cart_id: str) -> None:
    """Supprime toutes les lignes du panier (rejouable)."""
    client.table("cart_items").delete().eq("cart_id", cart_id).execute()
