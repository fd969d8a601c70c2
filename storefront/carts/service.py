"""
Cas d'usage 'carts': instantané du panier et ajout d'article.
"""
import logging

from postgrest.exceptions import APIError

from storefront.errors import CartNotFound, InsufficientInventory, NotFoundError, ValidationError
from storefront.utils.db import is_unique_violation
from . import repository
from .models import CartLine, CartSnapshot

logger = logging.getLogger(__name__)


def get_cart_snapshot(client, cart_id: str) -> CartSnapshot:
    """
    Lit le panier et ses lignes au prix courant des produits.
    - CartNotFound si le panier n'existe pas (ou n'est pas visible via RLS)
    - Un panier vide n'est pas une erreur: items=[] et subtotal=0
    """
    cart = repository.get_cart(client, cart_id)
    if not cart:
        raise CartNotFound(cart_id)
    lines = repository.get_cart_lines(client, cart_id)
    return CartSnapshot(
        cart=cart,
        items=lines,
        subtotal=sum(line.line_total for line in lines),
        total_items=sum(line.quantity for line in lines),
    )


def add_item(client, cart_id: str, product_id: str, quantity: int = 1) -> CartLine:
    """
    Ajoute un produit au panier; si la ligne existe déjà, la quantité est incrémentée.
    Le contrôle de stock est indicatif (lecture au moment de l'écriture).
    """
    if quantity is None or int(quantity) <= 0:
        raise ValidationError("La quantité doit être positive")
    quantity = int(quantity)

    if not repository.get_cart(client, cart_id):
        raise CartNotFound(cart_id)
    product = repository.fetch_products(client, [product_id]).get(str(product_id))
    if not product:
        raise NotFoundError(f"Produit introuvable: {product_id}")

    existing = repository.get_cart_item(client, cart_id, product_id)
    new_quantity = quantity + (int(existing.get("quantity") or 0) if existing else 0)

    available = product.get("inventory_quantity")
    if available is not None and new_quantity > int(available):
        raise InsufficientInventory(product_id, int(available))

    if existing:
        row = repository.update_cart_item_quantity(client, existing["id"], new_quantity) or {**existing, "quantity": new_quantity}
    else:
        try:
            row = repository.insert_cart_item(client, cart_id, product_id, new_quantity)
        except APIError as e:
            if not is_unique_violation(e):
                raise
            # Ligne créée entre-temps par une requête concurrente: on incrémente
            existing = repository.get_cart_item(client, cart_id, product_id)
            if not existing:
                raise
            new_quantity = int(existing.get("quantity") or 0) + quantity
            row = repository.update_cart_item_quantity(client, existing["id"], new_quantity) or {**existing, "quantity": new_quantity}

    logger.info("carts.add_item cart=%s product=%s quantity=%s", cart_id, product_id, new_quantity)
    return repository._to_line(row, product)
