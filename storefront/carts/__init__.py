"""
Module 'carts': instantané de panier (lignes normalisées + sous-total) et ajout d'article.
"""
from .models import CartLine, CartSnapshot
from .service import get_cart_snapshot, add_item

__all__ = ["CartLine", "CartSnapshot", "get_cart_snapshot", "add_item"]
