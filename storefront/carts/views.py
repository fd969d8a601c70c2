from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from storefront.utils.db import get_scoped_client
from . import service as carts_service

router = APIRouter(prefix="/cart", tags=["Cart API"])


class AddItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, gt=0)


@router.get("/{cart_id}")
def get_cart(cart_id: str, client=Depends(get_scoped_client)) -> Dict[str, Any]:
    snapshot = carts_service.get_cart_snapshot(client, cart_id)
    return {
        "cart": snapshot.cart,
        "items": [{**line.model_dump(), "line_total": line.line_total} for line in snapshot.items],
        "subtotal": snapshot.subtotal,
        "total_items": snapshot.total_items,
    }


@router.post("/{cart_id}/items", status_code=201)
def add_item(cart_id: str, body: AddItemRequest, client=Depends(get_scoped_client)) -> Dict[str, Any]:
    """Ajoute un produit (la quantité d'une ligne existante est incrémentée)."""
    line = carts_service.add_item(client, cart_id, body.product_id, body.quantity)
    return {"item": line.model_dump()}
