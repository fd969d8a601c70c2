from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class CartLine(BaseModel):
    """
    Ligne de panier jointe à son produit.
    Forme unique quel que soit le mode de lecture: la jointure est faite dans le repository.
    """
    id: str
    cart_id: str
    product_id: str
    quantity: int
    name: str = ""
    sku: Optional[str] = None
    price: int = 0
    weight: Optional[float] = None
    dimensions: Optional[Dict[str, Any]] = None
    inventory_quantity: Optional[int] = None

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


class CartSnapshot(BaseModel):
    cart: Dict[str, Any]
    items: List[CartLine] = []
    subtotal: int = 0
    total_items: int = 0

    @property
    def cart_id(self) -> str:
        return str(self.cart.get("id") or "")

    @property
    def is_empty(self) -> bool:
        return not self.items
