"""
Lecture des adresses (carnet d'adresses géré ailleurs, ici uniquement consulté).
"""
from typing import Any, Dict, Optional

from storefront.errors import AddressNotFound
from storefront.shipping.models import ShippingAddress

ADDRESS_COLUMNS = "id, user_id, name, address_line1, address_line2, city, state, postal_code, country, phone, email"

def get_address(client, address_id: str) -> Optional[Dict[str, Any]]:
    if not address_id:
        return None
    res = client.table("addresses").select(ADDRESS_COLUMNS).eq("id", address_id).limit(1).execute()
    rows = res.data or []
    return rows[0] if rows else None

def require_address(client, address_id: str) -> ShippingAddress:
    """Adresse normalisée pour Shippo; AddressNotFound si absente (ou masquée par RLS)."""
    row = get_address(client, address_id)
    if not row:
        raise AddressNotFound(address_id)
    return ShippingAddress.model_validate(row)
