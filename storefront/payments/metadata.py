"""
Sérialisation/désérialisation des métadonnées Stripe du PaymentIntent.

Les métadonnées sont le seul canal pour reconstruire la commande dans un webhook:
elles doivent suffire (panier, adresses, méthode + jeton de tarif, utilisateur).
Stripe n'accepte que des chaînes: les montants sont sérialisés puis relus en int.
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel

SYSTEM_KEYS = (
    "cart_id",
    "user_id",
    "shipping_address_id",
    "billing_address_id",
    "shipping_method",
    "shipping_rate_id",
    "subtotal",
    "tax",
    "shipping_cost",
)


class CheckoutMetadata(BaseModel):
    cart_id: Optional[str] = None
    user_id: Optional[str] = None
    shipping_address_id: Optional[str] = None
    billing_address_id: Optional[str] = None
    shipping_method: Optional[str] = None
    shipping_rate_id: Optional[str] = None
    subtotal: Optional[int] = None
    tax: Optional[int] = None
    shipping_cost: Optional[int] = None
    extra: Dict[str, str] = {}


# module storefront.payments.metadata
def make_metadata(
    *,
    cart_id: str,
    user_id: Optional[str],
    shipping_address_id: str,
    billing_address_id: str,
    shipping_method: str,
    shipping_rate_id: str,
    subtotal: int,
    tax: int,
    shipping_cost: int,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, str]:
    """
    Construit les métadonnées Stripe. Les clés de l'appelant ne peuvent pas
    écraser les clés système.
    """
    meta: Dict[str, str] = {str(k): str(v) for k, v in (extra or {}).items() if v is not None}
    meta.update({
        "cart_id": str(cart_id),
        "user_id": str(user_id or ""),
        "shipping_address_id": str(shipping_address_id),
        "billing_address_id": str(billing_address_id),
        "shipping_method": str(shipping_method),
        "shipping_rate_id": str(shipping_rate_id),
        "subtotal": str(int(subtotal)),
        "tax": str(int(tax)),
        "shipping_cost": str(int(shipping_cost)),
    })
    return meta


def _opt_int(v: Any) -> Optional[int]:
    try:
        return int(v) if v not in (None, "") else None
    except (TypeError, ValueError):
        return None


def extract_metadata(intent: Dict[str, Any]) -> CheckoutMetadata:
    """
    Extrait les métadonnées d'un PaymentIntent (dict).
    Tolérant: clés absentes ou vides -> None.
    """
    meta = (intent or {}).get("metadata") or {}
    if not isinstance(meta, dict):
        meta = dict(meta)
    return CheckoutMetadata(
        cart_id=meta.get("cart_id") or None,
        user_id=meta.get("user_id") or None,
        shipping_address_id=meta.get("shipping_address_id") or None,
        billing_address_id=meta.get("billing_address_id") or None,
        shipping_method=meta.get("shipping_method") or None,
        shipping_rate_id=meta.get("shipping_rate_id") or None,
        subtotal=_opt_int(meta.get("subtotal")),
        tax=_opt_int(meta.get("tax")),
        shipping_cost=_opt_int(meta.get("shipping_cost")),
        extra={k: str(v) for k, v in meta.items() if k not in SYSTEM_KEYS},
    )
