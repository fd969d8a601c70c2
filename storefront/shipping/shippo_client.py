"""
Adaptateur Shippo: centralise les appels REST (httpx) vers l'agrégateur de tarifs.

- Authentification: en-tête "Authorization: ShippoToken <clé>"
- Toute erreur transport/HTTP devient RateProviderError (jamais "aucun tarif")
- Les montants Shippo (chaînes "5.50") sont convertis en cents
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

import httpx

from storefront.config import SHIPPO_API_KEY, SHIPPO_API_URL, SHIPPO_TIMEOUT, WAREHOUSE_ADDRESS
from storefront.errors import RateProviderError
from .models import Parcel, ShippingAddress, ShippingRate

logger = logging.getLogger(__name__)

# module storefront.shipping.shippo_client
def _headers() -> Dict[str, str]:
    if not SHIPPO_API_KEY:
        raise RateProviderError("SHIPPO_API_KEY manquant")
    return {
        "Authorization": f"ShippoToken {SHIPPO_API_KEY}",
        "Content-Type": "application/json",
    }

def _request(method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    url = f"{SHIPPO_API_URL}{path}"
    try:
        resp = httpx.request(method, url, json=payload, headers=_headers(), timeout=SHIPPO_TIMEOUT)
    except httpx.HTTPError as e:
        logger.error("shippo %s %s transport error: %s", method, path, e)
        raise RateProviderError(str(e)) from e
    if resp.status_code == 404:
        return {}
    if resp.status_code >= 400:
        logger.error("shippo %s %s failed: status=%s body=%s", method, path, resp.status_code, resp.text)
        raise RateProviderError(f"HTTP {resp.status_code}")
    try:
        return resp.json() or {}
    except ValueError as e:
        raise RateProviderError("Réponse Shippo illisible") from e

def to_cents(amount: Any) -> int:
    """Convertit un montant décimal ("5.50") en cents, arrondi au plus proche."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError) as e:
        raise RateProviderError(f"Montant invalide: {amount!r}") from e
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def parse_rate(raw: Dict[str, Any]) -> Optional[ShippingRate]:
    """
    Normalise un objet 'rate' Shippo. Retourne None si le tarif n'est pas exploitable
    (pas d'identifiant, pas de service ou pas de montant).
    """
    servicelevel = raw.get("servicelevel") or {}
    rate_id = raw.get("object_id")
    service_code = servicelevel.get("token")
    if not rate_id or not service_code or raw.get("amount") in (None, ""):
        return None
    return ShippingRate(
        rate_id=str(rate_id),
        carrier=str(raw.get("provider") or ""),
        service_code=str(service_code),
        service_name=str(servicelevel.get("name") or service_code),
        rate=to_cents(raw.get("amount")),
        currency=str(raw.get("currency") or "usd").lower(),
        estimated_days=raw.get("estimated_days"),
    )

def create_shipment_rates(destination: ShippingAddress, parcel: Parcel) -> List[ShippingRate]:
    """
    POST /shipments/ (synchrone) depuis l'entrepôt vers la destination.
    Retour: liste des tarifs exploitables (éventuellement vide).
    """
    payload = {
        "address_from": WAREHOUSE_ADDRESS,
        "address_to": destination.to_shippo(),
        "parcels": [parcel.to_shippo()],
        "async": False,
    }
    shipment = _request("POST", "/shipments/", payload)
    rates = [parse_rate(r) for r in (shipment.get("rates") or [])]
    return [r for r in rates if r is not None]

def get_rate(rate_id: str) -> Optional[ShippingRate]:
    """GET /rates/{id}: None si le jeton n'est plus connu de Shippo."""
    raw = _request("GET", f"/rates/{rate_id}")
    if not raw:
        return None
    return parse_rate(raw)

def purchase_label(rate_id: str) -> Dict[str, Any]:
    """
    POST /transactions/: achète l'étiquette du tarif donné.
    Retour: {tracking_number, label_url, carrier, cost}
    """
    tx = _request("POST", "/transactions/", {"rate": rate_id, "label_file_type": "PDF", "async": False})
    if (tx.get("status") or "").upper() != "SUCCESS":
        messages = "; ".join(str(m.get("text") or m) for m in (tx.get("messages") or []) if m)
        logger.error("shippo label purchase failed rate=%s status=%s messages=%s", rate_id, tx.get("status"), messages)
        raise RateProviderError(messages or "Achat d'étiquette refusé")

    rate_info = tx.get("rate")
    carrier = None
    cost = None
    if isinstance(rate_info, dict):
        carrier = rate_info.get("provider")
        if rate_info.get("amount") not in (None, ""):
            cost = to_cents(rate_info.get("amount"))
    return {
        "tracking_number": tx.get("tracking_number"),
        "label_url": tx.get("label_url"),
        "carrier": carrier,
        "cost": cost,
    }

def track_shipment(carrier: str, tracking_number: str) -> Dict[str, Any]:
    """GET /tracks/{carrier}/{tracking_number}: statut courant et historique."""
    raw = _request("GET", f"/tracks/{carrier}/{tracking_number}")
    status = raw.get("tracking_status") or {}
    history = raw.get("tracking_history") or []
    events = [
        {
            "date": h.get("status_date"),
            "status": h.get("status"),
            "description": h.get("status_details"),
            "location": h.get("location"),
        }
        for h in history
    ]
    return {
        "tracking_number": tracking_number,
        "carrier": carrier,
        "status": (status.get("status") or "UNKNOWN").lower(),
        "estimated_delivery": raw.get("eta"),
        "tracking_events": events,
    }
