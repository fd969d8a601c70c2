"""
Diagnostic de la connexion Supabase et de la configuration des fournisseurs.
"""
import socket
from typing import Any, Dict
from urllib.parse import urlparse

import storefront.infra.supabase_client as supabase_client
from storefront.config import SHIPPO_API_KEY, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, SUPABASE_URL

# Tables lues par le tunnel de commande
CHECKED_TABLES = ["carts", "products", "orders"]


def _check_table(client, table: str) -> Dict[str, Any]:
    try:
        res = client.table(table).select("id").limit(1).execute()
    except Exception as e:
        return {"ok": False, "error": str(e)}
    return {"ok": True, "rows": len(res.data or [])}


def _resolve(hostname: str) -> Dict[str, Any]:
    try:
        socket.getaddrinfo(hostname, 443)
    except OSError as e:
        return {"dns_ok": False, "dns_error": str(e)}
    return {"dns_ok": True, "dns_error": None}


def providers_info() -> Dict[str, bool]:
    return {
        "stripe": bool(STRIPE_SECRET_KEY),
        "stripe_webhook": bool(STRIPE_WEBHOOK_SECRET),
        "shippo": bool(SHIPPO_API_KEY),
    }


def health_supabase_info() -> Dict[str, Any]:
    hostname = urlparse(SUPABASE_URL).hostname if SUPABASE_URL else None
    info: Dict[str, Any] = {
        "supabase_url": SUPABASE_URL or None,
        "hostname": hostname,
        "dns_ok": None,
        "dns_error": None,
        "connect_ok": False,
        "error": None,
        "tables": {},
        "providers": providers_info(),
    }
    if hostname:
        info.update(_resolve(hostname))
    try:
        client = supabase_client.get_supabase()
    except Exception as e:
        info["error"] = str(e)
        return info
    info["tables"] = {t: _check_table(client, t) for t in CHECKED_TABLES}
    info["connect_ok"] = True
    return info
