"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Les objets Stripe sont convertis en dict pour le reste du code.
"""
import json
import logging
import stripe
from typing import Any, Dict, Optional

from storefront.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from storefront.errors import PaymentProviderError

logger = logging.getLogger(__name__)

# module storefront.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    En absence de clé, les appels Stripe échoueront côté SDK (No API key provided).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe

def _to_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if type(obj) is dict:
        return obj
    for attr in ("to_dict_recursive", "to_dict"):
        fn = getattr(obj, attr, None)
        if callable(fn):
            return fn()
    return dict(obj)

def create_payment_intent(*, amount: int, currency: str, metadata: Dict[str, str], customer: Optional[str] = None) -> Dict[str, Any]:
    """
    Crée un PaymentIntent pour le montant calculé côté serveur.
    Retour: dict incluant "id", "client_secret", "amount", "status", "metadata".
    """
    require_stripe()
    params: Dict[str, Any] = {
        "amount": int(amount),
        "currency": currency,
        "metadata": metadata,
        "automatic_payment_methods": {"enabled": True},
    }
    if customer:
        params["customer"] = customer
    try:
        intent = stripe.PaymentIntent.create(**params)
    except stripe.StripeError as e:
        logger.error("stripe PaymentIntent.create failed: %s", e)
        raise PaymentProviderError(str(e)) from e
    return _to_dict(intent)

def retrieve_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    require_stripe()
    try:
        return _to_dict(stripe.PaymentIntent.retrieve(payment_intent_id))
    except stripe.StripeError as e:
        logger.error("stripe PaymentIntent.retrieve failed id=%s: %s", payment_intent_id, e)
        raise PaymentProviderError(str(e)) from e

def retrieve_charge(charge_id: str) -> Dict[str, Any]:
    require_stripe()
    try:
        return _to_dict(stripe.Charge.retrieve(charge_id))
    except stripe.StripeError as e:
        logger.error("stripe Charge.retrieve failed id=%s: %s", charge_id, e)
        raise PaymentProviderError(str(e)) from e

def construct_event(payload: bytes, sig_header: str) -> Dict[str, Any]:
    """
    Vérifie la signature Stripe (HMAC sur les octets bruts exacts) puis décode l'événement.
    Lève ValueError (payload illisible) ou stripe.SignatureVerificationError.
    """
    require_stripe()
    stripe.WebhookSignature.verify_header(
        payload, sig_header, STRIPE_WEBHOOK_SECRET or "", stripe.Webhook.DEFAULT_TOLERANCE
    )
    event = json.loads(payload)
    if not isinstance(event, dict):
        raise ValueError("Événement Stripe illisible")
    return event
