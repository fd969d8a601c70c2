import logging
from typing import Any, Dict, Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from storefront.errors import AppError
from storefront.utils.db import get_scoped_client, get_service_client
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_user
from . import service as payments_service
from . import stripe_client
from .webhooks import dispatch_event

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payment", tags=["Payment API"])


class CreatePaymentIntentRequest(BaseModel):
    cart_id: str
    shipping_address_id: str
    billing_address_id: str
    shipping_method: str = Field(min_length=1)
    shipping_rate_id: Optional[str] = None
    customer_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# module storefront.payments.views
@router.post("/create-payment-intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_payment_intent(
    body: CreatePaymentIntentRequest,
    user: Dict[str, Any] = Depends(require_user),
    client=Depends(get_scoped_client),
):
    """
    Crée le PaymentIntent du panier pour le total recalculé côté serveur.
    - Sécurité: require_user + rate limit (10 req / 60s)
    - Erreurs: 404 panier/adresse, 422 panier vide ou méthode indisponible, 502 Stripe/Shippo
    """
    try:
        return payments_service.create_payment_intent(
            client,
            user_id=user.get("id"),
            cart_id=body.cart_id,
            shipping_address_id=body.shipping_address_id,
            billing_address_id=body.billing_address_id,
            shipping_method=body.shipping_method,
            shipping_rate_id=body.shipping_rate_id,
            customer_id=body.customer_id,
            metadata=body.metadata,
        )
    except AppError:
        raise
    except Exception:
        logger.exception("Erreur create_payment_intent cart=%s", body.cart_id)
        raise HTTPException(status_code=500, detail="Erreur lors de la création du paiement")


@router.get("/payment-status/{payment_intent_id}")
def payment_status(
    payment_intent_id: str,
    user: Dict[str, Any] = Depends(require_user),
    client=Depends(get_scoped_client),
    service_client=Depends(get_service_client),
):
    """
    Alternative au webhook: lit le PaymentIntent et matérialise la commande s'il a réussi.
    - 403 si le paiement appartient à un autre utilisateur
    """
    try:
        return payments_service.confirm_payment_intent(client, service_client, payment_intent_id, user.get("id"))
    except AppError:
        raise
    except Exception:
        logger.exception("Erreur payment_status pi=%s", payment_intent_id)
        raise HTTPException(status_code=500, detail="Erreur lors de la vérification du paiement")


async def _raw_body(request: Request) -> bytes:
    # Octets exacts reçus: la signature Stripe porte sur eux, pas sur un JSON re-sérialisé
    return await request.body()


@router.post("/webhook", include_in_schema=False)
def stripe_webhook(
    request: Request,
    payload: bytes = Depends(_raw_body),
    service_client=Depends(get_service_client),
):
    """
    Webhook Stripe (def: les appels Supabase/Stripe/Shippo bloquants tournent dans le threadpool).
    - Signature validée sur le corps brut (en-tête stripe-signature): 400 sinon, sans effet
    - Une fois la signature validée: toujours 200 {"received": true}
    """
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise HTTPException(status_code=400, detail="Signature Stripe manquante")
    try:
        event = stripe_client.construct_event(payload, sig_header)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("payments.webhook signature invalide: %s", e)
        raise HTTPException(status_code=400, detail="Signature Stripe invalide")

    result = dispatch_event(event, service_client)
    logger.debug("payments.webhook outcome=%s", result.outcome.value)
    return JSONResponse({"received": True})
