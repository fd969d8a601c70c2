import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from storefront.utils.db import get_scoped_client, get_service_client
from storefront.utils.security import require_admin, require_user
from . import service as orders_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders API"])
admin_router = APIRouter(prefix="/admin/orders", tags=["Admin Orders"])


class UpdateStatusRequest(BaseModel):
    status: str
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


# module storefront.orders.views
@router.get("/my-orders")
def my_orders(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    user: Dict[str, Any] = Depends(require_user),
    client=Depends(get_scoped_client),
):
    return {"orders": orders_service.list_user_orders(client, user.get("id"), status=status, limit=limit)}


@router.get("/my-orders/{order_id}")
def my_order(order_id: str, user: Dict[str, Any] = Depends(require_user), client=Depends(get_scoped_client)):
    return {"order": orders_service.get_order(client, order_id, user_id=user.get("id"))}


@router.post("/my-orders/{order_id}/cancel")
def cancel_my_order(
    order_id: str,
    user: Dict[str, Any] = Depends(require_user),
    client=Depends(get_scoped_client),
    service_client=Depends(get_service_client),
):
    """
    Annule une commande du client (pending/paid/processing) et remet le stock.
    - 404 si la commande n'est pas la sienne, 422 si déjà expédiée/terminée
    """
    order = orders_service.cancel_order(client, service_client, order_id, user.get("id"))
    return {"order": order}


@router.get("/by-payment-intent/{payment_intent_id}")
def order_by_payment_intent(payment_intent_id: str, client=Depends(get_scoped_client)):
    """Permet au front de retrouver la commande après paiement (auth optionnelle, RLS applicable)."""
    return {"order": orders_service.get_order_by_payment_intent(client, payment_intent_id)}


@admin_router.get("")
def admin_list_orders(
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    admin: Dict[str, Any] = Depends(require_admin),
    service_client=Depends(get_service_client),
):
    return {"orders": orders_service.list_all_orders(service_client, status=status, limit=limit)}


@admin_router.get("/{order_id}")
def admin_get_order(order_id: str, admin: Dict[str, Any] = Depends(require_admin), service_client=Depends(get_service_client)):
    return {"order": orders_service.get_order(service_client, order_id)}


@admin_router.put("/{order_id}/status")
def admin_update_status(
    order_id: str,
    body: UpdateStatusRequest,
    admin: Dict[str, Any] = Depends(require_admin),
    service_client=Depends(get_service_client),
):
    order = orders_service.update_order_status(
        service_client, order_id, body.status, tracking_number=body.tracking_number, notes=body.notes
    )
    logger.info("admin.orders.update_status order=%s status=%s by=%s", order_id, body.status, admin.get("id"))
    return {"order": order}
