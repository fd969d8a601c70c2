from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"
    PAYMENT_FAILED = "payment_failed"
    DISPUTED = "disputed"
    CHARGEBACK = "chargeback"
    FLAGGED_FOR_REVIEW = "flagged_for_review"


# Annulation client possible uniquement avant expédition
CANCELABLE_STATUSES = [OrderStatus.PENDING.value, OrderStatus.PAID.value, OrderStatus.PROCESSING.value]

# Un échec de paiement tardif ne concerne que les commandes pas encore parties
PAYMENT_FAILABLE_STATUSES = [OrderStatus.PENDING.value, OrderStatus.PROCESSING.value, OrderStatus.PAID.value]

TERMINAL_STATUSES = {
    OrderStatus.DELIVERED.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.CHARGEBACK.value,
    OrderStatus.REFUNDED.value,
}

ALL_STATUSES = [s.value for s in OrderStatus]


def dispute_status(substatus: str) -> str:
    """Statut dynamique d'un litige clos ni gagné ni perdu (ex: dispute_warning_closed)."""
    return f"dispute_{substatus}"


def is_known_status(status: str) -> bool:
    return status in ALL_STATUSES or (status or "").startswith("dispute_")
