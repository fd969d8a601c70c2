"""
Erreurs métier de la boutique.

Chaque erreur porte un message lisible, un statut HTTP et un code stable
(`code`) que le front peut tester. Le handler enregistré par la factory
(storefront.app_setup.exceptions) les rend en JSON {"detail", "code"}.
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.extra:
            payload.update(self.extra)
        return payload


# --- 400 / 401 / 403 ---

class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    code = "not_authenticated"


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"


# --- 404 ---

class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class CartNotFound(NotFoundError):
    code = "cart_not_found"

    def __init__(self, cart_id: str):
        super().__init__(f"Panier introuvable: {cart_id}")
        self.cart_id = cart_id


class AddressNotFound(NotFoundError):
    code = "address_not_found"

    def __init__(self, address_id: str):
        super().__init__(f"Adresse introuvable: {address_id}")
        self.address_id = address_id


class OrderNotFound(NotFoundError):
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"Commande introuvable: {order_id}")
        self.order_id = order_id


# --- 409 ---

class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class DuplicateOrder(ConflictError):
    """Une commande existe déjà pour ce PaymentIntent (contrainte d'unicité)."""
    code = "duplicate_order"

    def __init__(self, payment_intent_id: str):
        super().__init__(f"Commande déjà créée pour {payment_intent_id}")
        self.payment_intent_id = payment_intent_id


# --- 422: préconditions métier ---

class PreconditionFailed(AppError):
    status_code = 422
    code = "precondition_failed"


class EmptyCart(PreconditionFailed):
    code = "empty_cart"

    def __init__(self, cart_id: Optional[str] = None):
        super().__init__("Panier vide")
        self.cart_id = cart_id


class NoRatesAvailable(PreconditionFailed):
    code = "no_rates_available"

    def __init__(self, message: str = "Aucun tarif de livraison disponible pour cette adresse"):
        super().__init__(message)


class ShippingMethodUnavailable(PreconditionFailed):
    code = "shipping_method_unavailable"

    def __init__(self, method: str):
        super().__init__(f"Méthode de livraison indisponible: {method}")
        self.method = method


class ShippingMethodMismatch(PreconditionFailed):
    code = "shipping_method_mismatch"

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Méthode de livraison incohérente: attendu {expected}, obtenu {actual}")
        self.expected = expected
        self.actual = actual


class OrderNotCancelable(PreconditionFailed):
    code = "order_not_cancelable"

    def __init__(self, order_id: str, status: str):
        super().__init__(f"Commande non annulable (statut={status})")
        self.order_id = order_id
        self.status = status


class AmountMismatch(PreconditionFailed):
    code = "amount_mismatch"

    def __init__(self, authorized: int, computed: int):
        super().__init__(f"Montant autorisé ({authorized}) différent du recalcul ({computed})")
        self.authorized = authorized
        self.computed = computed


class InsufficientInventory(PreconditionFailed):
    code = "insufficient_inventory"

    def __init__(self, product_id: str, available: int):
        super().__init__(f"Stock insuffisant (disponible: {available})")
        self.product_id = product_id
        self.available = available


# --- 502: fournisseurs externes ---

class ExternalServiceError(AppError):
    """Le message client reste générique; le détail technique est journalisé par l'appelant."""
    status_code = 502
    code = "external_service_error"


class RateProviderError(ExternalServiceError):
    code = "rate_provider_error"

    def __init__(self, detail: str = ""):
        super().__init__("Service de livraison indisponible")
        self.detail = detail


class PaymentProviderError(ExternalServiceError):
    code = "payment_provider_error"

    def __init__(self, detail: str = ""):
        super().__init__("Service de paiement indisponible")
        self.detail = detail
