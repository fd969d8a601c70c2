"""
Modèles pydantic de la feature 'shipping'.
Montants en unités mineures (cents), poids en kg, dimensions en cm.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


class ShippingAddress(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address_line1: str = ""
    address_line2: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "US"

    @field_validator("country")
    @classmethod
    def _upper_country(cls, v: str) -> str:
        return (v or "").strip().upper()

    def to_shippo(self) -> Dict[str, Any]:
        """Format d'adresse attendu par l'API Shippo."""
        return {
            "name": self.name or "",
            "street1": self.address_line1,
            "street2": self.address_line2 or "",
            "city": self.city,
            "state": self.state,
            "zip": self.postal_code,
            "country": self.country,
            "phone": self.phone or "",
            "email": self.email or "",
        }


class Dimensions(BaseModel):
    length: float = Field(gt=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class ShippingItem(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    weight: float = Field(ge=0)
    dimensions: Dimensions


class Parcel(BaseModel):
    length: float
    width: float
    height: float
    weight: float

    def to_shippo(self) -> Dict[str, Any]:
        return {
            "length": f"{self.length:.1f}",
            "width": f"{self.width:.1f}",
            "height": f"{self.height:.1f}",
            "distance_unit": "cm",
            "weight": f"{self.weight:.2f}",
            "mass_unit": "kg",
        }


class ShippingRate(BaseModel):
    rate_id: str
    carrier: str
    service_code: str
    service_name: str
    rate: int
    currency: str = "usd"
    estimated_days: Optional[int] = None
    free_shipping: bool = False
    original_rate: Optional[int] = None


class ShippingRateRequest(BaseModel):
    """Corps de POST /shipping/calculate: soit une adresse + articles, soit des ids."""
    address: Optional[ShippingAddress] = None
    items: List[ShippingItem] = []
    address_id: Optional[str] = None
    cart_id: Optional[str] = None
    order_value: Optional[int] = None


class ShippingLabel(BaseModel):
    tracking_number: str
    label_url: Optional[str] = None
    carrier: Optional[str] = None
    cost: Optional[int] = None
