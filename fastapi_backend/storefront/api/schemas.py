from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, EmailStr, Field, PositiveInt, condecimal, conint, model_validator


class RecordStatus(IntEnum):
    """Soft-delete / visibility flag shared by every table."""

    deleted = -2
    banned = -1
    inactive = 0
    active = 1


class OrderStatus(IntEnum):
    pending = 1
    processing = 2
    in_delivery = 3
    delivered = 4
    canceled = 5
    returning = 6
    return_success = 7
    return_failed = 8
    success = 9


# Customers may only cancel before the order leaves the warehouse.
CANCELABLE_ORDER_STATUSES = (OrderStatus.pending, OrderStatus.processing)


class DiscountType(str, Enum):
    percentage = "percentage"
    fixed_amount = "fixed_amount"


Money = condecimal(ge=0, max_digits=14, decimal_places=2)
CreateStatus = conint(ge=0, le=1)


class StatusUpdate(BaseModel):
    status: RecordStatus = Field(..., description="New record status (-2 deleted, -1 banned, 0 inactive, 1 active)")


class PartialUpdate(BaseModel):
    """
    Body of an update endpoint: omitted fields are left unchanged.

    An explicit ``null`` is accepted only for the columns listed in
    ``nullable``; anything else would write NULL into a NOT NULL column.
    """

    nullable: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def _reject_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            nulls = sorted(
                k for k, v in data.items() if v is None and k in cls.model_fields and k not in cls.nullable
            )
            if nulls:
                raise ValueError(f"{', '.join(nulls)} cannot be null")
        return data


# =========================
# Auth / users / roles
# =========================

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="Password (min 6 chars)")
    full_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdate(PartialUpdate):
    nullable = frozenset({"phone", "address"})

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=6)
    email: EmailStr
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    avatar_id: Optional[int] = None
    role_id: Optional[int] = None
    status: CreateStatus = 1


class UserUpdate(PartialUpdate):
    nullable = frozenset({"full_name", "phone", "address", "avatar_id", "role_id"})

    username: Optional[str] = Field(None, min_length=1, max_length=50)
    password: Optional[str] = Field(None, min_length=6)
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    avatar_id: Optional[int] = None
    role_id: Optional[int] = None


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1)
    status: CreateStatus = 1


class RoleUpdate(PartialUpdate):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, min_length=1)


# =========================
# Catalog
# =========================

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    price: Money = Field(..., description="Unit price")
    description: Optional[str] = None
    specifications: Optional[str] = None
    stock_quantity: conint(ge=0) = 0
    thumbnail_id: Optional[int] = None
    status: CreateStatus = 1
    category_ids: List[int] = []
    image_ids: List[int] = Field([], description="Gallery images, in display order")
    ram_ids: List[int] = []
    storage_ids: List[int] = []
    cpu_ids: List[int] = []
    graphics_card_ids: List[int] = []
    display_ids: List[int] = []
    tag_ids: List[int] = []


class ProductUpdate(PartialUpdate):
    nullable = frozenset({"description", "specifications", "thumbnail_id"})

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    price: Optional[Money] = None
    description: Optional[str] = None
    specifications: Optional[str] = None
    stock_quantity: Optional[conint(ge=0)] = None
    thumbnail_id: Optional[int] = None
    status: Optional[CreateStatus] = None
    category_ids: Optional[List[int]] = None
    image_ids: Optional[List[int]] = None
    ram_ids: Optional[List[int]] = None
    storage_ids: Optional[List[int]] = None
    cpu_ids: Optional[List[int]] = None
    graphics_card_ids: Optional[List[int]] = None
    display_ids: Optional[List[int]] = None
    tag_ids: Optional[List[int]] = None


class ProductSort(str, Enum):
    newest = "newest"
    price_asc = "price_asc"
    price_desc = "price_desc"


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255)
    content: Optional[str] = None
    image_id: Optional[int] = None
    status: CreateStatus = 1


class CategoryUpdate(PartialUpdate):
    nullable = frozenset({"content", "image_id"})

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    image_id: Optional[int] = None


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    status: CreateStatus = 1


class TagUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class ImageCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=1024)
    alt_text: Optional[str] = Field(None, max_length=255)
    status: CreateStatus = 1


class BannerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=100)
    position: str = Field(..., min_length=1, max_length=100)
    status: CreateStatus = 1
    image_ids: List[int] = Field(..., min_length=1)


class BannerUpdate(PartialUpdate):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[str] = Field(None, min_length=1, max_length=100)
    position: Optional[str] = Field(None, min_length=1, max_length=100)
    image_ids: Optional[List[int]] = Field(None, min_length=1)


# =========================
# Components
# =========================

class CpuCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    brand: Optional[str] = Field(None, max_length=50)
    model: Optional[str] = Field(None, max_length=50)
    cores: Optional[PositiveInt] = None
    threads: Optional[PositiveInt] = None
    base_clock: Optional[condecimal(gt=0)] = None
    boost_clock: Optional[condecimal(gt=0)] = None
    cache: Optional[str] = Field(None, max_length=50)
    status: CreateStatus = 1


class CpuUpdate(PartialUpdate):
    nullable = frozenset({"brand", "model", "cores", "threads", "base_clock", "boost_clock", "cache"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    brand: Optional[str] = Field(None, max_length=50)
    model: Optional[str] = Field(None, max_length=50)
    cores: Optional[PositiveInt] = None
    threads: Optional[PositiveInt] = None
    base_clock: Optional[condecimal(gt=0)] = None
    boost_clock: Optional[condecimal(gt=0)] = None
    cache: Optional[str] = Field(None, max_length=50)


class RamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)
    brand: str = Field(..., min_length=1, max_length=50)
    capacity: PositiveInt = Field(..., description="Capacity in GB")
    speed: PositiveInt = Field(..., description="Speed in MHz")
    status: CreateStatus = 1


class RamUpdate(PartialUpdate):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    brand: Optional[str] = Field(None, min_length=1, max_length=50)
    capacity: Optional[PositiveInt] = None
    speed: Optional[PositiveInt] = None


class StorageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)
    brand: str = Field(..., min_length=1, max_length=50)
    capacity: PositiveInt = Field(..., description="Capacity in GB")
    interface: Optional[str] = Field(None, max_length=50)
    status: CreateStatus = 1


class StorageUpdate(PartialUpdate):
    nullable = frozenset({"interface"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    brand: Optional[str] = Field(None, min_length=1, max_length=50)
    capacity: Optional[PositiveInt] = None
    interface: Optional[str] = Field(None, max_length=50)


class GraphicsCardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    brand: Optional[str] = Field(None, max_length=50)
    memory_size: Optional[PositiveInt] = Field(None, description="VRAM in GB")
    memory_type: Optional[str] = Field(None, max_length=50)
    clock_speed: Optional[PositiveInt] = Field(None, description="Core clock in MHz")
    status: CreateStatus = 1


class GraphicsCardUpdate(PartialUpdate):
    nullable = frozenset({"brand", "memory_size", "memory_type", "clock_speed"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    brand: Optional[str] = Field(None, max_length=50)
    memory_size: Optional[PositiveInt] = None
    memory_type: Optional[str] = Field(None, max_length=50)
    clock_speed: Optional[PositiveInt] = None


class DisplayCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    size: Optional[str] = Field(None, max_length=50)
    resolution: Optional[str] = Field(None, max_length=50)
    panel_type: Optional[str] = Field(None, max_length=50)
    refresh_rate: Optional[str] = Field(None, max_length=20)
    status: CreateStatus = 1


class DisplayUpdate(PartialUpdate):
    nullable = frozenset({"size", "resolution", "panel_type", "refresh_rate"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    size: Optional[str] = Field(None, max_length=50)
    resolution: Optional[str] = Field(None, max_length=50)
    panel_type: Optional[str] = Field(None, max_length=50)
    refresh_rate: Optional[str] = Field(None, max_length=20)


# =========================
# Cart / coupons / orders
# =========================

class CartItemAdd(BaseModel):
    product_id: int
    quantity: PositiveInt = Field(..., description="Quantity to add (>0)")


class CartItemQuantity(BaseModel):
    quantity: PositiveInt = Field(..., description="New quantity (>0)")


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount_type: DiscountType
    discount_value: condecimal(gt=0, max_digits=14, decimal_places=2)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_purchase_amount: Optional[Money] = None
    max_usage: Optional[PositiveInt] = None
    max_discount_value: Optional[condecimal(gt=0, max_digits=14, decimal_places=2)] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _check_rules(self):
        if self.discount_type == DiscountType.percentage and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be earlier than start_date")
        return self


class CouponUpdate(PartialUpdate):
    nullable = frozenset({"start_date", "end_date", "min_purchase_amount", "max_usage", "max_discount_value"})

    code: Optional[str] = Field(None, min_length=1, max_length=50)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[condecimal(gt=0, max_digits=14, decimal_places=2)] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_purchase_amount: Optional[Money] = None
    max_usage: Optional[PositiveInt] = None
    max_discount_value: Optional[condecimal(gt=0, max_digits=14, decimal_places=2)] = None
    is_active: Optional[bool] = None


class CouponCheckRequest(BaseModel):
    code: str = Field(..., min_length=1)
    subtotal: Money


class OrderItemIn(BaseModel):
    product_id: int
    quantity: PositiveInt


class CheckoutRequest(BaseModel):
    delivery_address_id: int = Field(..., description="Saved delivery address owned by the caller")
    payment_method_id: int
    note: Optional[str] = Field(None, max_length=1000)
    coupon_code: Optional[str] = Field(None, min_length=1)
    items: Optional[List[OrderItemIn]] = Field(
        None, min_length=1, description="Lines to order; defaults to every active cart line"
    )


class OrderStatusUpdate(BaseModel):
    status: OrderStatus = Field(..., description="New order status (1-9)")


# =========================
# Addresses / payment / settings
# =========================

class AddressCreate(BaseModel):
    province_code: str = Field(..., min_length=1)
    district_code: str = Field(..., min_length=1)
    ward_code: str = Field(..., min_length=1)
    postal_code: Optional[str] = Field(None, max_length=20)
    phone_number: str = Field(..., min_length=1, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    is_default: bool = False


class AddressUpdate(PartialUpdate):
    nullable = frozenset({"postal_code", "address"})

    province_code: Optional[str] = Field(None, min_length=1)
    district_code: Optional[str] = Field(None, min_length=1)
    ward_code: Optional[str] = Field(None, min_length=1)
    postal_code: Optional[str] = Field(None, max_length=20)
    phone_number: Optional[str] = Field(None, min_length=1, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    is_default: Optional[bool] = None


class PaymentMethodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    icon_url: Optional[str] = None
    provider: Optional[str] = Field(None, max_length=100)
    config: Optional[Dict[str, Any]] = None
    is_active: bool = True


class SettingCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., min_length=1)


class SettingUpdate(PartialUpdate):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    value: Optional[str] = Field(None, min_length=1)
    status: Optional[RecordStatus] = None


class SettingUpsert(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    value: str


def changed_fields(payload: BaseModel, *, exclude: Optional[set] = None) -> Dict[str, Any]:
    """Columns explicitly sent by the client, minus ``exclude``."""
    values = payload.model_dump(exclude_unset=True, exclude=exclude or set())
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in values.items()}

