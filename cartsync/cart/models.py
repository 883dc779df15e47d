"""Cart engine models with Decimal-based pricing."""
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, List

from cartsync.logging import get_logger
from cartsync.money import to_decimal, line_total

logger = get_logger(__name__)


def make_item_id(
    product_id: str,
    variant_id: Optional[str] = None,
    selected_language: Optional[str] = None,
) -> str:
    """Line identity: the same product with other options is a separate line."""
    item_id = str(product_id)
    if variant_id:
        item_id += f"_{variant_id}"
    if selected_language:
        item_id += f"_{selected_language}"
    return item_id


def _parse_price(value) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValueError(f"invalid unit_price: {value!r}")
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"invalid unit_price: {value!r}")
    if not price.is_finite() or price < 0:
        raise ValueError(f"invalid unit_price: {value!r}")
    return price


def _parse_quantity(value) -> int:
    if isinstance(value, bool):
        raise ValueError(f"invalid quantity: {value!r}")
    quantity = int(value)
    if quantity != value and not isinstance(value, str):
        raise ValueError(f"invalid quantity: {value!r}")
    return quantity


@dataclass
class CartItem:
    """Single line in the cart."""
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    variant_id: Optional[str] = None
    selected_language: Optional[str] = None
    image_ref: Optional[str] = None
    is_digital_good: Optional[bool] = None  # checkout eligibility only
    slug_ref: Optional[str] = None  # stock lookups by collaborators
    id: str = ""

    def __post_init__(self):
        self.unit_price = to_decimal(self.unit_price)
        if not self.id:
            self.id = make_item_id(self.product_id, self.variant_id, self.selected_language)

    @property
    def total_price(self) -> Decimal:
        """Total price for all units."""
        return line_total(self.unit_price, self.quantity)

    def with_quantity(self, quantity: int) -> "CartItem":
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict:
        """Convert to dictionary (wire and storage format)."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "selected_language": self.selected_language,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "image_ref": self.image_ref,
            "is_digital_good": self.is_digital_good,
            "slug_ref": self.slug_ref,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """
        Create from dictionary.

        Raises KeyError, TypeError or ValueError on malformed data; callers
        decide whether that means "skip the line" or "discard the record".
        """
        product_id = data["product_id"]
        name = data["name"]
        if not isinstance(product_id, str) or not product_id:
            raise ValueError("product_id must be a non-empty string")
        if not isinstance(name, str):
            raise ValueError("name must be a string")
        variant_id = data.get("variant_id") or None
        selected_language = data.get("selected_language") or None
        return cls(
            product_id=product_id,
            name=name,
            unit_price=_parse_price(data["unit_price"]),
            quantity=_parse_quantity(data["quantity"]),
            variant_id=variant_id,
            selected_language=selected_language,
            image_ref=data.get("image_ref"),
            is_digital_good=data.get("is_digital_good"),
            slug_ref=data.get("slug_ref"),
            # Identity is always derived, never trusted from storage
            id=make_item_id(product_id, variant_id, selected_language),
        )


def items_from_dicts(raw_items) -> List[CartItem]:
    """Parse a list of item dicts, skipping malformed lines."""
    items: List[CartItem] = []
    if not isinstance(raw_items, list):
        logger.warning(f"Expected a list of cart items, got {type(raw_items).__name__}")
        return items
    for raw in raw_items:
        try:
            items.append(CartItem.from_dict(raw))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed cart item: {e}")
    return items


def normalize_items(items: List[CartItem]) -> List[CartItem]:
    """
    Collapse duplicate ids (last occurrence wins, first position kept) and
    drop lines with quantity <= 0.
    """
    by_id: dict = {}
    for item in items:
        by_id[item.id] = item
    return [item for item in by_id.values() if item.quantity > 0]


class SyncMode(str, Enum):
    """Local durability policy."""
    DISABLED = "disabled"
    SESSION = "session"
    PERSISTENT = "persistent"
    SMART = "smart"


DEFAULT_EXPIRY_HOURS = 24.0


@dataclass
class SyncPreferences:
    """User-level durability settings."""
    mode: SyncMode = SyncMode.SMART
    expiry_hours: float = DEFAULT_EXPIRY_HOURS
    clear_on_checkout: bool = True
    clear_on_sign_out: bool = False

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "expiry_hours": self.expiry_hours,
            "clear_on_checkout": self.clear_on_checkout,
            "clear_on_sign_out": self.clear_on_sign_out,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncPreferences":
        """
        Build preferences over the defaults.

        Unknown modes and unusable expiry values fall back to the defaults
        instead of failing; a misconfigured setting must never block the cart.
        """
        defaults = cls()
        if not isinstance(data, dict):
            return defaults

        try:
            mode = SyncMode(data.get("mode", defaults.mode.value))
        except ValueError:
            logger.warning(f"Unknown cart persistence mode {data.get('mode')!r}, using smart")
            mode = SyncMode.SMART

        expiry_hours = data.get("expiry_hours", defaults.expiry_hours)
        if isinstance(expiry_hours, bool) or not isinstance(expiry_hours, (int, float)) or expiry_hours <= 0:
            logger.warning(f"Invalid cart expiry {expiry_hours!r}, using {DEFAULT_EXPIRY_HOURS}h")
            expiry_hours = DEFAULT_EXPIRY_HOURS

        return cls(
            mode=mode,
            expiry_hours=float(expiry_hours),
            clear_on_checkout=bool(data.get("clear_on_checkout", defaults.clear_on_checkout)),
            clear_on_sign_out=bool(data.get("clear_on_sign_out", defaults.clear_on_sign_out)),
        )


@dataclass
class PersistenceRecord:
    """Durable cart snapshot. Timestamps are epoch seconds."""
    items: List[CartItem]
    created_at: float
    last_access_at: float
    session_id: str
    policy_snapshot: SyncPreferences = field(default_factory=SyncPreferences)

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "created_at": self.created_at,
            "last_access_at": self.last_access_at,
            "session_id": self.session_id,
            "policy_snapshot": self.policy_snapshot.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PersistenceRecord":
        """Strict parse: any malformed field means the record is corrupted."""
        raw_items = data["items"]
        if not isinstance(raw_items, list):
            raise TypeError("items must be a list")
        created_at = data["created_at"]
        last_access_at = data["last_access_at"]
        for stamp in (created_at, last_access_at):
            if isinstance(stamp, bool) or not isinstance(stamp, (int, float)):
                raise TypeError(f"invalid timestamp: {stamp!r}")
        return cls(
            items=[CartItem.from_dict(raw) for raw in raw_items],
            created_at=float(created_at),
            last_access_at=float(last_access_at),
            session_id=str(data.get("session_id") or ""),
            policy_snapshot=SyncPreferences.from_dict(data.get("policy_snapshot") or {}),
        )


@dataclass
class CartAgeInfo:
    """Age of the stored cart, for stale-cart banners."""
    hours_old: float
    is_stale: bool


@dataclass
class SyncResult:
    """Outcome of a reconciliation."""
    items: List[CartItem]
    had_changes: bool = False
    errors: List[str] = field(default_factory=list)
    skipped: bool = False
