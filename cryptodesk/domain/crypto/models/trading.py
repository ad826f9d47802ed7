"""Order records."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from cryptodesk.domain.shared import ValueObject, validate_value_object

from .enums import OrderSide, OrderStatus, OrderType

PROVISIONAL_ID_PREFIX = "pending-"


def provisional_id() -> str:
    """Local id for records shown before the server answered."""
    return f"{PROVISIONAL_ID_PREFIX}{uuid4().hex[:12]}"


def is_provisional_id(record_id: str) -> bool:
    return record_id.startswith(PROVISIONAL_ID_PREFIX)


@dataclass(frozen=True)
class OrderRequest(ValueObject):
    """User intent to place an order.

    Validation:
        - quantity > 0
        - LIMIT / STOP_LIMIT orders need a positive price
        - STOP_LIMIT orders need a positive stop_price

    Example:
        >>> OrderRequest("BTCUSDT", OrderSide.BUY, OrderType.MARKET, Decimal("1"))
    """

    symbol: str
    side: OrderSide
    type: OrderType
    quantity: Decimal
    price: Decimal | None = None
    stop_price: Decimal | None = None

    def __post_init__(self) -> None:
        validate_value_object(bool(self.symbol), "Order symbol is required")
        validate_value_object(self.quantity > 0, "Order quantity must be positive")
        if self.type in (OrderType.LIMIT, OrderType.STOP_LIMIT):
            validate_value_object(
                self.price is not None and self.price > 0,
                f"{self.type.value} order requires a positive price",
            )
        if self.type == OrderType.STOP_LIMIT:
            validate_value_object(
                self.stop_price is not None and self.stop_price > 0,
                "stop_limit order requires a positive stop_price",
            )


@dataclass(frozen=True)
class Order(ValueObject):
    """Order as known to the client.

    `status == PENDING` і id з префіксом "pending-" означає provisional
    order, який ще не підтверджений сервером.
    """

    id: str
    symbol: str
    side: OrderSide
    type: OrderType
    quantity: Decimal
    status: OrderStatus
    price: Decimal | None = None
    stop_price: Decimal | None = None
    executed_quantity: Decimal = Decimal("0")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def provisional(cls, request: OrderRequest) -> "Order":
        """Build the optimistic placeholder shown while the order is placed."""
        return cls(
            id=provisional_id(),
            symbol=request.symbol,
            side=request.side,
            type=request.type,
            quantity=request.quantity,
            status=OrderStatus.PENDING,
            price=request.price,
            stop_price=request.stop_price,
        )

    @classmethod
    def from_request(cls, order_id: str, request: OrderRequest) -> "Order":
        """Server-side construction of a freshly accepted order."""
        return cls(
            id=order_id,
            symbol=request.symbol,
            side=request.side,
            type=request.type,
            quantity=request.quantity,
            status=OrderStatus.NEW,
            price=request.price,
            stop_price=request.stop_price,
        )

    @property
    def is_provisional(self) -> bool:
        return is_provisional_id(self.id)

    @property
    def is_open(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.NEW, OrderStatus.PARTIALLY_FILLED)

    def canceled(self) -> "Order":
        return replace(self, status=OrderStatus.CANCELED)
