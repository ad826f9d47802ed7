"""User-scoped records: portfolio, watchlist, alerts, staking, P2P, wallet."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from cryptodesk.domain.shared import ValueObject, validate_value_object

from .enums import (
    AlertCondition,
    P2POfferType,
    StakingStatus,
    StakingType,
    TransactionType,
)
from .trading import is_provisional_id, provisional_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Portfolio ====================


@dataclass(frozen=True)
class PortfolioAsset(ValueObject):
    asset: str
    free: Decimal
    locked: Decimal
    usd_value: Decimal
    price: Decimal
    change_24h: Decimal = Decimal("0")
    change_percent_24h: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.free + self.locked


@dataclass(frozen=True)
class Portfolio(ValueObject):
    """Portfolio snapshot.

    total_value / total_change_24h рахуються з assets, тому не зберігаються
    окремо і не можуть розійтись з ними.
    """

    assets: tuple[PortfolioAsset, ...]

    @property
    def total_value(self) -> Decimal:
        return sum((a.usd_value for a in self.assets), Decimal("0"))

    @property
    def total_change_24h(self) -> Decimal:
        return sum((a.change_24h * a.total for a in self.assets), Decimal("0"))

    @property
    def total_change_percent_24h(self) -> Decimal:
        if not self.total_value:
            return Decimal("0")
        return self.total_change_24h / self.total_value * 100

    def allocation(self) -> dict[str, Decimal]:
        """Asset -> share of total value in percent."""
        total = self.total_value
        if not total:
            return {a.asset: Decimal("0") for a in self.assets}
        return {a.asset: a.usd_value / total * 100 for a in self.assets}


# ==================== Watchlist & Alerts ====================


@dataclass(frozen=True)
class WatchlistItem(ValueObject):
    id: str
    asset: str
    added_at: datetime = field(default_factory=_utcnow)
    notes: str | None = None

    @classmethod
    def provisional(cls, asset: str, notes: str | None = None) -> "WatchlistItem":
        return cls(id=provisional_id(), asset=asset, notes=notes)

    @property
    def is_provisional(self) -> bool:
        return is_provisional_id(self.id)


@dataclass(frozen=True)
class AlertRequest(ValueObject):
    asset: str
    condition: AlertCondition
    target_price: Decimal
    message: str | None = None

    def __post_init__(self) -> None:
        validate_value_object(bool(self.asset), "Alert asset is required")
        validate_value_object(self.target_price > 0, "Alert target price must be positive")


@dataclass(frozen=True)
class PriceAlert(ValueObject):
    id: str
    asset: str
    condition: AlertCondition
    target_price: Decimal
    message: str | None = None
    is_triggered: bool = False
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def provisional(cls, request: AlertRequest) -> "PriceAlert":
        return cls(
            id=provisional_id(),
            asset=request.asset,
            condition=request.condition,
            target_price=request.target_price,
            message=request.message,
        )

    @classmethod
    def from_request(cls, alert_id: str, request: AlertRequest) -> "PriceAlert":
        return cls(
            id=alert_id,
            asset=request.asset,
            condition=request.condition,
            target_price=request.target_price,
            message=request.message,
        )

    def is_hit(self, price: Decimal) -> bool:
        """Check if price satisfies the alert condition."""
        if self.condition == AlertCondition.ABOVE:
            return price >= self.target_price
        return price <= self.target_price


# ==================== Staking ====================


@dataclass(frozen=True)
class StakingProduct(ValueObject):
    id: str
    asset: str
    reward_asset: str
    type: StakingType
    apy: Decimal
    min_amount: Decimal
    duration_days: int | None = None
    is_available: bool = True


@dataclass(frozen=True)
class StakingPosition(ValueObject):
    id: str
    product_id: str
    asset: str
    amount: Decimal
    apy: Decimal
    status: StakingStatus
    start_date: datetime = field(default_factory=_utcnow)
    end_date: datetime | None = None
    total_rewards: Decimal = Decimal("0")
    auto_renew: bool = False

    @property
    def daily_reward(self) -> Decimal:
        return self.amount * self.apy / 100 / 365

    @classmethod
    def provisional(
        cls,
        product_id: str,
        amount: Decimal,
        product: StakingProduct | None = None,
    ) -> "StakingPosition":
        """Optimistic position; asset/apy come from the product if it is known locally."""
        return cls(
            id=provisional_id(),
            product_id=product_id,
            asset=product.asset if product else "",
            amount=amount,
            apy=product.apy if product else Decimal("0"),
            status=StakingStatus.PENDING,
        )

    @classmethod
    def open(cls, position_id: str, product: StakingProduct, amount: Decimal) -> "StakingPosition":
        """Server-side construction: LOCKED products get an end_date."""
        start = _utcnow()
        end = None
        if product.type == StakingType.LOCKED:
            end = start + timedelta(days=product.duration_days or 0)
        return cls(
            id=position_id,
            product_id=product.id,
            asset=product.asset,
            amount=amount,
            apy=product.apy,
            status=StakingStatus.ACTIVE,
            start_date=start,
            end_date=end,
        )


# ==================== P2P ====================


@dataclass(frozen=True)
class P2POfferRequest(ValueObject):
    type: P2POfferType
    asset: str
    fiat_currency: str
    price: Decimal
    min_amount: Decimal
    max_amount: Decimal
    payment_methods: tuple[str, ...] = ()
    terms: str | None = None

    def __post_init__(self) -> None:
        validate_value_object(self.price > 0, "Offer price must be positive")
        validate_value_object(self.min_amount > 0, "Offer min_amount must be positive")
        validate_value_object(
            self.min_amount <= self.max_amount,
            "Offer min_amount cannot exceed max_amount",
        )


@dataclass(frozen=True)
class P2POffer(ValueObject):
    id: str
    user_id: str
    type: P2POfferType
    asset: str
    fiat_currency: str
    price: Decimal
    min_amount: Decimal
    max_amount: Decimal
    payment_methods: tuple[str, ...] = ()
    terms: str | None = None
    completion_rate: Decimal = Decimal("0")
    total_trades: int = 0
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def provisional(cls, user_id: str, request: P2POfferRequest) -> "P2POffer":
        return cls.from_request(provisional_id(), user_id, request)

    @classmethod
    def from_request(cls, offer_id: str, user_id: str, request: P2POfferRequest) -> "P2POffer":
        return cls(
            id=offer_id,
            user_id=user_id,
            type=request.type,
            asset=request.asset,
            fiat_currency=request.fiat_currency,
            price=request.price,
            min_amount=request.min_amount,
            max_amount=request.max_amount,
            payment_methods=request.payment_methods,
            terms=request.terms,
        )


# ==================== Wallet ====================


@dataclass(frozen=True)
class Transaction(ValueObject):
    id: str
    type: TransactionType
    asset: str
    amount: Decimal
    status: str
    created_at: datetime = field(default_factory=_utcnow)
    fee: Decimal = Decimal("0")
    tx_hash: str | None = None
