"""Enums для Crypto bounded context."""

from enum import Enum


class OrderSide(str, Enum):
    """Order direction."""

    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    """Order type."""

    MARKET = "market"
    LIMIT = "limit"
    STOP_LIMIT = "stop_limit"


class OrderStatus(str, Enum):
    """Order lifecycle status.

    State machine (server side):
        NEW → PARTIALLY_FILLED → FILLED
        NEW → CANCELED
        NEW → REJECTED

    PENDING exists only locally: the order is shown optimistically and the
    remote call has not answered yet.
    """

    PENDING = "pending"
    """Provisional order, ще не підтверджений сервером."""

    NEW = "new"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELED = "canceled"
    REJECTED = "rejected"


class AlertCondition(str, Enum):
    """Price alert trigger condition."""

    ABOVE = "above"
    BELOW = "below"


class P2POfferType(str, Enum):
    """Side of a P2P offer, from the maker's perspective."""

    BUY = "buy"
    SELL = "sell"


class StakingType(str, Enum):
    """Staking product type."""

    FLEXIBLE = "flexible"
    """Можна вийти в будь-який момент."""

    LOCKED = "locked"
    """Кошти заблоковані на duration_days."""


class StakingStatus(str, Enum):
    """Staking position status."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class TransactionType(str, Enum):
    """Wallet transaction type."""

    TRADE = "trade"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    STAKING_REWARD = "staking_reward"
    P2P = "p2p"
