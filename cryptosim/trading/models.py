"""Data models for the paper trading ledger."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Literal, Tuple
import uuid

DEFAULT_INITIAL_BALANCE = Decimal("10000.00")
DEFAULT_FEE_RATE = Decimal("0.001")

TransactionType = Literal["buy", "sell"]


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Balance:
    """Cash account of the simulated trader.

    Attributes:
        balance: Current cash available for buying
        initial_balance: Amount restored by an account reset
        timestamp: Time of the last mutation
        resets: Times of account resets since the last full data reset
    """
    balance: Decimal
    initial_balance: Decimal
    timestamp: datetime = field(default_factory=datetime.now)
    resets: Tuple[datetime, ...] = ()

    @classmethod
    def default(cls) -> "Balance":
        return cls(
            balance=DEFAULT_INITIAL_BALANCE,
            initial_balance=DEFAULT_INITIAL_BALANCE,
            timestamp=datetime.now(),
        )

    def to_dict(self) -> dict:
        return {
            "balance": str(self.balance),
            "initial_balance": str(self.initial_balance),
            "timestamp": self.timestamp.isoformat(),
            "resets": [t.isoformat() for t in self.resets],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Balance":
        return cls(
            balance=Decimal(data["balance"]),
            initial_balance=Decimal(data["initial_balance"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            resets=tuple(datetime.fromisoformat(t) for t in data.get("resets", [])),
        )


@dataclass
class Position:
    """Aggregated holding of one asset.

    Attributes:
        asset_id: Price source identifier (e.g., "bitcoin")
        symbol: Ticker symbol (e.g., "btc")
        name: Display name
        quantity: Amount currently held, never negative
        average_buy_price: Weighted average price of the unsold quantity
        id: Unique position identifier (UUID)
    """
    asset_id: str
    symbol: str
    name: str
    quantity: Decimal = Decimal("0")
    average_buy_price: Decimal = Decimal("0")
    id: str = field(default_factory=_new_id)

    @property
    def cost_basis(self) -> Decimal:
        """Quantity times average buy price."""
        return self.quantity * self.average_buy_price

    @property
    def is_open(self) -> bool:
        return self.quantity > Decimal("0")

    def with_quantity(self, quantity: Decimal) -> "Position":
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "symbol": self.symbol,
            "name": self.name,
            "quantity": str(self.quantity),
            "average_buy_price": str(self.average_buy_price),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Position":
        return cls(
            id=data["id"],
            asset_id=data["asset_id"],
            symbol=data["symbol"],
            name=data["name"],
            quantity=Decimal(data["quantity"]),
            average_buy_price=Decimal(data["average_buy_price"]),
        )


@dataclass(frozen=True)
class Transaction:
    """Immutable record of an executed trade.

    Attributes:
        asset_id: Price source identifier
        symbol: Ticker symbol
        name: Display name
        type: "buy" or "sell"
        price: Execution price per unit
        quantity: Amount traded
        fee: Fee as a fraction of the traded value
        timestamp: Time of execution
        id: Unique transaction identifier (UUID)
    """
    asset_id: str
    symbol: str
    name: str
    type: TransactionType
    price: Decimal
    quantity: Decimal
    fee: Decimal = DEFAULT_FEE_RATE
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=_new_id)

    @property
    def total_value(self) -> Decimal:
        """Price times quantity, before fees."""
        return self.price * self.quantity

    @property
    def fee_amount(self) -> Decimal:
        return self.total_value * self.fee

    @property
    def net_amount(self) -> Decimal:
        """Signed cash effect on the balance."""
        if self.type == "buy":
            return -(self.total_value + self.fee_amount)
        return self.total_value - self.fee_amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "symbol": self.symbol,
            "name": self.name,
            "type": self.type,
            "price": str(self.price),
            "quantity": str(self.quantity),
            "fee": str(self.fee),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            id=data["id"],
            asset_id=data["asset_id"],
            symbol=data["symbol"],
            name=data["name"],
            type=data["type"],
            price=Decimal(data["price"]),
            quantity=Decimal(data["quantity"]),
            fee=Decimal(data.get("fee", str(DEFAULT_FEE_RATE))),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class BestTrade:
    """Realized profit from a sell above the average buy price.

    Attributes:
        asset_id: Price source identifier
        symbol: Ticker symbol
        name: Display name
        buy_price: Position average buy price at the time of sale
        sell_price: Execution price of the sell
        quantity: Amount sold
        profit: (sell_price - buy_price) * quantity
        profit_percentage: (sell_price - buy_price) / buy_price * 100
        buy_timestamp: Approximate time of purchase
        sell_timestamp: Time of the sell
        id: Unique record identifier (UUID)
    """
    asset_id: str
    symbol: str
    name: str
    buy_price: Decimal
    sell_price: Decimal
    quantity: Decimal
    profit: Decimal
    profit_percentage: Decimal
    buy_timestamp: datetime
    sell_timestamp: datetime
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "symbol": self.symbol,
            "name": self.name,
            "buy_price": str(self.buy_price),
            "sell_price": str(self.sell_price),
            "quantity": str(self.quantity),
            "profit": str(self.profit),
            "profit_percentage": str(self.profit_percentage),
            "buy_timestamp": self.buy_timestamp.isoformat(),
            "sell_timestamp": self.sell_timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BestTrade":
        return cls(
            id=data["id"],
            asset_id=data["asset_id"],
            symbol=data["symbol"],
            name=data["name"],
            buy_price=Decimal(data["buy_price"]),
            sell_price=Decimal(data["sell_price"]),
            quantity=Decimal(data["quantity"]),
            profit=Decimal(data["profit"]),
            profit_percentage=Decimal(data["profit_percentage"]),
            buy_timestamp=datetime.fromisoformat(data["buy_timestamp"]),
            sell_timestamp=datetime.fromisoformat(data["sell_timestamp"]),
        )
