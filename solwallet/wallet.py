import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from solwallet.errors import InsufficientFunds, InvalidAmount


def to_decimal(amount) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidAmount(f"Invalid amount: {amount!r}")
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise InvalidAmount(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise InvalidAmount(f"Invalid amount: {amount!r}")
    return value


@dataclass
class WalletLedgerRecord:
    """Off-chain balance cache for one wallet. Persisting it is the caller's job."""

    user_id: int
    pub_key: str
    balance: Decimal = Decimal(0)
    disabled: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: int = field(default_factory=lambda: int(time.time()))
    updated_at: int = field(default_factory=lambda: int(time.time()))

    def __post_init__(self):
        self.balance = to_decimal(self.balance)

    def update_balance(self, balance) -> None:
        self.balance = to_decimal(balance)
        self.updated_at = int(time.time())

    def to_dict(self):
        return {
            "_id": self.id,
            "user_id": self.user_id,
            "pub_key": self.pub_key,
            "balance": str(self.balance),
            "disabled": self.disabled,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["_id"],
            user_id=data["user_id"],
            pub_key=data["pub_key"],
            balance=Decimal(data.get("balance", "0")),
            disabled=data.get("disabled", False),
            created_at=data.get("created_at", 0),
            updated_at=data.get("updated_at", 0),
        )


def apply_delta(record: WalletLedgerRecord, amount) -> WalletLedgerRecord:
    """Add `amount` (negative for a debit) to the record; a negative result is refused."""
    amount = to_decimal(amount)
    new_balance = record.balance + amount
    if new_balance < 0:
        raise InsufficientFunds(record.balance, amount)
    record.update_balance(new_balance)
    return record
