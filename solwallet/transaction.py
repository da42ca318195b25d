from dataclasses import dataclass, field
from enum import Enum
from typing import (
    List,
    Optional,
    Sequence,
    Union,
)

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from solwallet.errors import InvalidStateTransition, SigningError


class TxState(Enum):
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    FAILED = "failed"


TERMINAL_STATES = (TxState.CONFIRMED, TxState.EXPIRED, TxState.FAILED)


class ConfirmationState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    FAILED = "failed"


@dataclass(frozen=True)
class ConfirmationStatus:
    state: ConfirmationState
    reason: Optional[str] = None

    @classmethod
    def pending(cls):
        return cls(ConfirmationState.PENDING)

    @classmethod
    def confirmed(cls):
        return cls(ConfirmationState.CONFIRMED)

    @classmethod
    def expired(cls):
        return cls(ConfirmationState.EXPIRED)

    @classmethod
    def failed(cls, reason):
        return cls(ConfirmationState.FAILED, str(reason))

    @property
    def is_terminal(self) -> bool:
        return self.state is not ConfirmationState.PENDING


CompiledMessage = Union[Message, MessageV0]


def restamp_message(message: CompiledMessage, blockhash: Hash) -> CompiledMessage:
    """Copy of a compiled message bound to a new reference hash."""
    if isinstance(message, MessageV0):
        return MessageV0(
            message.header,
            message.account_keys,
            blockhash,
            message.instructions,
            message.address_table_lookups,
        )
    header = message.header
    return Message.new_with_compiled_instructions(
        header.num_required_signatures,
        header.num_readonly_signed_accounts,
        header.num_readonly_unsigned_accounts,
        message.account_keys,
        blockhash,
        message.instructions,
    )


@dataclass
class PendingTransaction:
    """
    A ledger transaction moving through
    BUILT -> SIGNED -> SUBMITTED -> CONFIRMED | EXPIRED | FAILED.

    Built either from instructions (compiled at signing time) or from an
    already compiled message, e.g. a swap envelope. Once it leaves BUILT the
    reference hash is frozen; `reset` is the only way back.
    """

    fee_payer: Pubkey
    instructions: List[Instruction] = field(default_factory=list)
    compiled: Optional[CompiledMessage] = None
    state: TxState = TxState.BUILT
    recent_blockhash: Optional[Hash] = None
    signed: Optional[VersionedTransaction] = None
    signature: Optional[Signature] = None
    status: ConfirmationStatus = field(default_factory=ConfirmationStatus.pending)

    def _expect(self, *states):
        if self.state not in states:
            expected = ", ".join(s.name for s in states)
            raise InvalidStateTransition(f"Transaction is {self.state.name}, expected {expected}.")

    def compile(self, blockhash: Hash) -> CompiledMessage:
        if self.compiled is not None:
            return restamp_message(self.compiled, blockhash)
        return MessageV0.try_compile(self.fee_payer, self.instructions, [], blockhash)

    def mark_signed(self, blockhash: Hash, signers: Sequence[Keypair]) -> None:
        self._expect(TxState.BUILT)
        message = self.compile(blockhash)
        required = message.account_keys[: message.header.num_required_signatures]
        by_pubkey = {kp.pubkey(): kp for kp in signers}
        missing = [str(key) for key in required if key not in by_pubkey]
        if missing:
            raise SigningError(f"Missing signers: {', '.join(missing)}")
        # fee payer is always the first required signer
        keypairs = [by_pubkey[key] for key in required]
        self.signed = VersionedTransaction(message, keypairs)
        self.recent_blockhash = blockhash
        self.signature = self.signed.signatures[0]
        self.state = TxState.SIGNED

    def mark_submitted(self, signature: Signature) -> None:
        self._expect(TxState.SIGNED)
        self.signature = signature
        self.state = TxState.SUBMITTED

    def mark_confirmed(self) -> None:
        self._expect(TxState.SUBMITTED)
        self.status = ConfirmationStatus.confirmed()
        self.state = TxState.CONFIRMED

    def mark_expired(self) -> None:
        self._expect(TxState.SUBMITTED)
        self.status = ConfirmationStatus.expired()
        self.state = TxState.EXPIRED

    def mark_failed(self, reason) -> None:
        self._expect(TxState.SIGNED, TxState.SUBMITTED)
        self.status = ConfirmationStatus.failed(reason)
        self.state = TxState.FAILED

    def reset(self) -> None:
        """Back to BUILT; a fresh reference hash is needed before resubmission."""
        self.state = TxState.BUILT
        self.recent_blockhash = None
        self.signed = None
        self.signature = None
        self.status = ConfirmationStatus.pending()

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def __bytes__(self) -> bytes:
        if self.signed is None:
            raise InvalidStateTransition("Transaction has not been signed.")
        return bytes(self.signed)
