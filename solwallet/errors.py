"""
Exceptions raised by the chain-interaction engine.

Every error carries a `retryable` flag. Retryable errors may succeed on a
fresh attempt (new reference hash, new request); the others will never
succeed without caller action.
"""


class SolwalletError(Exception):
    retryable = False


class LedgerError(SolwalletError):
    """Raised by the Ledger Client for any failed round trip."""


class TransportError(LedgerError):
    """The RPC endpoint (or another remote service) could not be reached."""

    retryable = True


class ProtocolError(LedgerError):
    """The remote side answered with something we cannot interpret."""


class RpcError(LedgerError):
    """The node answered with a JSON-RPC error."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class QuoteUnavailable(TransportError):
    pass


class SwapDecodeError(ProtocolError):
    pass


class SigningError(SolwalletError):
    pass


class InvalidAddress(SolwalletError, ValueError):
    pass


class InvalidAmount(SolwalletError, ValueError):
    pass


class InsufficientFunds(SolwalletError):
    def __init__(self, balance, amount):
        super().__init__(f"Insufficient funds: balance {balance}, delta {amount}")
        self.balance = balance
        self.amount = amount


class InsufficientRentExemptionQuery(SolwalletError):
    pass


class UnsupportedSwapEnvelope(SolwalletError):
    def __init__(self, tx_type):
        super().__init__(f"Unsupported swap envelope version: {tx_type!r}")
        self.tx_type = tx_type


class TransactionExpired(SolwalletError):
    retryable = True

    def __init__(self, signature, transaction=None):
        super().__init__(f"Transaction {signature} was not confirmed in time")
        self.signature = signature
        self.transaction = transaction


class TransactionFailed(SolwalletError):
    def __init__(self, reason, transaction=None):
        super().__init__(f"Transaction failed: {reason}")
        self.reason = reason
        self.transaction = transaction


class WalletNotFound(SolwalletError):
    def __init__(self, wallet_id):
        super().__init__(f"Wallet {wallet_id} does not exist.")
        self.wallet_id = wallet_id


class WalletDisabled(SolwalletError):
    def __init__(self, wallet_id):
        super().__init__(f"Wallet {wallet_id} is disabled.")
        self.wallet_id = wallet_id


class InvalidStateTransition(SolwalletError, RuntimeError):
    pass
