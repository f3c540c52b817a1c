"""
Error taxonomy for the horse race program and its host.

Every failure aborts the whole operation. Each class carries a stable
``code`` so the API layer can surface a distinguishable failure kind.
"""


class HorseRaceError(Exception):
    """Base class for every race program failure."""
    code = "horse_race_error"


# ============ Authorization ============

class AuthorizationError(HorseRaceError):
    """Missing or invalid credential, or a capability the caller lacks."""
    code = "unauthorized"


class MissingRequiredSignature(AuthorizationError):
    """An account that must sign did not."""
    def __init__(self, role: str, key=None):
        self.role = role
        self.key = key
        super().__init__(f"Missing required signature for {role}" + (f" ({key})" if key else ""))


class InvalidSignature(AuthorizationError):
    """A transaction signature does not verify against its message."""
    pass


class NotRaceWinner(AuthorizationError):
    """Claimant is not the selected winner."""
    def __init__(self, claimant, winner):
        self.claimant = claimant
        self.winner = winner
        super().__init__(f"Wallet {claimant} is not the race winner")


class AccountNotWritable(AuthorizationError):
    """An account that is mutated was passed read-only."""
    def __init__(self, role: str, key=None):
        self.role = role
        self.key = key
        super().__init__(f"Account for {role} must be writable" + (f" ({key})" if key else ""))


class IncorrectAccountOwner(AuthorizationError):
    """Race slot is not owned by the executing program."""
    pass


class InvalidEscrowAccount(AuthorizationError):
    """Escrow holding is not controlled by the race custody address."""
    pass


class InvalidPayoutAccount(AuthorizationError):
    """Winnings would be paid back into the escrow holding."""
    pass


# ============ Lifecycle state ============

class StateError(HorseRaceError):
    """Operation is not allowed in the race's current lifecycle state."""
    code = "invalid_state"


class InvalidRaceState(StateError):
    def __init__(self, operation: str, state):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while race is {state.label}")


class PlayerAlreadyJoined(StateError):
    def __init__(self, wallet):
        self.wallet = wallet
        super().__init__(f"Player {wallet} already joined the race")


class RaceFull(StateError):
    pass


class NotEnoughPlayers(StateError):
    pass


class WinnerNotSelected(StateError):
    pass


class EscrowMintMismatch(StateError):
    """Escrow holds a different token than the race accepts."""
    pass


# ============ Decoding ============

class DecodingError(HorseRaceError):
    """Malformed instruction payload, account list or persisted state."""
    code = "decoding_error"


class InvalidInstructionData(DecodingError):
    pass


class CorruptRaceState(DecodingError):
    pass


class NotEnoughAccountKeys(DecodingError):
    pass


class IncorrectProgramId(DecodingError):
    pass


# ============ Token transfer collaborator ============

class CollaboratorError(HorseRaceError):
    """Token transfer failure, propagated unchanged."""
    code = "token_transfer_failed"


class TokenAccountNotFound(CollaboratorError):
    def __init__(self, address):
        self.address = address
        super().__init__(f"Token account {address} not found")


class InsufficientFunds(CollaboratorError):
    def __init__(self, address, balance: int, amount: int):
        self.address = address
        self.balance = balance
        self.amount = amount
        super().__init__(f"Token account {address} holds {balance}, needs {amount}")


class MintMismatch(CollaboratorError):
    pass


class OwnerMismatch(CollaboratorError):
    pass


# ============ Host ============

class ConfigurationError(Exception):
    """Host is missing or has invalid configuration (e.g. SOLANA_PROGRAM_ID)."""
    pass


class SolanaRpcError(Exception):
    """The Solana RPC endpoint could not be reached or returned an error."""
    pass


class DuplicateTransaction(HorseRaceError):
    """Transaction signature was already processed."""
    code = "duplicate_transaction"

    def __init__(self, signature: str):
        self.signature = signature
        super().__init__(f"Transaction {signature} was already processed")
