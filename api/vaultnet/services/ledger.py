"""On-chain purchase verification and the append-only purchase ledger.

verify_and_record turns a claimed payment into at most one purchase grant:

1. Input format checks (tx hash first, then the item fields). Fail fast,
   no I/O before they all pass.
2. Receipt lookup: missing receipt means pending/unknown, non-success status
   means the payment reverted, and the recipient must be the marketplace
   contract.
3. Transaction lookup: value must be within the configured tolerance of the
   declared price converted to wei.
4. Persistence: a tx hash already on file is a duplicate unless it is this
   user's purchase of this item (idempotent repeat). An existing purchase for
   (user, item) is returned as-is. Otherwise one row is inserted.

The unique constraints on the purchases table are what actually serialize
concurrent submissions; the lookups in step 4 only short-circuit the common
case. A losing insert is resolved the same way as the pre-checks.
"""

import re
from dataclasses import dataclass, replace
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Optional, Protocol

import structlog

from vaultnet.errors import (
    AlreadyPurchased,
    DuplicateTransaction,
    InvalidInput,
    MarketplaceError,
    PendingOrUnknownTransaction,
    PriceMismatch,
    StoreUnavailable,
    TransactionFailed,
    WrongContract,
)
from vaultnet.metrics import purchase_verifications
from vaultnet.models.purchase import Purchase
from vaultnet.schemas.common import MAX_ITEM_ID
from vaultnet.services.chain import Transaction, TransactionReceipt
from vaultnet.services.identity import Identity

log = structlog.get_logger()

TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
PRICE_RE = re.compile(r"^\d+(\.\d+)?$")
WALLET_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Upper bounds follow the purchases table column sizes
MIN_CONTENT_ID_LENGTH = 10
MAX_CONTENT_ID_LENGTH = 255
MAX_ITEM_NAME_LENGTH = 200
MAX_ITEM_PRICE_LENGTH = 78
WEI_PER_ETH = Decimal(10) ** 18
BPS_DENOMINATOR = 10_000


class PurchaseStore(Protocol):
    async def get_by_tx_hash(self, tx_hash: str) -> Optional[Purchase]: ...

    async def get_for_user_item(self, user_id: str, item_id: int) -> Optional[Purchase]: ...

    async def insert(
        self,
        *,
        user_id: str,
        item_id: int,
        content_id: str,
        item_name: str,
        item_price: str,
        tx_hash: str,
        wallet_address: Optional[str],
    ) -> Purchase: ...


class ChainReader(Protocol):
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]: ...

    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]: ...


@dataclass(frozen=True)
class PurchaseRequest:
    tx_hash: str
    item_id: int
    content_id: str
    item_name: str
    item_price: str
    wallet_address: Optional[str] = None


@dataclass(frozen=True)
class PurchaseOutcome:
    purchase: Purchase
    created: bool


def validate_purchase_request(request: PurchaseRequest) -> PurchaseRequest:
    """Check field formats in a fixed order and return a normalized copy.

    The tx hash and wallet address are lower-cased so that the same payment
    cannot be recorded twice under different hex casing.

    Raises:
        InvalidInput: on the first field that fails.
    """
    if not isinstance(request.tx_hash, str) or not TX_HASH_RE.match(request.tx_hash):
        raise InvalidInput(message="Invalid transaction hash format")

    item_id = request.item_id
    if (
        isinstance(item_id, bool)
        or not isinstance(item_id, int)
        or not 0 <= item_id <= MAX_ITEM_ID
    ):
        raise InvalidInput(message="Invalid item ID")

    if (
        not isinstance(request.content_id, str)
        or not MIN_CONTENT_ID_LENGTH <= len(request.content_id) <= MAX_CONTENT_ID_LENGTH
    ):
        raise InvalidInput(message="Invalid content ID")

    if (
        not isinstance(request.item_name, str)
        or not 1 <= len(request.item_name) <= MAX_ITEM_NAME_LENGTH
    ):
        raise InvalidInput(message="Invalid item name")

    if (
        not isinstance(request.item_price, str)
        or len(request.item_price) > MAX_ITEM_PRICE_LENGTH
        or not PRICE_RE.match(request.item_price)
    ):
        raise InvalidInput(message="Invalid item price")

    wallet_address = request.wallet_address
    if wallet_address:
        if not isinstance(wallet_address, str) or not WALLET_ADDRESS_RE.match(wallet_address):
            raise InvalidInput(message="Invalid wallet address")
        wallet_address = wallet_address.lower()
    else:
        wallet_address = None

    return replace(request, tx_hash=request.tx_hash.lower(), wallet_address=wallet_address)


def eth_to_wei(price: str) -> int:
    """Convert a decimal ETH string to integer wei, truncating sub-wei digits."""
    try:
        amount = Decimal(price)
    except InvalidOperation as exc:
        raise InvalidInput(message="Invalid item price") from exc
    return int((amount * WEI_PER_ETH).to_integral_value(rounding=ROUND_FLOOR))


def price_within_tolerance(value_wei: int, expected_wei: int, tolerance_bps: int) -> bool:
    """True when value_wei lies in [expected - tol, expected + tol], both ends inclusive."""
    tolerance = expected_wei * tolerance_bps // BPS_DENOMINATOR
    return expected_wei - tolerance <= value_wei <= expected_wei + tolerance


class PurchaseLedger:
    def __init__(
        self,
        store: PurchaseStore,
        chain: ChainReader,
        contract_address: str,
        price_tolerance_bps: int = 100,
    ) -> None:
        self.store = store
        self.chain = chain
        self.contract_address = contract_address.lower()
        self.price_tolerance_bps = price_tolerance_bps

    async def verify_and_record(
        self, identity: Identity, request: PurchaseRequest
    ) -> PurchaseOutcome:
        """Verify a claimed on-chain payment and record the purchase grant once.

        identity must already be verified (see services.identity); everything
        after that happens here, in order.

        Returns:
            PurchaseOutcome with created=False when the purchase already existed.

        Raises:
            InvalidInput, PendingOrUnknownTransaction, TransactionFailed,
            WrongContract, PriceMismatch, DuplicateTransaction, StoreUnavailable.
        """
        try:
            outcome = await self._verify_and_record(identity, request)
        except MarketplaceError as exc:
            purchase_verifications.labels(outcome=exc.code).inc()
            raise
        purchase_verifications.labels(
            outcome="purchased" if outcome.created else "already_purchased"
        ).inc()
        return outcome

    async def _verify_and_record(
        self, identity: Identity, request: PurchaseRequest
    ) -> PurchaseOutcome:
        request = validate_purchase_request(request)
        expected_wei = eth_to_wei(request.item_price)
        bound = log.bind(user_id=identity.user_id, item_id=request.item_id, tx_hash=request.tx_hash)

        await self._verify_payment(request, expected_wei, bound)

        existing = await self.store.get_by_tx_hash(request.tx_hash)
        if existing is not None:
            return self._resolve_spent_tx(existing, identity, request, bound)

        existing = await self.store.get_for_user_item(identity.user_id, request.item_id)
        if existing is not None:
            bound.info("purchase_already_recorded", purchase_id=str(existing.id))
            return PurchaseOutcome(purchase=existing, created=False)

        try:
            purchase = await self.store.insert(
                user_id=identity.user_id,
                item_id=request.item_id,
                content_id=request.content_id,
                item_name=request.item_name,
                item_price=request.item_price,
                tx_hash=request.tx_hash,
                wallet_address=request.wallet_address,
            )
        except DuplicateTransaction:
            # Lost an insert race on tx_hash
            existing = await self.store.get_by_tx_hash(request.tx_hash)
            if existing is None:
                raise
            return self._resolve_spent_tx(existing, identity, request, bound)
        except AlreadyPurchased as exc:
            # Lost an insert race on (user_id, item_id)
            existing = await self.store.get_for_user_item(identity.user_id, request.item_id)
            if existing is None:
                raise StoreUnavailable("purchase conflicted but could not be re-read") from exc
            bound.info("purchase_already_recorded", purchase_id=str(existing.id))
            return PurchaseOutcome(purchase=existing, created=False)

        bound.info("purchase_recorded", purchase_id=str(purchase.id))
        return PurchaseOutcome(purchase=purchase, created=True)

    async def _verify_payment(self, request: PurchaseRequest, expected_wei: int, bound) -> None:
        receipt = await self.chain.get_transaction_receipt(request.tx_hash)
        if receipt is None:
            bound.info("transaction_receipt_missing")
            raise PendingOrUnknownTransaction("no receipt yet")

        if not receipt.succeeded:
            bound.info("transaction_reverted", status=receipt.status)
            raise TransactionFailed(f"receipt status {receipt.status!r}")

        if (receipt.to or "").lower() != self.contract_address:
            bound.warning("transaction_wrong_contract", to=receipt.to)
            raise WrongContract(f"receipt.to={receipt.to!r}")

        tx = await self.chain.get_transaction(request.tx_hash)
        if tx is None:
            bound.info("transaction_body_missing")
            raise PendingOrUnknownTransaction("receipt found but transaction body missing")

        if not price_within_tolerance(tx.value_wei, expected_wei, self.price_tolerance_bps):
            bound.warning(
                "transaction_price_mismatch",
                expected_wei=str(expected_wei),
                value_wei=str(tx.value_wei),
            )
            raise PriceMismatch(f"expected {expected_wei} wei, got {tx.value_wei}")

        bound.info("transaction_verified", value_wei=str(tx.value_wei), sender=tx.sender)

    @staticmethod
    def _resolve_spent_tx(
        existing: Purchase, identity: Identity, request: PurchaseRequest, bound
    ) -> PurchaseOutcome:
        """A tx hash on file is only acceptable as a repeat of the same purchase."""
        if existing.user_id == identity.user_id and existing.item_id == request.item_id:
            bound.info("purchase_already_recorded", purchase_id=str(existing.id))
            return PurchaseOutcome(purchase=existing, created=False)
        bound.warning("transaction_already_used", purchase_id=str(existing.id))
        raise DuplicateTransaction(f"tx_hash used by purchase {existing.id}")
