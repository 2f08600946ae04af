"""Shared fixtures: in-memory store doubles and a scripted chain reader.

The store doubles enforce the same uniqueness rules as the database
constraints so that ledger and aggregator behaviour can be tested without
Postgres. The chain double counts calls so tests can assert that no network
I/O happened.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest

from vaultnet.errors import AlreadyPurchased, DuplicateTransaction, StoreUnavailable
from vaultnet.models.purchase import Purchase
from vaultnet.models.trust_score import TrustScore
from vaultnet.services.chain import Transaction, TransactionReceipt
from vaultnet.services.identity import Identity

CONTRACT_ADDRESS = "0x90DCb7bAA3c1D67eCF0B40B892D4198BC0c1E024"
WEI_PER_ETH = 10**18


class InMemoryPurchaseStore:
    def __init__(self) -> None:
        self.rows: list[Purchase] = []
        self.insert_calls = 0
        self.fail_inserts = False

    async def get_by_tx_hash(self, tx_hash: str) -> Optional[Purchase]:
        return next((p for p in self.rows if p.tx_hash == tx_hash), None)

    async def get_for_user_item(self, user_id: str, item_id: int) -> Optional[Purchase]:
        return next(
            (p for p in self.rows if p.user_id == user_id and p.item_id == item_id), None
        )

    async def insert(self, *, user_id, item_id, content_id, item_name, item_price,
                     tx_hash, wallet_address) -> Purchase:
        self.insert_calls += 1
        if self.fail_inserts:
            raise StoreUnavailable("insert failed")
        if await self.get_by_tx_hash(tx_hash) is not None:
            raise DuplicateTransaction(tx_hash)
        if await self.get_for_user_item(user_id, item_id) is not None:
            raise AlreadyPurchased(f"{user_id}/{item_id}")
        purchase = Purchase(
            id=uuid.uuid4(),
            user_id=user_id,
            item_id=item_id,
            content_id=content_id,
            item_name=item_name,
            item_price=item_price,
            tx_hash=tx_hash,
            wallet_address=wallet_address,
            purchased_at=datetime.now(timezone.utc),
        )
        self.rows.append(purchase)
        return purchase

    async def list_for_user(self, user_id, item_id=None, wallet_address=None) -> list[Purchase]:
        rows = [
            p for p in self.rows
            if p.user_id == user_id
            or (wallet_address and p.wallet_address == wallet_address.lower())
        ]
        if item_id is not None:
            rows = [p for p in rows if p.item_id == item_id]
        return sorted(rows, key=lambda p: p.purchased_at, reverse=True)


class ScriptedChain:
    """Chain reader returning whatever receipts/transactions a test registered."""

    def __init__(self) -> None:
        self.receipts: dict[str, TransactionReceipt] = {}
        self.transactions: dict[str, Transaction] = {}
        self.receipt_calls = 0
        self.transaction_calls = 0

    @property
    def total_calls(self) -> int:
        return self.receipt_calls + self.transaction_calls

    def add_payment(
        self,
        tx_hash: str,
        value_wei: int,
        to: str = CONTRACT_ADDRESS,
        status: str = "0x1",
    ) -> None:
        tx_hash = tx_hash.lower()
        self.receipts[tx_hash] = TransactionReceipt(tx_hash=tx_hash, status=status, to=to)
        self.transactions[tx_hash] = Transaction(
            tx_hash=tx_hash, value_wei=value_wei, sender="0x" + "1" * 40, to=to
        )

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        self.receipt_calls += 1
        return self.receipts.get(tx_hash)

    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        self.transaction_calls += 1
        return self.transactions.get(tx_hash)


class InMemoryVoteStore:
    def __init__(self) -> None:
        self.counts: dict[int, tuple[int, int]] = {}
        self.votes: dict[tuple[str, int], dict] = {}
        self.fail_apply = False
        self.fail_reads = False
        self.locks: dict[tuple[str, int], asyncio.Lock] = {}

    async def get_counts(self, item_id: int) -> Optional[tuple[int, int]]:
        if self.fail_reads:
            raise StoreUnavailable("read failed")
        return self.counts.get(item_id)

    async def get_live_vote(self, user_id: str, item_id: int, for_update: bool = False):
        if self.fail_reads:
            raise StoreUnavailable("read failed")
        if for_update:
            await self.locks.setdefault((user_id, item_id), asyncio.Lock()).acquire()
        row = self.votes.get((user_id, item_id))
        if row is None or row["deleted"]:
            return None
        return row["vote_type"]

    async def apply_vote(self, *, user_id, user_email, item_id, up_delta, down_delta,
                         stored_vote, reason) -> tuple[int, int]:
        try:
            # Round-trip to the database; other casts may run here
            await asyncio.sleep(0)
            if self.fail_apply:
                raise StoreUnavailable("apply failed")
            up, down = self.counts.get(item_id, (0, 0))
            counts = (max(up + up_delta, 0), max(down + down_delta, 0))
            self.counts[item_id] = counts
            if stored_vote is None:
                row = self.votes.setdefault((user_id, item_id), {})
                row.update(vote_type=None, reason=None, deleted=True)
            else:
                self.votes[(user_id, item_id)] = {
                    "vote_type": stored_vote,
                    "reason": reason,
                    "user_email": user_email,
                    "deleted": False,
                }
            return counts
        finally:
            await self.release_vote(user_id, item_id)

    async def release_vote(self, user_id: str, item_id: int) -> None:
        lock = self.locks.get((user_id, item_id))
        if lock is not None and lock.locked():
            lock.release()


class InMemoryTrustScoreStore:
    def __init__(self) -> None:
        self.scores: dict[int, TrustScore] = {}
        self.insert_calls = 0

    async def get(self, item_id: int) -> Optional[TrustScore]:
        return self.scores.get(item_id)

    async def insert_if_absent(self, score: TrustScore) -> TrustScore:
        self.insert_calls += 1
        return self.scores.setdefault(score.item_id, score)


class InMemoryLoginAttemptStore:
    def __init__(self) -> None:
        self.attempts: list[tuple[str, str, bool, datetime]] = []
        self.now = datetime.now(timezone.utc)

    async def count_failed_for_email(self, email: str, since: datetime) -> int:
        return sum(1 for e, _, ok, at in self.attempts if e == email and not ok and at >= since)

    async def count_failed_for_ip(self, ip_address: str, since: datetime) -> int:
        return sum(
            1 for _, ip, ok, at in self.attempts if ip == ip_address and not ok and at >= since
        )

    async def add(self, email: str, ip_address: str, successful: bool) -> None:
        self.attempts.append((email, ip_address, successful, self.now))


class FakeRedis:
    """Stands in for redis.asyncio.Redis; eval admits or refuses every request."""

    def __init__(self, allow: bool = True) -> None:
        self.allow = allow
        self.eval_calls: list[tuple] = []

    async def eval(self, script, numkeys, *args):
        self.eval_calls.append(args)
        return 1 if self.allow else 0


@pytest.fixture()
def purchase_store() -> InMemoryPurchaseStore:
    return InMemoryPurchaseStore()


@pytest.fixture()
def chain() -> ScriptedChain:
    return ScriptedChain()


@pytest.fixture()
def vote_store() -> InMemoryVoteStore:
    return InMemoryVoteStore()


@pytest.fixture()
def trust_store() -> InMemoryTrustScoreStore:
    return InMemoryTrustScoreStore()


@pytest.fixture()
def login_store() -> InMemoryLoginAttemptStore:
    return InMemoryLoginAttemptStore()


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def alice() -> Identity:
    return Identity(user_id="firebase-uid-alice", email="alice@example.com")


@pytest.fixture()
def bob() -> Identity:
    return Identity(user_id="firebase-uid-bob", email="bob@example.com")
