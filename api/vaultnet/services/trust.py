"""Trust score computation and caching for marketplace items.

The score is a fixed composition of three components:

    clean_scan          50  (scan result is simulated as clean)
    popular_format      20  if the declared file format contains a POPULAR_FORMATS name,
                        10  otherwise
    integrity_verified  30  (hash binding step)

so total_score is always 90 or 100 and always equals the component sum.

content_hash is SHA-256 over "<item_id>-<item_name>-<content_id>-<millis>",
where millis is the evaluation time. It is an audit stamp binding the score to
the moment it was computed, not a digest of the item's bytes, and is not
reproducible across calls.

Design notes:
- The first caller for an item computes and stores the score; every later
  caller reads the stored row. There is no TTL and no recomputation, even if
  the item's format or content changes.
- Concurrent first callers may both compute; the store keeps the first insert
  and both get the stored row back.
"""

import hashlib
from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog

from vaultnet.metrics import trust_scores_computed
from vaultnet.models.trust_score import TrustScore

log = structlog.get_logger()

POPULAR_FORMATS: frozenset[str] = frozenset(
    {"onnx", "pt", "h5", "pb", "safetensors", "bin", "pkl"}
)

CLEAN_SCAN_SCORE = 50
POPULAR_FORMAT_SCORE = 20
OTHER_FORMAT_SCORE = 10
INTEGRITY_VERIFIED_SCORE = 30


class TrustScoreStore(Protocol):
    async def get(self, item_id: int) -> Optional[TrustScore]: ...

    async def insert_if_absent(self, score: TrustScore) -> TrustScore: ...


def normalize_format(file_format: Optional[str]) -> str:
    return (file_format or "").strip().lower()


def is_popular_format(file_format: Optional[str]) -> bool:
    """True when any popular format name occurs anywhere in the declared format.

    Matching is by substring, so "ONNX Runtime", "model.safetensors" and
    "tensorflow-h5" all count as popular.
    """
    declared = normalize_format(file_format)
    return any(fmt in declared for fmt in POPULAR_FORMATS)


def audit_hash(item_id: int, item_name: str, content_id: str, computed_at: datetime) -> str:
    millis = int(computed_at.timestamp() * 1000)
    data = f"{item_id}-{item_name}-{content_id}-{millis}"
    return hashlib.sha256(data.encode()).hexdigest()


def compute_trust_score(
    item_id: int,
    item_name: str,
    content_id: str,
    file_format: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TrustScore:
    """Build a new (unsaved) TrustScore for an item."""
    computed_at = now or datetime.now(timezone.utc)
    popular_format = POPULAR_FORMAT_SCORE if is_popular_format(file_format) else OTHER_FORMAT_SCORE
    total = CLEAN_SCAN_SCORE + popular_format + INTEGRITY_VERIFIED_SCORE

    return TrustScore(
        item_id=item_id,
        total_score=total,
        clean_scan=CLEAN_SCAN_SCORE,
        popular_format=popular_format,
        integrity_verified=INTEGRITY_VERIFIED_SCORE,
        content_hash=audit_hash(item_id, item_name, content_id, computed_at),
        computed_at=computed_at,
    )


def trust_status(total_score: int) -> str:
    if total_score >= 80:
        return "verified"
    if total_score >= 50:
        return "pending"
    return "failed"


def trust_label(total_score: int) -> str:
    if total_score >= 90:
        return "Excellent"
    if total_score >= 70:
        return "Good"
    if total_score >= 50:
        return "Fair"
    return "Low"


class TrustScoreService:
    def __init__(self, store: TrustScoreStore) -> None:
        self.store = store

    async def get_cached(self, item_id: int) -> Optional[TrustScore]:
        return await self.store.get(item_id)

    async def get_or_compute(
        self,
        item_id: int,
        item_name: str,
        content_id: str,
        file_format: Optional[str] = None,
    ) -> TrustScore:
        """Return the stored score for item_id, computing and storing it on first use."""
        cached = await self.store.get(item_id)
        if cached is not None:
            return cached

        score = compute_trust_score(item_id, item_name, content_id, file_format)
        stored = await self.store.insert_if_absent(score)
        trust_scores_computed.inc()
        log.info(
            "trust_score_computed",
            item_id=item_id,
            total_score=stored.total_score,
            content_hash=stored.content_hash,
        )
        return stored
