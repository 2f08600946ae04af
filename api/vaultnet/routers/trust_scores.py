"""Item trust score endpoints.

GET  /api/v1/items/{item_id}/trust-score -- stored score, 404 if never computed
POST /api/v1/items/{item_id}/trust-score -- stored score, computing it on first use
"""

from fastapi import APIRouter, HTTPException, Path

from vaultnet.dependencies import CurrentIdentity, TrustScores
from vaultnet.middleware.rate_limiter import ReadRateLimit, VoteRateLimit
from vaultnet.schemas.common import MAX_ITEM_ID
from vaultnet.models.trust_score import TrustScore
from vaultnet.schemas.trust_score import TrustBreakdown, TrustScoreRequest, TrustScoreResponse
from vaultnet.services.trust import trust_label, trust_status

router = APIRouter(prefix="/api/v1", tags=["trust-scores"])


def _to_response(score: TrustScore) -> TrustScoreResponse:
    return TrustScoreResponse(
        item_id=score.item_id,
        total_score=score.total_score,
        breakdown=TrustBreakdown(
            clean_scan=score.clean_scan,
            popular_format=score.popular_format,
            integrity_verified=score.integrity_verified,
        ),
        content_hash=score.content_hash,
        status=trust_status(score.total_score),
        label=trust_label(score.total_score),
        computed_at=score.computed_at,
    )


@router.get("/items/{item_id}/trust-score", response_model=TrustScoreResponse)
async def get_trust_score(
    _rate: ReadRateLimit,
    trust_scores: TrustScores,
    item_id: int = Path(..., ge=0, le=MAX_ITEM_ID),
) -> TrustScoreResponse:
    score = await trust_scores.get_cached(item_id)
    if score is None:
        raise HTTPException(status_code=404, detail="Trust score not computed yet")
    return _to_response(score)


@router.post("/items/{item_id}/trust-score", response_model=TrustScoreResponse)
async def compute_trust_score(
    _rate: VoteRateLimit,
    identity: CurrentIdentity,
    body: TrustScoreRequest,
    trust_scores: TrustScores,
    item_id: int = Path(..., ge=0, le=MAX_ITEM_ID),
) -> TrustScoreResponse:
    """Return the item's trust score, computing and caching it if this is the first view."""
    score = await trust_scores.get_or_compute(
        item_id, body.item_name, body.content_id, body.file_format
    )
    return _to_response(score)
