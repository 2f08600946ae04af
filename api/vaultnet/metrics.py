from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response

# Purchase verification outcomes
purchase_verifications = Counter(
    "vaultnet_purchase_verifications_total",
    "Purchase verification attempts by outcome",
    ["outcome"],  # purchased | already_purchased | <error code>
)

chain_rpc_duration = Histogram(
    "vaultnet_chain_rpc_duration_seconds",
    "Latency of JSON-RPC calls to the chain node",
    ["method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Voting and trust scores
votes_cast = Counter(
    "vaultnet_votes_total",
    "Votes applied by transition",
    ["transition"],  # new | toggle_off | switch
)

trust_scores_computed = Counter(
    "vaultnet_trust_scores_computed_total",
    "Trust scores computed (cache misses)",
)

# HTTP request metrics (from middleware)
http_requests = Counter(
    "vaultnet_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration = Histogram(
    "vaultnet_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


async def metrics_endpoint():
    """FastAPI endpoint handler that returns Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
