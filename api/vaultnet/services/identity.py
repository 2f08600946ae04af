"""Firebase ID token verification.

Tokens are RS256 JWTs signed with one of Google's rotating keys. Verification
checks, in order: structure and key id, signature, expiry, audience (the
Firebase project id), issuer (https://securetoken.google.com/<project id>) and
a non-empty subject. Any failure is reported as Unauthenticated before any
business logic runs. Failing to fetch the signing certificates is reported as
StoreUnavailable instead, since no verdict on the token is possible.

The public certificates are fetched from Google and kept until the
Cache-Control max-age of the response runs out. They are key material, not
request state, so sharing them across requests is safe.
"""

import re
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx
import structlog
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from vaultnet.errors import StoreUnavailable, Unauthenticated

log = structlog.get_logger()

FIREBASE_ISSUER_PREFIX = "https://securetoken.google.com/"
TOKEN_ALGORITHMS = ["RS256"]

_MAX_AGE_RE = re.compile(r"max-age=(\d+)")

KeySource = Callable[[], Awaitable[dict[str, str]]]


@dataclass(frozen=True)
class Identity:
    """Verified caller identity taken from token claims."""

    user_id: str
    email: Optional[str] = None


class GoogleCertificateSource:
    """Fetches and caches Google's x509 signing certificates keyed by kid."""

    def __init__(self, http_client: httpx.AsyncClient, certs_url: str) -> None:
        self.http_client = http_client
        self.certs_url = certs_url
        self._certs: dict[str, str] = {}
        self._expires_at = 0.0

    async def __call__(self) -> dict[str, str]:
        if self._certs and time.monotonic() < self._expires_at:
            return self._certs

        try:
            response = await self.http_client.get(self.certs_url)
            response.raise_for_status()
            certs = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.error("identity_certs_fetch_failed", error=str(exc))
            raise StoreUnavailable(f"could not fetch signing certificates: {exc}") from exc

        max_age = 0
        match = _MAX_AGE_RE.search(response.headers.get("cache-control", ""))
        if match:
            max_age = int(match.group(1))

        self._certs = certs
        self._expires_at = time.monotonic() + max_age
        return certs


class FirebaseTokenVerifier:
    def __init__(self, project_id: str, key_source: KeySource) -> None:
        self.project_id = project_id
        self.key_source = key_source

    @property
    def issuer(self) -> str:
        return f"{FIREBASE_ISSUER_PREFIX}{self.project_id}"

    async def verify(self, token: str) -> Identity:
        """Verify a raw ID token and return the caller identity.

        Raises:
            Unauthenticated: for any malformed, unsigned, expired or misdirected token.
            StoreUnavailable: when the signing certificates cannot be fetched.
        """
        if not self.project_id:
            log.error("identity_not_configured")
            raise Unauthenticated("firebase_project_id is not configured")

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise Unauthenticated(f"malformed token: {exc}") from exc

        if header.get("alg") not in TOKEN_ALGORITHMS:
            raise Unauthenticated(f"unexpected algorithm {header.get('alg')!r}")

        keys = await self.key_source()
        key = keys.get(header.get("kid", ""))
        if key is None:
            raise Unauthenticated(f"unknown key id {header.get('kid')!r}")

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=TOKEN_ALGORITHMS,
                audience=self.project_id,
                issuer=self.issuer,
                options={"verify_at_hash": False},
            )
        except ExpiredSignatureError as exc:
            raise Unauthenticated("token expired") from exc
        except JWTClaimsError as exc:
            raise Unauthenticated(f"invalid claims: {exc}") from exc
        except JWTError as exc:
            raise Unauthenticated(f"invalid token: {exc}") from exc

        user_id = claims.get("sub") or claims.get("user_id")
        if not user_id:
            raise Unauthenticated("token has no subject")

        return Identity(user_id=user_id, email=claims.get("email"))
