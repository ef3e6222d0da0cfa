"""
Capability links.

A capability link is a signed, time-bounded token for one resource id. It
is self-contained: verifying it needs the shared secret and a clock, no
server-side state.

Wire format (query string)::

    id=<resource id>&exp=<expiry, ms since epoch>&nonce=<base64url>&sig=<base64url>

The signature is HMAC-SHA256 over ``"{id}:{exp}:{nonce}"``. Expiry is
checked before the signature.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qs, urlencode

from .config.gateway import LinkConfig
from .errors import (
    ConfigError,
    LinkError,
    LinkExpiredError,
    LinkInvalidSignatureError,
    MalformedLinkError,
)

NONCE_BYTES = 16
LINK_FIELDS = ("id", "exp", "nonce", "sig")

_BASE64URL = re.compile(r"^[A-Za-z0-9_-]+$")
_EXPIRY = re.compile(r"^[0-9]+$")


def now_ms() -> int:
    return int(time.time() * 1000)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    if not _BASE64URL.fullmatch(value):
        raise ValueError("not base64url")
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except binascii.Error as e:
        raise ValueError("not base64url") from e


def _signing_payload(resource_id: str, expires_at: int, nonce: str) -> bytes:
    return f"{resource_id}:{expires_at}:{nonce}".encode("utf-8")


def _sign(secret: str, resource_id: str, expires_at: int, nonce: str) -> str:
    digest = hmac.new(
        secret.encode("utf-8"),
        _signing_payload(resource_id, expires_at, nonce),
        hashlib.sha256,
    ).digest()
    return _b64url_encode(digest)


# =============================================================================
# Types
# =============================================================================


@dataclass(frozen=True)
class CapabilityLink:
    resource_id: str
    expires_at: int
    nonce: str
    signature: str


class LinkFailure(str, Enum):
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED = "malformed"


_FAILURE_ERRORS: dict[LinkFailure, type[LinkError]] = {
    LinkFailure.EXPIRED: LinkExpiredError,
    LinkFailure.INVALID_SIGNATURE: LinkInvalidSignatureError,
    LinkFailure.MALFORMED: MalformedLinkError,
}


@dataclass(frozen=True)
class LinkVerification:
    """Outcome of verifying a link. ``failure`` is None when valid."""

    valid: bool
    failure: LinkFailure | None = None
    link: CapabilityLink | None = None

    @property
    def resource_id(self) -> str | None:
        return self.link.resource_id if self.link else None

    def raise_for_invalid(self) -> CapabilityLink:
        """Return the link if valid, otherwise raise the matching LinkError."""
        if self.valid and self.link is not None:
            return self.link
        error_cls = _FAILURE_ERRORS.get(self.failure or LinkFailure.MALFORMED, LinkError)
        raise error_cls(error_cls.title)


# =============================================================================
# Issue / verify
# =============================================================================


def issue_link(
    resource_id: str,
    secret: str,
    ttl_seconds: float,
    *,
    now: int | None = None,
) -> CapabilityLink:
    """
    Issue a link for ``resource_id`` valid for ``ttl_seconds``.

    Args:
        resource_id: Identifier the link grants access to
        secret: Shared signing secret
        ttl_seconds: Lifetime in seconds, fractions allowed; must be at least 1 ms
        now: Current time in ms since epoch (defaults to the system clock)

    Raises:
        ValueError: On an empty id, an empty secret, or a non-positive ttl
    """
    if not resource_id:
        raise ValueError("resource_id is required")
    if not secret:
        raise ValueError("secret is required")
    ttl_ms = int(ttl_seconds * 1000)
    if ttl_ms <= 0:
        raise ValueError("ttl_seconds must be positive")

    issued_at = now_ms() if now is None else now
    expires_at = issued_at + ttl_ms
    nonce = _b64url_encode(secrets.token_bytes(NONCE_BYTES))
    return CapabilityLink(
        resource_id=resource_id,
        expires_at=expires_at,
        nonce=nonce,
        signature=_sign(secret, resource_id, expires_at, nonce),
    )


def verify_link(link: CapabilityLink, secret: str, *, now: int | None = None) -> LinkVerification:
    """
    Check expiry, then the signature.

    An expired link is reported as expired without computing its signature.
    A link is still valid at exactly ``expires_at``.
    """
    current = now_ms() if now is None else now
    if current > link.expires_at:
        return LinkVerification(valid=False, failure=LinkFailure.EXPIRED, link=link)

    expected = _sign(secret, link.resource_id, link.expires_at, link.nonce)
    if not hmac.compare_digest(expected.encode("ascii"), link.signature.encode("utf-8")):
        return LinkVerification(valid=False, failure=LinkFailure.INVALID_SIGNATURE, link=link)

    return LinkVerification(valid=True, link=link)


# =============================================================================
# Encoding
# =============================================================================


def encode_link(link: CapabilityLink) -> str:
    return urlencode(
        {
            "id": link.resource_id,
            "exp": str(link.expires_at),
            "nonce": link.nonce,
            "sig": link.signature,
        }
    )


def link_to_url(link: CapabilityLink, base_url: str) -> str:
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{encode_link(link)}"


def decode_link(query: str) -> CapabilityLink | None:
    """
    Parse a link query string. Returns None on anything unexpected.

    Every field must appear exactly once and be non-empty; ``exp`` must be
    a non-negative integer, ``nonce`` and ``sig`` must be base64url.
    """
    query = (query or "").lstrip("?")
    try:
        parsed = parse_qs(query, keep_blank_values=True, strict_parsing=True)
    except ValueError:
        return None

    values: dict[str, str] = {}
    for name in LINK_FIELDS:
        items = parsed.get(name)
        if not items or len(items) != 1 or not items[0]:
            return None
        values[name] = items[0]

    if not _EXPIRY.fullmatch(values["exp"]):
        return None
    try:
        _b64url_decode(values["nonce"])
        _b64url_decode(values["sig"])
    except ValueError:
        return None

    return CapabilityLink(
        resource_id=values["id"],
        expires_at=int(values["exp"]),
        nonce=values["nonce"],
        signature=values["sig"],
    )


def verify_link_query(query: str, secret: str, *, now: int | None = None) -> LinkVerification:
    link = decode_link(query)
    if link is None:
        return LinkVerification(valid=False, failure=LinkFailure.MALFORMED)
    return verify_link(link, secret, now=now)


# =============================================================================
# Signer
# =============================================================================


class CapabilityLinkSigner:
    """
    Issues and verifies links with one secret.

    Example:
        ```python
        signer = CapabilityLinkSigner.from_config(settings.links)
        url = signer.issue_url("report:42")
        signer.verify_query(query).raise_for_invalid()
        ```
    """

    def __init__(
        self,
        secret: str,
        *,
        default_ttl_seconds: int = 3600,
        base_url: str | None = None,
    ) -> None:
        if not secret:
            raise ConfigError("Link secret is not configured")
        self._secret = secret
        self.default_ttl_seconds = default_ttl_seconds
        self.base_url = base_url

    @classmethod
    def from_config(cls, config: LinkConfig) -> CapabilityLinkSigner:
        return cls(
            config.secret or "",
            default_ttl_seconds=config.default_ttl_seconds,
            base_url=config.base_url,
        )

    def issue(self, resource_id: str, ttl_seconds: float | None = None, *, now: int | None = None) -> CapabilityLink:
        if ttl_seconds is None:
            ttl_seconds = self.default_ttl_seconds
        return issue_link(resource_id, self._secret, ttl_seconds, now=now)

    def issue_url(self, resource_id: str, ttl_seconds: float | None = None, *, base_url: str | None = None) -> str:
        target = base_url or self.base_url
        if not target:
            raise ConfigError("No base_url configured for capability links")
        return link_to_url(self.issue(resource_id, ttl_seconds), target)

    def verify(self, link: CapabilityLink, *, now: int | None = None) -> LinkVerification:
        return verify_link(link, self._secret, now=now)

    def verify_query(self, query: str, *, now: int | None = None) -> LinkVerification:
        return verify_link_query(query, self._secret, now=now)

    def __repr__(self) -> str:
        return f"CapabilityLinkSigner(default_ttl_seconds={self.default_ttl_seconds}, base_url={self.base_url!r})"


__all__ = [
    "CapabilityLink",
    "LinkFailure",
    "LinkVerification",
    "CapabilityLinkSigner",
    "issue_link",
    "verify_link",
    "encode_link",
    "link_to_url",
    "decode_link",
    "verify_link_query",
    "now_ms",
]
