"""
Tests for capability links.
"""

from urllib.parse import parse_qs, urlencode, urlsplit

import pytest

from askai_kvs.config import LinkConfig
from askai_kvs.errors import (
    ConfigError,
    LinkExpiredError,
    LinkInvalidSignatureError,
    MalformedLinkError,
)
from askai_kvs.links import (
    CapabilityLink,
    CapabilityLinkSigner,
    LinkFailure,
    decode_link,
    encode_link,
    issue_link,
    link_to_url,
    verify_link,
    verify_link_query,
)

SECRET = "test-secret"
NOW = 1_700_000_000_000


B64URL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


def flip_last_char(value: str) -> str:
    return value[:-1] + ("A" if value[-1] != "A" else "B")


def flip_bit(value: str, position: int, bit: int) -> str:
    """Flip one of the six bits carried by the base64url character at ``position``."""
    index = B64URL_ALPHABET.index(value[position]) ^ (1 << bit)
    return value[:position] + B64URL_ALPHABET[index] + value[position + 1 :]


class TestIssueAndVerify:
    def test_fresh_link_is_valid(self):
        link = issue_link("report:42", SECRET, 60, now=NOW)

        result = verify_link(link, SECRET, now=NOW + 1_000)

        assert result.valid is True
        assert result.failure is None
        assert result.resource_id == "report:42"
        assert link.expires_at == NOW + 60_000

    def test_valid_at_exact_expiry(self):
        link = issue_link("r", SECRET, 1, now=NOW)
        assert verify_link(link, SECRET, now=link.expires_at).valid is True

    def test_expired(self):
        link = issue_link("r", SECRET, 1, now=NOW)

        result = verify_link(link, SECRET, now=NOW + 2_000)

        assert result.valid is False
        assert result.failure is LinkFailure.EXPIRED

    def test_expiry_is_checked_before_signature(self):
        link = issue_link("r", SECRET, 1, now=NOW)
        forged = CapabilityLink(link.resource_id, link.expires_at, link.nonce, flip_last_char(link.signature))

        assert verify_link(forged, SECRET, now=NOW + 2_000).failure is LinkFailure.EXPIRED

    def test_system_clock(self):
        link = issue_link("r", SECRET, 60)
        assert verify_link(link, SECRET).valid is True

    def test_nonces_are_unique(self):
        first = issue_link("r", SECRET, 60, now=NOW)
        second = issue_link("r", SECRET, 60, now=NOW)
        assert first.nonce != second.nonce
        assert first.signature != second.signature

    def test_fractional_ttl(self):
        assert issue_link("r", SECRET, 0.5, now=NOW).expires_at == NOW + 500
        assert issue_link("r", SECRET, 1.25, now=NOW).expires_at == NOW + 1_250

    @pytest.mark.parametrize(
        "resource_id, secret, ttl",
        [("", SECRET, 60), ("r", "", 60), ("r", SECRET, 0), ("r", SECRET, -5), ("r", SECRET, 0.0004)],
    )
    def test_issue_rejects_bad_arguments(self, resource_id, secret, ttl):
        with pytest.raises(ValueError):
            issue_link(resource_id, secret, ttl)


class TestTampering:
    """Any change to a signed field invalidates the link."""

    @pytest.fixture
    def link(self):
        return issue_link("doc:7", SECRET, 600, now=NOW)

    def test_signature_change(self, link):
        forged = CapabilityLink(link.resource_id, link.expires_at, link.nonce, flip_last_char(link.signature))
        assert verify_link(forged, SECRET, now=NOW).failure is LinkFailure.INVALID_SIGNATURE

    @pytest.mark.parametrize("bit", range(6))
    @pytest.mark.parametrize("position", range(43))
    def test_every_signature_bit(self, link, position, bit):
        assert len(link.signature) == 43
        forged = CapabilityLink(link.resource_id, link.expires_at, link.nonce, flip_bit(link.signature, position, bit))
        assert verify_link(forged, SECRET, now=NOW).failure is LinkFailure.INVALID_SIGNATURE

    def test_resource_id_change(self, link):
        forged = CapabilityLink("doc:8", link.expires_at, link.nonce, link.signature)
        assert verify_link(forged, SECRET, now=NOW).failure is LinkFailure.INVALID_SIGNATURE

    def test_expiry_extension(self, link):
        forged = CapabilityLink(link.resource_id, link.expires_at + 1, link.nonce, link.signature)
        assert verify_link(forged, SECRET, now=NOW).failure is LinkFailure.INVALID_SIGNATURE

    def test_nonce_change(self, link):
        forged = CapabilityLink(link.resource_id, link.expires_at, flip_last_char(link.nonce), link.signature)
        assert verify_link(forged, SECRET, now=NOW).failure is LinkFailure.INVALID_SIGNATURE

    def test_other_secret(self, link):
        assert verify_link(link, "other-secret", now=NOW).failure is LinkFailure.INVALID_SIGNATURE


class TestQueryEncoding:
    def test_round_trip(self):
        link = issue_link("user profile/1", SECRET, 60, now=NOW)
        query = encode_link(link)

        assert set(parse_qs(query)) == {"id", "exp", "nonce", "sig"}
        assert decode_link(query) == link
        assert decode_link("?" + query) == link
        assert verify_link_query(query, SECRET, now=NOW).valid is True

    def test_link_to_url(self):
        link = issue_link("r", SECRET, 60, now=NOW)

        url = link_to_url(link, "https://example.com/share")
        with_query = link_to_url(link, "https://example.com/share?lang=en")

        assert urlsplit(url).query == encode_link(link)
        assert with_query.startswith("https://example.com/share?lang=en&id=r&")

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda q: {k: v for k, v in q.items() if k != "sig"},
            lambda q: {**q, "id": ""},
            lambda q: {**q, "exp": "soon"},
            lambda q: {**q, "exp": "-5"},
            lambda q: {**q, "exp": "١٢٣"},
            lambda q: {**q, "nonce": "not base64!"},
            lambda q: {**q, "sig": "abc="},
        ],
    )
    def test_malformed_queries_fail_closed(self, mutate):
        link = issue_link("r", SECRET, 60, now=NOW)
        fields = {"id": link.resource_id, "exp": str(link.expires_at), "nonce": link.nonce, "sig": link.signature}
        query = urlencode(mutate(fields))

        assert decode_link(query) is None
        result = verify_link_query(query, SECRET, now=NOW)
        assert result.valid is False
        assert result.failure is LinkFailure.MALFORMED
        assert result.resource_id is None

    def test_duplicate_field(self):
        link = issue_link("r", SECRET, 60, now=NOW)
        query = encode_link(link) + "&id=other"
        assert decode_link(query) is None

    @pytest.mark.parametrize("query", ["", "?", "garbage", "id=r&&exp=1"])
    def test_garbage(self, query):
        assert decode_link(query) is None


class TestRaiseForInvalid:
    def test_valid_returns_link(self):
        link = issue_link("r", SECRET, 60, now=NOW)
        assert verify_link(link, SECRET, now=NOW).raise_for_invalid() == link

    def test_error_types(self):
        link = issue_link("r", SECRET, 1, now=NOW)

        with pytest.raises(LinkExpiredError):
            verify_link(link, SECRET, now=NOW + 5_000).raise_for_invalid()
        with pytest.raises(LinkInvalidSignatureError) as exc_info:
            verify_link(link, "nope", now=NOW).raise_for_invalid()
        assert exc_info.value.http_status == 403
        with pytest.raises(MalformedLinkError) as exc_info:
            verify_link_query("id=r", SECRET, now=NOW).raise_for_invalid()
        assert exc_info.value.http_status == 400


class TestCapabilityLinkSigner:
    def test_from_config(self):
        signer = CapabilityLinkSigner.from_config(
            LinkConfig(secret=SECRET, default_ttl_seconds=120, base_url="https://kvs.example.com/links")
        )

        link = signer.issue("r", now=NOW)
        assert link.expires_at == NOW + 120_000
        assert signer.verify(link, now=NOW).valid is True

        url = signer.issue_url("r")
        assert url.startswith("https://kvs.example.com/links?")
        assert signer.verify_query(urlsplit(url).query).valid is True

    def test_ttl_override(self):
        signer = CapabilityLinkSigner(SECRET, default_ttl_seconds=120)

        assert signer.issue("r", 0.5, now=NOW).expires_at == NOW + 500
        assert signer.issue("r", None, now=NOW).expires_at == NOW + 120_000
        with pytest.raises(ValueError):
            signer.issue("r", 0, now=NOW)

    def test_requires_secret(self):
        with pytest.raises(ConfigError):
            CapabilityLinkSigner("")
        with pytest.raises(ConfigError):
            CapabilityLinkSigner.from_config(LinkConfig(secret=None))

    def test_issue_url_requires_base_url(self):
        with pytest.raises(ConfigError):
            CapabilityLinkSigner(SECRET).issue_url("r")

    def test_repr_hides_secret(self):
        assert SECRET not in repr(CapabilityLinkSigner(SECRET))
