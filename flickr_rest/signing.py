"""Request signing for the two Flickr authentication schemes.

Legacy scheme: MD5 over ``secret + key1 + value1 + key2 + value2 ...`` with
the pairs sorted by name, rendered as 32 lowercase hex characters.

OAuth scheme: HMAC-SHA1 over the base string

    METHOD & escape(base_uri) & escape(key1=escape(v1)&key2=escape(v2)...)

keyed with ``escape(consumer_secret) & escape(token_secret)``, rendered in
standard base64 (oauthlib computes the keyed digest). Note the parameter
string is escaped twice: once per value while joining, then as a whole.
Servers verify exactly that form.

A Session picks one signer when it is configured (see select_signer); the
request builder only talks to the Signer interface.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field

from oauthlib import oauth1
from oauthlib.oauth1.rfc5849 import signature as rfc5849_signature

from flickr_rest.errors import MissingCredential, SignatureComputationFailed
from flickr_rest.escaping import escape
from flickr_rest.models import LegacyCredentials, OAuthCredentials, SessionConfig
from flickr_rest.params import sort_pairs

logger = logging.getLogger(__name__)

OAUTH_SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


@dataclass
class SignatureContext:
    """Working state of one signing operation.

    parameters is the complete unsigned set, already sorted by name.
    base_string and signature are filled in by Signer.sign().
    """

    http_method: str
    base_uri: str
    parameters: list[tuple[str, str]] = field(default_factory=list)
    base_string: str = ""
    signature: str = ""


# -----------------------------------------------------------------------------
# Pure algorithms
# -----------------------------------------------------------------------------


def checksum_base_string(secret: str, pairs: list[tuple[str, str]]) -> str:
    """Concatenate the secret and every sorted name/value with no separators."""
    parts = [secret]
    for key, value in sort_pairs(pairs):
        parts.append(key)
        parts.append(value)
    return "".join(parts)


def checksum_signature(secret: str, pairs: list[tuple[str, str]]) -> str:
    """Legacy-scheme signature: MD5 hex digest of checksum_base_string()."""
    data = checksum_base_string(secret, pairs).encode("utf-8")
    try:
        digest = hashlib.md5(data, usedforsecurity=False)
    except ValueError as e:
        # Raised by hashlib when the platform forbids MD5
        raise SignatureComputationFailed(f"MD5 unavailable: {e}") from e
    return digest.hexdigest()


def oauth_parameter_string(pairs: list[tuple[str, str]]) -> str:
    """Sorted ``key=escape(value)`` pairs joined by ``&``."""
    return "&".join(f"{key}={escape(value)}" for key, value in sort_pairs(pairs))


def oauth_base_string(http_method: str, base_uri: str, pairs: list[tuple[str, str]]) -> str:
    """Build the OAuth signature base string (double-escaped parameter string)."""
    return "&".join([
        escape(http_method.upper()),
        escape(base_uri),
        escape(oauth_parameter_string(pairs)),
    ])


def hmac_sha1_signature(
    base_string: str,
    consumer_secret: str,
    token_secret: str | None = None,
    consumer_key: str = "",
) -> str:
    """Base64 HMAC-SHA1 of *base_string* keyed with escape(consumer)&escape(token).

    The keyed digest itself comes from oauthlib, which reads both secrets
    off an oauth1.Client.
    """
    try:
        client = oauth1.Client(
            consumer_key, client_secret=consumer_secret, resource_owner_secret=token_secret
        )
        return rfc5849_signature.sign_hmac_sha1_with_client(base_string, client)
    except (TypeError, ValueError) as e:
        raise SignatureComputationFailed(f"HMAC-SHA1 computation failed: {e}") from e


# -----------------------------------------------------------------------------
# Signers
# -----------------------------------------------------------------------------


class Signer:
    """Interface shared by LegacySigner and OAuthSigner."""

    scheme: str = ""
    # Names whose value goes on the wire without escaping
    unescaped_keys: frozenset[str] = frozenset()

    @property
    def signature_name(self) -> str:
        raise NotImplementedError

    def validate(self) -> None:
        """Raise MissingCredential if the scheme cannot sign."""
        raise NotImplementedError

    def protocol_pairs(self) -> list[tuple[str, str]]:
        """Credential pairs appended to every call before signing."""
        raise NotImplementedError

    def sign(self, context: SignatureContext) -> str:
        raise NotImplementedError


class LegacySigner(Signer):
    """MD5 checksum signer for api_key/shared-secret credentials."""

    scheme = "legacy"
    unescaped_keys = frozenset({"method"})

    def __init__(self, credentials: LegacyCredentials, sig_key: str = "api_sig") -> None:
        self._credentials = credentials
        self._sig_key = sig_key

    @property
    def signature_name(self) -> str:
        return self._sig_key

    def validate(self) -> None:
        if not self._credentials.shared_secret:
            raise MissingCredential("No legacy Flickr auth secret")
        if not self._credentials.api_key:
            raise MissingCredential("No API key")

    def protocol_pairs(self) -> list[tuple[str, str]]:
        pairs = [("api_key", self._credentials.api_key or "")]
        if self._credentials.auth_token:
            pairs.append(("auth_token", self._credentials.auth_token))
        return pairs

    def sign(self, context: SignatureContext) -> str:
        secret = self._credentials.shared_secret
        if not secret:
            raise MissingCredential("No legacy Flickr auth secret")
        # The checksum input starts with the secret, so only its length is logged
        logger.debug(
            "Legacy checksum over %d parameters (%d byte secret)",
            len(context.parameters), len(secret),
        )
        context.base_string = checksum_base_string(secret, context.parameters)
        context.signature = checksum_signature(secret, context.parameters)
        return context.signature


class OAuthSigner(Signer):
    """HMAC-SHA1 signer for OAuth 1.0a-shaped credentials."""

    scheme = "oauth"

    def __init__(self, credentials: OAuthCredentials) -> None:
        self._credentials = credentials

    @property
    def signature_name(self) -> str:
        return "oauth_signature"

    def validate(self) -> None:
        if not self._credentials.consumer_key:
            raise MissingCredential("No OAuth consumer key")
        if not self._credentials.consumer_secret:
            raise MissingCredential("No OAuth consumer secret")

    def protocol_pairs(self) -> list[tuple[str, str]]:
        creds = self._credentials
        nonce = creds.nonce or uuid.uuid4().hex
        timestamp = creds.timestamp if creds.timestamp is not None else int(time.time())

        pairs: list[tuple[str, str]] = []
        if creds.callback:
            pairs.append(("oauth_callback", creds.callback))
        pairs.extend([
            ("oauth_consumer_key", creds.consumer_key or ""),
            ("oauth_nonce", nonce),
            ("oauth_signature_method", OAUTH_SIGNATURE_METHOD),
            ("oauth_timestamp", str(timestamp)),
            ("oauth_version", OAUTH_VERSION),
        ])
        if creds.token:
            pairs.append(("oauth_token", creds.token))
        if creds.verifier:
            pairs.append(("oauth_verifier", creds.verifier))
        return pairs

    def sign(self, context: SignatureContext) -> str:
        self.validate()
        context.base_string = oauth_base_string(
            context.http_method, context.base_uri, context.parameters
        )
        logger.debug("OAuth base string: %s", context.base_string)
        context.signature = hmac_sha1_signature(
            context.base_string,
            self._credentials.consumer_secret or "",
            self._credentials.token_secret,
            self._credentials.consumer_key or "",
        )
        return context.signature


def select_signer(config: SessionConfig) -> Signer:
    """Pick the signer for a session. OAuth wins when any consumer field is set."""
    if config.oauth is not None and config.oauth.is_configured():
        return OAuthSigner(config.oauth)
    return LegacySigner(config.legacy or LegacyCredentials(), sig_key=config.sig_key)
