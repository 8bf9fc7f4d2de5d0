"""
Polymarket CLOB authentication.

Two levels, as the exchange defines them:

- L1 (wallet): the signer signs a ``ClobAuth`` typed-data challenge
  (address, timestamp, nonce, fixed attestation text) under the
  ``ClobAuthDomain`` domain. Used once, for the handshake that creates or
  derives the API credentials.
- L2 (API key): every trading request carries an HMAC-SHA256 of
  ``timestamp + method + path + body`` keyed with the API secret.

A client is either unauthenticated or authenticated; ``AuthState`` is the
tag, and ``ClobClient`` checks it in exactly one place.
"""

import base64
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .eip712 import Domain, StructType, full_message, typed_data_digest
from .errors import (
    AuthError,
    AuthExpiredError,
    ForbiddenError,
    InvalidSignatureError,
    ServerRejectedError,
    SigningError,
    ValidationError,
)
from .signer import Signer, check_signature
from .types import ApiCredentials, SignatureType, mask

logger = logging.getLogger(__name__)

CLOB_DOMAIN_NAME = "ClobAuthDomain"
CLOB_DOMAIN_VERSION = "1"
MSG_TO_SIGN = "This message attests that I control the given wallet"

CLOB_AUTH_STRUCT = StructType(
    "ClobAuth",
    (
        ("address", "address"),
        ("timestamp", "string"),
        ("nonce", "uint256"),
        ("message", "string"),
    ),
)

# Header names
POLY_ADDRESS = "POLY_ADDRESS"
POLY_SIGNATURE = "POLY_SIGNATURE"
POLY_TIMESTAMP = "POLY_TIMESTAMP"
POLY_NONCE = "POLY_NONCE"
POLY_API_KEY = "POLY_API_KEY"
POLY_PASSPHRASE = "POLY_PASSPHRASE"

# Handshake endpoints
CREATE_API_KEY = "/auth/api-key"
DERIVE_API_KEY = "/auth/derive-api-key"


class AuthStatus(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthState:
    """
    Authentication state of a client.

    Only the AUTHENTICATED variant carries credentials; the other fields
    are None until then.
    """
    status: AuthStatus = AuthStatus.UNAUTHENTICATED
    credentials: Optional[ApiCredentials] = None
    address: Optional[str] = None
    signature_type: SignatureType = SignatureType.EOA
    funder: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED

    @classmethod
    def authenticated(
        cls,
        credentials: ApiCredentials,
        address: str,
        signature_type: SignatureType,
        funder: Optional[str] = None,
    ) -> "AuthState":
        return cls(
            status=AuthStatus.AUTHENTICATED,
            credentials=credentials,
            address=address,
            signature_type=signature_type,
            funder=funder,
        )


class HandshakeMode(Enum):
    """How the API credentials are obtained."""
    CREATE = "create"              # POST /auth/api-key
    DERIVE = "derive"              # GET /auth/derive-api-key
    CREATE_OR_DERIVE = "create_or_derive"


@dataclass
class AuthOptions:
    """
    Handshake options.

    Attributes:
        nonce: Challenge nonce; the same nonce derives the same credentials
        mode: Create new credentials, derive existing ones, or try both
        signature_type: Overrides the client config
        funder: Overrides the client config
        timestamp: Challenge timestamp (defaults to now)
    """
    nonce: int = 0
    mode: HandshakeMode = HandshakeMode.CREATE_OR_DERIVE
    signature_type: Optional[SignatureType] = None
    funder: Optional[str] = None
    timestamp: Optional[int] = None


@dataclass(frozen=True)
class AuthChallenge:
    """
    Canonical handshake challenge.

    ``host`` is the endpoint the signature is sent to; the signed digest
    covers the address, timestamp and nonce under the chain's auth domain.
    """
    host: str
    address: str
    timestamp: int
    nonce: int
    chain_id: int

    @property
    def domain(self) -> Domain:
        return Domain(name=CLOB_DOMAIN_NAME, version=CLOB_DOMAIN_VERSION, chain_id=self.chain_id)

    def values(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "timestamp": str(self.timestamp),
            "nonce": self.nonce,
            "message": MSG_TO_SIGN,
        }

    def digest(self) -> bytes:
        return typed_data_digest(self.domain, CLOB_AUTH_STRUCT, self.values())

    def typed_data(self) -> Dict[str, Any]:
        return full_message(self.domain, CLOB_AUTH_STRUCT, self.values())


async def sign_challenge(challenge: AuthChallenge, signer: Signer) -> str:
    """
    Have the signer attest the challenge.

    Returns:
        0x-prefixed hex signature

    Raises:
        SigningError: If the signer fails or declines
        InvalidSignatureError: If the signer returns a malformed signature
    """
    try:
        signature = await signer.sign_digest(challenge.digest())
    except SigningError:
        raise
    except Exception as e:
        raise SigningError(f"signer failed on auth challenge: {e}") from e

    try:
        signature = check_signature(signature)
    except SigningError as e:
        raise InvalidSignatureError(str(e)) from e
    return "0x" + signature.hex()


def build_l1_headers(challenge: AuthChallenge, signature: str) -> Dict[str, str]:
    return {
        POLY_ADDRESS: challenge.address,
        POLY_SIGNATURE: signature,
        POLY_TIMESTAMP: str(challenge.timestamp),
        POLY_NONCE: str(challenge.nonce),
    }


def build_hmac_signature(
    secret: str,
    timestamp: int,
    method: str,
    request_path: str,
    body: Optional[str] = None,
) -> str:
    """
    HMAC-SHA256 over ``timestamp + method + path + body``.

    The secret is urlsafe-base64; so is the result. ``body`` must be the
    exact string sent on the wire.
    """
    key = base64.urlsafe_b64decode(secret)
    message = f"{timestamp}{method.upper()}{request_path}"
    if body:
        message += body
    digest = hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8")


def build_l2_headers(
    state: AuthState,
    method: str,
    request_path: str,
    body: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    """
    Headers for an authenticated request.

    Raises:
        AuthError: If ``state`` holds no credentials
    """
    if not state.is_authenticated or state.credentials is None:
        raise AuthError("L2 headers need an authenticated state")

    ts = timestamp if timestamp is not None else int(time.time())
    creds = state.credentials
    return {
        POLY_ADDRESS: state.address,
        POLY_SIGNATURE: build_hmac_signature(creds.secret, ts, method, request_path, body),
        POLY_TIMESTAMP: str(ts),
        POLY_API_KEY: creds.key,
        POLY_PASSPHRASE: creds.passphrase,
    }


async def perform_handshake(
    http,
    challenge: AuthChallenge,
    signature: str,
    mode: HandshakeMode = HandshakeMode.CREATE_OR_DERIVE,
) -> ApiCredentials:
    """
    Exchange a signed challenge for API credentials.

    Args:
        http: ``HttpTransport`` of the client
        challenge: The challenge that was signed
        signature: Hex signature from ``sign_challenge``
        mode: Create, derive, or create then derive

    Returns:
        ApiCredentials

    Raises:
        InvalidSignatureError: The exchange refused the signature (401/403)
        ServerRejectedError: Any other refusal, or no credentials returned
        NetworkError: Transport failure (not retried)
    """
    headers = build_l1_headers(challenge, signature)

    if mode is HandshakeMode.CREATE_OR_DERIVE:
        try:
            return await _request_credentials(http, "POST", CREATE_API_KEY, headers)
        except ServerRejectedError as e:
            logger.info(f"Creating API key refused ({e.status}), deriving existing key...")
        return await _request_credentials(http, "GET", DERIVE_API_KEY, headers)

    if mode is HandshakeMode.CREATE:
        return await _request_credentials(http, "POST", CREATE_API_KEY, headers)
    return await _request_credentials(http, "GET", DERIVE_API_KEY, headers)


async def _request_credentials(http, method: str, path: str, headers: Dict[str, str]) -> ApiCredentials:
    try:
        data = await http.request(method, path, headers=headers)
    except (AuthExpiredError, ForbiddenError) as e:
        raise InvalidSignatureError(f"handshake signature refused: {e}") from e
    except ValidationError as e:
        raise ServerRejectedError(e.status or 400, e.body or str(e)) from e

    credentials = ApiCredentials.from_response(data) if isinstance(data, dict) else None
    if credentials is None:
        raise ServerRejectedError(200, f"handshake returned no credentials: {str(data)[:200]}")

    logger.info(f"API credentials obtained via {path}: {mask(credentials.key)}")
    return credentials
