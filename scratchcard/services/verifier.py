"""
Activation verifier.

The remote side of activation: one GET request carrying the scratch code
as a query parameter, answered by a JSON object such as:

    {"android": "287028"}

The lifecycle only depends on the ActivationVerifier protocol. The HTTP
implementation here performs a single attempt; it does not retry, cache or
rate-limit.
"""

import logging
import re
from typing import Any, Protocol

import httpx

from scratchcard.models.failure import (
    InvalidResponseError,
    ThresholdNotMetError,
    TransportError,
)

logger = logging.getLogger(__name__)

ACTIVATION_THRESHOLD = 277028
DEFAULT_BASE_URL = "https://api.o2.sk"
DEFAULT_VERSION_FIELD = "android"
DEFAULT_TIMEOUT_SECONDS = 10.0

# Versions are signed 32-bit integers; strings are plain digits with an optional sign
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


class ActivationVerifier(Protocol):
    """Contract for anything that can look up the version for a code."""

    async def verify(self, code: str) -> int:
        """
        Return the numeric version value for a code.

        Raises:
            TransportError: If no response was received
            InvalidResponseError: If the response has no usable version
        """
        ...


def parse_version_value(payload: Any, field: str = DEFAULT_VERSION_FIELD) -> int:
    """
    Extract the integer version from a decoded response body.

    Accepts an int or a string of decimal digits with an optional sign, in
    the signed 32-bit range. Whitespace, digit separators, booleans, floats
    and anything else are rejected.

    Raises:
        InvalidResponseError: If the body is not an object or the field is
            absent or not an integer
    """
    if not isinstance(payload, dict):
        raise InvalidResponseError(detail=f"expected JSON object, got {type(payload).__name__}")

    if field not in payload or payload[field] is None:
        raise InvalidResponseError(detail=f"field '{field}' missing")

    raw = payload[field]

    if isinstance(raw, bool):
        raise InvalidResponseError(detail=f"field '{field}' is not numeric: {raw!r}")
    if isinstance(raw, str) and _INTEGER_PATTERN.fullmatch(raw):
        raw = int(raw)
    if not isinstance(raw, int):
        raise InvalidResponseError(detail=f"field '{field}' is not numeric: {raw!r}")
    if not INT32_MIN <= raw <= INT32_MAX:
        raise InvalidResponseError(detail=f"field '{field}' is out of range: {raw}")

    return raw


def check_activation_threshold(version: int, threshold: int = ACTIVATION_THRESHOLD) -> int:
    """
    Apply the activation decision rule.

    Activation succeeds only when the version is strictly greater than the
    threshold.

    Returns:
        The version, unchanged

    Raises:
        ThresholdNotMetError: If version <= threshold
    """
    if version <= threshold:
        raise ThresholdNotMetError(version=version, threshold=threshold)
    return version


class HttpActivationVerifier:
    """
    ActivationVerifier backed by the remote version endpoint.

    Args:
        client: httpx client; its base_url is ignored in favour of base_url
        base_url: Endpoint root, the request goes to {base_url}/version
        version_field: JSON field holding the version value
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        version_field: str = DEFAULT_VERSION_FIELD,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.url = f"{base_url.rstrip('/')}/version"
        self.version_field = version_field
        self.timeout = timeout

    async def verify(self, code: str) -> int:
        logger.info("VERIFY_REQUEST: url=%s", self.url)
        logger.debug("VERIFY_REQUEST_CODE: code=%s", code)

        try:
            response = await self.client.get(
                self.url,
                params={"code": code},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("VERIFY_TRANSPORT_ERROR: %s: %s", type(e).__name__, e)
            raise TransportError(detail=f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            logger.error(
                "VERIFY_HTTP_ERROR: status=%d reason=%s",
                response.status_code,
                response.reason_phrase,
            )
            raise InvalidResponseError(
                detail=f"API call failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("VERIFY_BAD_BODY: %s", e)
            raise InvalidResponseError(
                detail="response body is not valid JSON",
                status_code=response.status_code,
            ) from e

        version = parse_version_value(payload, self.version_field)
        logger.info("VERIFY_RESPONSE: version=%d", version)
        return version
