"""
AWS Signature Version 4 request signing.

Builds the canonical request, the string to sign and the derived signing key
from first principles, then renders the ``Authorization`` header value. Every
function here is pure: the request timestamp is always passed in, never read
from the clock.

Module Input:
    - HTTP method, path, query parameters and headers
    - Hex SHA-256 of the payload
    - Access/secret key, region, service and a UTC timestamp

Module Output:
    - SignedRequest objects carrying every intermediate value
    - Authorization header values

Reference:
    https://docs.aws.amazon.com/IAM/latest/UserGuide/create-signed-request.html
"""

import hashlib
import hmac
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from S3ML.core.exceptions import SigningError

ALGORITHM = "AWS4-HMAC-SHA256"
SCOPE_TERMINATOR = "aws4_request"

DATE_HEADER = "x-amz-date"
CONTENT_SHA256_HEADER = "x-amz-content-sha256"

EMPTY_PAYLOAD_SHA256 = hashlib.sha256(b"").hexdigest()
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"

_AMZ_DATE_RE = re.compile(r"^\d{8}T\d{6}Z$")
_HEX_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")

QueryParams = Union[Mapping[str, str], Sequence[Tuple[str, str]]]
Timestamp = Union[datetime, str]


@dataclass(frozen=True)
class SigningCredentials:
    """Access key pair. The secret never appears in ``repr``."""

    access_key: str
    secret_key: str = field(repr=False)


@dataclass(frozen=True)
class RequestComponents:
    """
    The parts of an HTTP request that take part in the signature.

    Attributes:
        method: HTTP verb, e.g. "PUT"
        path: Unencoded absolute path, e.g. "/text/file1.txt"
        headers: Headers to sign; must include ``host``
        payload_hash: Lower-case hex SHA-256 of the body
        query: Query parameters as a mapping or a list of pairs
    """

    method: str
    path: str
    headers: Mapping[str, str]
    payload_hash: str = EMPTY_PAYLOAD_SHA256
    query: QueryParams = ()


@dataclass(frozen=True)
class SignedRequest:
    """
    A fully signed request and every intermediate signing value.

    ``signed_headers`` is exactly the set of names in ``canonical_headers``,
    semicolon-joined in sorted order.
    """

    method: str
    host: str
    canonical_uri: str
    canonical_query_string: str
    canonical_headers: str
    signed_headers: str
    payload_hash: str
    timestamp: str
    credential_scope: str
    canonical_request: str
    string_to_sign: str
    signature: str
    authorization: str

    @property
    def date(self) -> str:
        """The ``YYYYMMDD`` part of the timestamp."""
        return self.timestamp[:8]


def hash_payload(payload: bytes) -> str:
    """Hex SHA-256 of ``payload``; the empty body hashes to ``EMPTY_PAYLOAD_SHA256``."""
    return hashlib.sha256(payload).hexdigest()


def format_amz_date(timestamp: Timestamp) -> str:
    """
    Render a timestamp in basic ISO-8601 form, ``YYYYMMDDTHHMMSSZ``.

    Args:
        timestamp: Timezone-aware datetime, or a string already in basic form

    Returns:
        str: e.g. "20230101T000000Z"

    Raises:
        SigningError: For naive datetimes, malformed strings or other types
    """
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None or timestamp.utcoffset() is None:
            raise SigningError(
                "Signing timestamp must be timezone-aware",
                details={"timestamp": timestamp.isoformat()},
            )
        return timestamp.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    if isinstance(timestamp, str) and _AMZ_DATE_RE.match(timestamp):
        try:
            datetime.strptime(timestamp, "%Y%m%dT%H%M%SZ")
        except ValueError as e:
            raise SigningError(
                f"Invalid signing timestamp: {timestamp}",
                details={"timestamp": timestamp, "error": str(e)},
            )
        return timestamp

    raise SigningError(
        "Signing timestamp cannot be formatted as basic ISO-8601",
        details={"timestamp": repr(timestamp)},
    )


def credential_scope(date: str, region: str, service: str) -> str:
    """``{date}/{region}/{service}/aws4_request``"""
    return f"{date}/{region}/{service}/{SCOPE_TERMINATOR}"


def canonical_uri(path: str, service: str = "s3") -> str:
    """
    URI-encode an absolute path, keeping ``/`` separators.

    S3 encodes the path once; every other service expects it encoded twice.
    Paths are not normalized (``.``/``..`` segments are kept as given).
    """
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    encoded = quote(path, safe="/~")
    if service != "s3":
        encoded = quote(encoded, safe="/~")
    return encoded


def canonical_query_string(query: QueryParams = ()) -> str:
    """Encode every name and value, sort by name then value, join with ``&``."""
    items: Iterable[Tuple[str, str]] = query.items() if isinstance(query, Mapping) else query
    encoded = sorted(
        (quote(str(name), safe="~"), quote(str(value), safe="~"))
        for name, value in items
    )
    return "&".join(f"{name}={value}" for name, value in encoded)


def _normalize_header_value(value: str) -> str:
    # Trim and collapse internal runs of whitespace into one space
    return " ".join(str(value).split())


def canonicalize_headers(headers: Mapping[str, str]) -> Tuple[str, str]:
    """
    Build the canonical header block and the signed-headers list.

    Names are lower-cased and sorted; values are trimmed with inner whitespace
    collapsed. Names that differ only in case are merged, comma-joined in
    input order.

    Returns:
        Tuple[str, str]: (canonical headers, each ending in ``\\n``; signed headers)
    """
    merged: dict[str, list[str]] = {}
    for name, value in headers.items():
        merged.setdefault(name.strip().lower(), []).append(_normalize_header_value(value))

    names = sorted(merged)
    block = "".join(f"{name}:{','.join(merged[name])}\n" for name in names)
    return block, ";".join(names)


def build_canonical_request(
    method: str,
    uri: str,
    query_string: str,
    canonical_headers: str,
    signed_headers: str,
    payload_hash: str,
) -> str:
    """Join the six canonical request parts with newlines."""
    return "\n".join([
        method.upper(),
        uri,
        query_string,
        canonical_headers,
        signed_headers,
        payload_hash,
    ])


def build_string_to_sign(amz_date: str, scope: str, canonical_request: str) -> str:
    """Algorithm, timestamp, scope and hex SHA-256 of the canonical request."""
    return "\n".join([
        ALGORITHM,
        amz_date,
        scope,
        hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
    ])


def _hmac_sha256(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """
    Derive the SigV4 signing key.

    HMAC("AWS4" + secret, date) -> region -> service -> "aws4_request".
    """
    key = _hmac_sha256(f"AWS4{secret_key}".encode("utf-8"), date)
    key = _hmac_sha256(key, region)
    key = _hmac_sha256(key, service)
    return _hmac_sha256(key, SCOPE_TERMINATOR)


def _validate_components(components: RequestComponents, amz_date: str, service: str) -> dict[str, str]:
    lowered = {name.strip().lower(): value for name, value in components.headers.items()}

    if not str(lowered.get("host", "")).strip():
        raise SigningError(
            "Cannot sign request without a host header",
            details={"headers": sorted(lowered)},
        )

    payload_hash = components.payload_hash
    if payload_hash != UNSIGNED_PAYLOAD and not _HEX_SHA256_RE.match(payload_hash or ""):
        raise SigningError(
            "Payload hash must be a lower-case hex SHA-256 digest",
            details={"payload_hash": payload_hash},
        )

    if service == "s3":
        content_sha = lowered.get(CONTENT_SHA256_HEADER)
        if content_sha is None:
            raise SigningError(
                f"S3 requests must carry the {CONTENT_SHA256_HEADER} header",
                details={"headers": sorted(lowered)},
            )
        if content_sha.strip() != payload_hash:
            raise SigningError(
                f"{CONTENT_SHA256_HEADER} header does not match the payload hash",
                details={"header": content_sha, "payload_hash": payload_hash},
            )

    header_date = lowered.get(DATE_HEADER)
    if header_date is not None and header_date.strip() != amz_date:
        raise SigningError(
            f"{DATE_HEADER} header does not match the signing timestamp",
            details={"header": header_date, "timestamp": amz_date},
        )

    return lowered


def sign_request(
    components: RequestComponents,
    credentials: SigningCredentials,
    timestamp: Timestamp,
    region: str,
    service: str = "s3",
) -> SignedRequest:
    """
    Sign a request with AWS Signature Version 4.

    Args:
        components: Method, path, query, headers and payload hash
        credentials: Access key pair
        timestamp: Request time; aware datetime or "YYYYMMDDTHHMMSSZ"
        region: Signing region, e.g. "us-east-1"
        service: Signing service name (default: "s3")

    Returns:
        SignedRequest: Including the final ``authorization`` header value

    Raises:
        SigningError: If ``host`` (or, for S3, the payload hash header) is
            missing, the payload hash is malformed, or the timestamp cannot
            be formatted

    Example:
        >>> signed = sign_request(
        ...     RequestComponents("GET", "/", {"Host": "example.amazonaws.com",
        ...                                    "X-Amz-Date": "20150830T123600Z"}),
        ...     SigningCredentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"),
        ...     "20150830T123600Z", "us-east-1", "service",
        ... )
        >>> signed.signature
        '5fa00fa31553b73ebf1942676e86291e8372ff2a2260956d9b8aae1d763fbf31'
    """
    amz_date = format_amz_date(timestamp)
    lowered = _validate_components(components, amz_date, service)

    uri = canonical_uri(components.path, service)
    query_string = canonical_query_string(components.query)
    header_block, signed_headers = canonicalize_headers(components.headers)
    canonical_request = build_canonical_request(
        components.method,
        uri,
        query_string,
        header_block,
        signed_headers,
        components.payload_hash,
    )

    date = amz_date[:8]
    scope = credential_scope(date, region, service)
    string_to_sign = build_string_to_sign(amz_date, scope, canonical_request)

    signing_key = derive_signing_key(credentials.secret_key, date, region, service)
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    authorization = (
        f"{ALGORITHM} Credential={credentials.access_key}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )

    return SignedRequest(
        method=components.method.upper(),
        host=_normalize_header_value(lowered["host"]),
        canonical_uri=uri,
        canonical_query_string=query_string,
        canonical_headers=header_block,
        signed_headers=signed_headers,
        payload_hash=components.payload_hash,
        timestamp=amz_date,
        credential_scope=scope,
        canonical_request=canonical_request,
        string_to_sign=string_to_sign,
        signature=signature,
        authorization=authorization,
    )


class SigV4Signer:
    """
    Signer bound to one credential pair, region and service.

    Holds only read-only values, so one instance can sign requests from many
    threads at once.
    """

    def __init__(self, credentials: SigningCredentials, region: str, service: str = "s3"):
        self.credentials = credentials
        self.region = region
        self.service = service

    def sign(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str],
        payload_hash: str,
        timestamp: Timestamp,
        query: Optional[QueryParams] = None,
    ) -> SignedRequest:
        """Sign one request; see :func:`sign_request`."""
        components = RequestComponents(
            method=method,
            path=path,
            headers=headers,
            payload_hash=payload_hash,
            query=query or (),
        )
        return sign_request(components, self.credentials, timestamp, self.region, self.service)
