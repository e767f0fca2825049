from .sigv4 import (
    EMPTY_PAYLOAD_SHA256,
    RequestComponents,
    SignedRequest,
    SigningCredentials,
    SigV4Signer,
    derive_signing_key,
    format_amz_date,
    hash_payload,
    sign_request,
)

__all__ = [
    "EMPTY_PAYLOAD_SHA256",
    "RequestComponents",
    "SignedRequest",
    "SigningCredentials",
    "SigV4Signer",
    "derive_signing_key",
    "format_amz_date",
    "hash_payload",
    "sign_request",
]
