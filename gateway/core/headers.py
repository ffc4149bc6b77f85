"""
Header filtering between inbound, outbound and relayed messages.

Headers are handled as ordered lists of (name, value) pairs so repeated
headers survive the hop. Name comparisons are case-insensitive.
"""

from typing import Iterable, List, Optional, Set, Tuple

from gateway.config import Settings


HeaderList = List[Tuple[str, str]]

# Connection-scoped, never forwarded in either direction
HOP_BY_HOP_HEADERS: Set[str] = {
    "connection",
    "proxy-connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Rebuilt by the outbound client from the target URL and buffered body
REQUEST_ONLY_EXCLUDED: Set[str] = {"host", "content-length"}

RESPONSE_ONLY_EXCLUDED: Set[str] = {"server"}

FORWARDING_HEADERS: Set[str] = {"x-real-ip", "x-forwarded-proto", "x-forwarded-host"}

CORS_HEADERS: Set[str] = {
    "access-control-allow-origin",
    "access-control-allow-methods",
    "access-control-allow-headers",
    "access-control-allow-credentials",
    "access-control-expose-headers",
    "access-control-max-age",
}


def decode_raw_headers(raw: Iterable[Tuple[bytes, bytes]]) -> HeaderList:
    """Decode ASGI raw header pairs."""
    return [(name.decode("latin-1"), value.decode("latin-1")) for name, value in raw]


def encode_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[bytes, bytes]]:
    """Encode header pairs for an ASGI response."""
    return [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in headers
    ]


def _connection_tokens(headers: HeaderList) -> Set[str]:
    """Header names nominated as hop-by-hop by a Connection header."""
    tokens = set()
    for name, value in headers:
        if name.lower() == "connection":
            tokens.update(
                token.strip().lower() for token in value.split(",") if token.strip()
            )
    return tokens


def _filter(headers: HeaderList, excluded: Set[str]) -> HeaderList:
    excluded = HOP_BY_HOP_HEADERS | excluded | _connection_tokens(headers)
    return [(name, value) for name, value in headers if name.lower() not in excluded]


def filter_request_headers(headers: HeaderList) -> HeaderList:
    """Headers safe to send to the backend."""
    return _filter(headers, REQUEST_ONLY_EXCLUDED)


def filter_response_headers(headers: HeaderList) -> HeaderList:
    """Headers safe to relay back to the caller."""
    return _filter(headers, RESPONSE_ONLY_EXCLUDED)


def add_forwarding_headers(
    headers: HeaderList,
    client_host: Optional[str],
    scheme: str,
    host: Optional[str] = None,
) -> HeaderList:
    """
    Inject forwarding context so backends can see the original caller.

    X-Forwarded-For is appended to any chain already present; the
    single-valued forwarding headers are replaced.
    """
    client_ip = client_host or "unknown"

    prior_chain = [value for name, value in headers if name.lower() == "x-forwarded-for"]
    result = [
        (name, value)
        for name, value in headers
        if name.lower() not in FORWARDING_HEADERS and name.lower() != "x-forwarded-for"
    ]

    chain = ", ".join(prior_chain + [client_ip])
    result.append(("X-Forwarded-For", chain))
    result.append(("X-Real-IP", client_ip))
    result.append(("X-Forwarded-Proto", scheme))
    if host:
        result.append(("X-Forwarded-Host", host))

    return result


def cors_policy_headers(settings: Settings) -> HeaderList:
    """
    Gateway-wide CORS policy: any origin, never with credentials.

    A wildcard origin combined with Allow-Credentials is rejected by
    browsers, so credentials are not advertised.
    """
    return [
        ("Access-Control-Allow-Origin", "*"),
        ("Access-Control-Allow-Methods", ", ".join(settings.cors_allow_methods)),
        ("Access-Control-Allow-Headers", ", ".join(settings.cors_allow_headers)),
        ("Access-Control-Expose-Headers", ", ".join(settings.cors_expose_headers)),
        ("Access-Control-Max-Age", str(settings.cors_max_age)),
    ]


def apply_cors_policy(headers: HeaderList, settings: Settings) -> HeaderList:
    """Replace whatever CORS headers the backend sent with the gateway policy."""
    result = [(name, value) for name, value in headers if name.lower() not in CORS_HEADERS]
    result.extend(cors_policy_headers(settings))
    return result
