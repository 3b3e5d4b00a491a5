"""Client identity extraction for rate limiting.

The key is the originating network address: the first hop of
``X-Forwarded-For``, then ``X-Real-IP``, then the direct peer. Requests that
carry none of these share the ``"unknown"`` bucket, so unattributable traffic
is still limited.
"""

from __future__ import annotations

from typing import Mapping

UNKNOWN_CLIENT = "unknown"


def extract_client_ip(
    headers: Mapping[str, str],
    peer_host: str | None,
    *,
    trust_forwarded_headers: bool = True,
) -> str:
    """Resolve the client address used as the rate limit identity.

    Examples:
        >>> extract_client_ip({"x-forwarded-for": "1.2.3.4, 10.0.0.1"}, "10.0.0.2")
        '1.2.3.4'
        >>> extract_client_ip({}, None)
        'unknown'
    """
    if trust_forwarded_headers:
        forwarded_for = headers.get("x-forwarded-for")
        if forwarded_for:
            first_hop = forwarded_for.split(",")[0].strip()
            if first_hop:
                return first_hop

        real_ip = (headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip

    if peer_host:
        return peer_host
    return UNKNOWN_CLIENT
