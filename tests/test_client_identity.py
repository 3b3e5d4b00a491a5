"""Tests for client identity extraction."""

import pytest

from tokengate.core.client_identity import UNKNOWN_CLIENT, extract_client_ip


@pytest.mark.parametrize(
    "headers, peer, expected",
    [
        ({"x-forwarded-for": "1.2.3.4"}, "10.0.0.2", "1.2.3.4"),
        ({"x-forwarded-for": " 1.2.3.4 , 10.0.0.1"}, None, "1.2.3.4"),
        ({"x-forwarded-for": "", "x-real-ip": "5.6.7.8"}, None, "5.6.7.8"),
        ({"x-forwarded-for": " , 10.0.0.1", "x-real-ip": "5.6.7.8"}, None, "5.6.7.8"),
        ({"x-real-ip": "  "}, "10.0.0.2", "10.0.0.2"),
        ({}, "10.0.0.2", "10.0.0.2"),
        ({}, None, UNKNOWN_CLIENT),
        ({}, "", UNKNOWN_CLIENT),
    ],
)
def test_extract_client_ip_precedence(headers, peer, expected):
    assert extract_client_ip(headers, peer) == expected


def test_forwarded_headers_ignored_when_untrusted():
    headers = {"x-forwarded-for": "1.2.3.4", "x-real-ip": "5.6.7.8"}

    assert extract_client_ip(headers, "10.0.0.2", trust_forwarded_headers=False) == "10.0.0.2"
    assert extract_client_ip(headers, None, trust_forwarded_headers=False) == UNKNOWN_CLIENT
