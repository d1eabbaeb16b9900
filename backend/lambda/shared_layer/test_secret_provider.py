"""Tests for the Secrets Manager TTL cache and API key extraction."""

from __future__ import annotations

import os
import sys
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "python"))

from thoughtlog_shared.errors import SecretNotFoundError
from thoughtlog_shared.secret_provider import SecretsManagerSecretProvider, extract_api_key


class _Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _provider(value="s3cret", ttl=300):
    client = MagicMock()
    client.get_secret_value.return_value = {"SecretString": value}
    clock = _Clock()
    return SecretsManagerSecretProvider("arn:secret", client=client, ttl_seconds=ttl, clock=clock), client, clock


def test_value_cached_within_ttl():
    provider, client, clock = _provider()

    assert provider.get_secret() == "s3cret"
    clock.now += 299
    assert provider.get_secret() == "s3cret"

    client.get_secret_value.assert_called_once_with(SecretId="arn:secret")


def test_refetched_after_expiry():
    provider, client, clock = _provider()
    provider.get_secret()
    clock.now += 300
    client.get_secret_value.return_value = {"SecretString": "rotated"}

    assert provider.get_secret() == "rotated"
    assert client.get_secret_value.call_count == 2


def test_invalidate_forces_refetch():
    provider, client, _ = _provider()
    provider.get_secret()
    provider.invalidate()
    provider.get_secret()
    assert client.get_secret_value.call_count == 2


def test_missing_secret_string():
    provider, client, _ = _provider()
    client.get_secret_value.return_value = {"SecretBinary": b"..."}

    with pytest.raises(SecretNotFoundError):
        provider.get_secret()


@pytest.mark.parametrize(
    "secret, expected",
    [
        ("sk-raw", "sk-raw"),
        ("  sk-raw\n", "sk-raw"),
        ('{"api_key": "sk-json"}', "sk-json"),
        ('{"openai_api_key": " sk-alt "}', "sk-alt"),
        ('{"token": "sk-token", "api_key": ""}', "sk-token"),
        ('{"other": "x"}', None),
        ("{not json}", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_api_key(secret, expected):
    assert extract_api_key(secret) == expected
