# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test modules."""

import json
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from urlsigner.dotenv_loader import reset_dotenv_state
from urlsigner.logging import SecretFilter
from urlsigner.signers import LocalKeySigner


SIGNER_EMAIL = "signer@example-project.iam.gserviceaccount.com"


@pytest.fixture
def signer_email() -> str:
    """Service-account email of the test signer."""
    return SIGNER_EMAIL


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed aware signing time for deterministic URLs."""
    return datetime(2026, 3, 14, 9, 26, 53, tzinfo=UTC)


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """A 2048-bit RSA key shared by the whole session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key: rsa.RSAPrivateKey) -> str:
    """PKCS#8 PEM encoding of ``rsa_key``."""
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def keyfile(tmp_path: Path, private_key_pem: str) -> Path:
    """Service-account JSON keyfile holding ``rsa_key``."""
    path = tmp_path / "service-account.json"
    path.write_text(
        json.dumps(
            {
                "type": "service_account",
                "project_id": "example-project",
                "private_key_id": "abc123def456",
                "private_key": private_key_pem,
                "client_email": SIGNER_EMAIL,
            }
        )
    )
    return path


@pytest.fixture
def local_signer(private_key_pem: str) -> LocalKeySigner:
    """Local signer for ``rsa_key``."""
    return LocalKeySigner(private_key_pem, SIGNER_EMAIL)


@pytest.fixture(autouse=True)
def _isolate_global_state() -> Iterator[None]:
    """Reset redaction secrets and keep developer .env files out of tests."""
    SecretFilter.clear_secrets()
    reset_dotenv_state()
    with patch("urlsigner.config.load_dotenv_once"):
        yield
    SecretFilter.clear_secrets()
    reset_dotenv_state()
