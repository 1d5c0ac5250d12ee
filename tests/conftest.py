# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Pytest configuration and fixtures."""

import pytest

from dac_issuer.config import Settings

from fakes import FakeClock, FakePrivateCA, FakeStorage, make_csr, make_pai


@pytest.fixture
def settings():
    """Settings from the environment, ignoring any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def pai():
    """Product-specific PAI (VID 1381, PID 1001) and its key."""
    return make_pai(vendor_id="1381", product_id="1001")


@pytest.fixture
def csr():
    """PEM CSR bytes and the device key that signed it."""
    return make_csr()


@pytest.fixture
def storage(csr):
    """Object store returning the CSR for every key."""
    csr_pem, _ = csr
    return FakeStorage(default_body=csr_pem)


@pytest.fixture
def private_ca(pai):
    pai_cert, pai_key = pai
    return FakePrivateCA(pai_cert, pai_key)


@pytest.fixture
def clock():
    return FakeClock()
