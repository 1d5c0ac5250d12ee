# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Tests for .pem/.err persistence."""

import pytest
from botocore.exceptions import EndpointConnectionError

from dac_issuer.errors import ErrorKind, Failure
from dac_issuer.intake import SigningRequest
from dac_issuer.persister import ResultPersister
from dac_issuer.storage_key import parse

from fakes import FakeStorage, client_error


@pytest.fixture
def request_():
    return SigningRequest(
        key=parse("arn:pca/PAIArn/1001/request 1.csr"),
        bucket="bucket",
        object_version="version",
        queue_message_id="msg1",
    )


def test_persist_success(request_):
    storage = FakeStorage()

    result = ResultPersister(storage).persist_success(request_, "PEM")

    assert result.ok
    assert result.value == "123"
    assert storage.written_keys == ["arn:pca/PAIArn/1001/request 1.pem"]
    assert storage.body_of("arn:pca/PAIArn/1001/request 1.pem") == "PEM"


@pytest.mark.parametrize("error,kind", [
    (client_error("NoSuchBucket", "PutObject"), ErrorKind.WRITE_PERMANENT),
    (client_error("SlowDown", "PutObject"), ErrorKind.WRITE_TRANSIENT),
    (EndpointConnectionError(endpoint_url="https://s3.example"), ErrorKind.WRITE_TRANSIENT),
])
def test_persist_success_failures(request_, error, kind):
    storage = FakeStorage()
    storage.put_error = error

    result = ResultPersister(storage).persist_success(request_, "PEM")

    assert result.failure.kind is kind


def test_persist_error_writes_description(request_):
    storage = FakeStorage()
    failure = Failure(ErrorKind.VALIDATION, "Unexpected key, should have .csr extension")

    version = ResultPersister(storage).persist_error(request_, failure)

    assert version == "123"
    body = storage.body_of("arn:pca/PAIArn/1001/request 1.err")
    assert "should have .csr extension" in body


def test_persist_error_never_raises(request_):
    """A failing diagnostic write is logged and dropped."""
    storage = FakeStorage()
    storage.put_error = client_error("AccessDenied", "PutObject")
    failure = Failure(ErrorKind.ISSUANCE_TRANSIENT, "Couldn't retrieve certificate")

    assert ResultPersister(storage).persist_error(request_, failure) is None
    assert storage.written_keys == ["arn:pca/PAIArn/1001/request 1.err"]


def test_persist_error_swallows_unexpected_exceptions(request_):
    storage = FakeStorage()
    storage.put_error = RuntimeError("socket closed")
    failure = Failure(ErrorKind.ISSUANCE_TERMINAL, "Couldn't submit signing request")

    assert ResultPersister(storage).persist_error(request_, failure) is None
