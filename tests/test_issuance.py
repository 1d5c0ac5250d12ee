# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Tests for the issue-then-poll protocol.

State machine: Submitted -> Polling -> {Ready, Failed}, with Polling
looping while the CA reports the certificate in progress.
"""

import pytest
from botocore.exceptions import EndpointConnectionError
from cryptography import x509

from dac_issuer.ca_resolver import identity_from_pem
from dac_issuer.errors import ErrorKind
from dac_issuer.intake import SigningRequest
from dac_issuer.issuance import IssuancePoller
from dac_issuer.request_builder import RequestBuilder
from dac_issuer.storage_key import parse

from fakes import CA_ARN, client_error, to_pem


@pytest.fixture
def payload(storage, settings, pai):
    request = SigningRequest(
        key=parse("arn:pca/PAIArn/1001/request 1.csr"),
        bucket="bucket",
        object_version="version",
        queue_message_id="msg1",
    )
    identity = identity_from_pem(CA_ARN, to_pem(pai[0]))
    return RequestBuilder(storage, settings).build(request, identity).value


def make_poller(private_ca, clock, timeout=None):
    return IssuancePoller(private_ca, poll_interval=1.0, timeout=timeout, sleep=clock.sleep, clock=clock)


def test_ready_immediately(private_ca, clock, payload):
    result = make_poller(private_ca, clock).issue(payload)

    assert result.ok
    cert = x509.load_pem_x509_certificate(result.value.encode())
    assert cert.issuer == private_ca.pai_cert.subject
    assert clock.sleeps == []
    assert len(private_ca.issue_calls) == 1


def test_polls_while_in_progress(private_ca, clock, payload):
    """Each in-progress answer costs one fixed backoff interval."""
    private_ca.in_progress = 3

    result = make_poller(private_ca, clock).issue(payload)

    assert result.ok
    assert clock.sleeps == [1.0, 1.0, 1.0]
    assert private_ca.get_calls == 4


def test_no_limit_without_timeout_or_deadline(private_ca, clock, payload):
    private_ca.in_progress = 500

    result = make_poller(private_ca, clock).issue(payload)

    assert result.ok
    assert len(clock.sleeps) == 500


def test_submit_terminal_failure(private_ca, clock, payload):
    private_ca.issue_error = client_error("ResourceNotFoundException", "IssueCertificate")

    result = make_poller(private_ca, clock).issue(payload)

    assert result.failure.kind is ErrorKind.ISSUANCE_TERMINAL
    assert private_ca.get_calls == 0


def test_poll_transient_failure(private_ca, clock, payload):
    private_ca.get_error = client_error("RequestFailedException", "GetCertificate")

    result = make_poller(private_ca, clock).issue(payload)

    assert result.failure.kind is ErrorKind.ISSUANCE_TRANSIENT
    assert result.failure.retryable


def test_poll_transport_failure(private_ca, clock, payload):
    private_ca.get_error = EndpointConnectionError(endpoint_url="https://acm-pca.example")

    result = make_poller(private_ca, clock).issue(payload)

    assert result.failure.kind is ErrorKind.ISSUANCE_TRANSIENT


def test_poll_terminal_failure(private_ca, clock, payload):
    private_ca.get_error = client_error("InvalidArnException", "GetCertificate")

    result = make_poller(private_ca, clock).issue(payload)

    assert result.failure.kind is ErrorKind.ISSUANCE_TERMINAL


def test_timeout(private_ca, clock, payload):
    """Polling stops once the next backoff would pass the configured timeout."""
    private_ca.in_progress = 100

    result = make_poller(private_ca, clock, timeout=5).issue(payload)

    assert result.failure.kind is ErrorKind.ISSUANCE_TIMEOUT
    assert result.failure.retryable
    assert sum(clock.sleeps) <= 5


def test_caller_deadline_wins_when_earlier(private_ca, clock, payload):
    private_ca.in_progress = 100

    result = make_poller(private_ca, clock, timeout=60).issue(payload, deadline=clock.now + 2.5)

    assert result.failure.kind is ErrorKind.ISSUANCE_TIMEOUT
    assert clock.sleeps == [1.0, 1.0]
