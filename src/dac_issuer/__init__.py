# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Device Attestation Certificate issuer

Signs device CSRs uploaded to object storage with the intermediate CA named
in their key, through a private CA service.
"""

__version__ = "0.1.0"

from .storage_key import (
    StorageKey,
    parse,
    decode,
    render,
    with_extension,
)

from .errors import (
    ErrorKind,
    Failure,
    FailurePolicy,
    MalformedKey,
    Result,
    describe,
    policy_for,
)

from .intake import (
    SigningRequest,
    intake,
)

from .ca_resolver import (
    CaIdentity,
    CaResolver,
)

from .request_builder import (
    CertificateRequestPayload,
    RequestBuilder,
)

from .issuance import IssuancePoller
from .verifier import DacVerifier, VerificationResult
from .persister import ResultPersister
from .pipeline import BatchOutcome, CertificateIssuer

__all__ = [
    # Version
    '__version__',

    # Storage keys
    'StorageKey',
    'parse',
    'decode',
    'render',
    'with_extension',

    # Errors
    'ErrorKind',
    'Failure',
    'FailurePolicy',
    'MalformedKey',
    'Result',
    'describe',
    'policy_for',

    # Pipeline stages
    'SigningRequest',
    'intake',
    'CaIdentity',
    'CaResolver',
    'CertificateRequestPayload',
    'RequestBuilder',
    'IssuancePoller',
    'DacVerifier',
    'VerificationResult',
    'ResultPersister',

    # Batch
    'BatchOutcome',
    'CertificateIssuer',
]
