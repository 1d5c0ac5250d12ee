# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Queue-triggered function entry point.

Receives a batch of queue messages carrying CSR upload notifications and
returns the partial batch response listing messages to redeliver.
"""

import functools
import logging
import time
from typing import Any, Optional

import boto3

from .config import Settings, settings
from .pipeline import CertificateIssuer

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logging.getLogger().setLevel(settings.log_level)
logger = logging.getLogger(__name__)


def create_issuer(config: Settings) -> CertificateIssuer:
    """Construct storage and private CA clients and wire them into the pipeline."""
    session = boto3.Session(region_name=config.aws_region)
    return CertificateIssuer(
        storage_client=session.client("s3"),
        ca_client=session.client("acm-pca"),
        settings=config,
    )


@functools.lru_cache(maxsize=1)
def _process_issuer() -> CertificateIssuer:
    # Clients are reused across warm invocations of the same process
    return create_issuer(settings)


def invocation_deadline(context: Any, clock=time.monotonic) -> Optional[float]:
    """Absolute monotonic deadline of the invocation, if the runtime exposes one."""
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if remaining is None:
        return None
    return clock() + remaining() / 1000.0


def handle_batch(event: dict, context: Any, issuer: CertificateIssuer) -> dict:
    """Process one queue batch with an explicit issuer."""
    records = event.get("Records") or []
    outcome = issuer.process(records, deadline=invocation_deadline(context))
    return outcome.to_response()


def lambda_handler(event: dict, context: Any) -> dict:
    """Runtime entry point."""
    return handle_batch(event, context, _process_issuer())
