# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Two-phase issuance against the private CA.

1. IssueCertificate returns an opaque certificate ARN
2. GetCertificate is polled until the certificate is ready

While the CA answers RequestInProgressException the poller sleeps a fixed
interval and asks again, up to the poll deadline.
"""

import logging
import time
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .errors import CA_IN_PROGRESS_CODE, ErrorKind, Result, classify_ca_error, error_code
from .request_builder import CertificateRequestPayload

logger = logging.getLogger(__name__)


class IssuancePoller:
    """Submits a payload and waits for the signed certificate."""

    def __init__(
        self,
        ca_client: Any,
        poll_interval: float = 1.0,
        timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ca_client: boto3 ``acm-pca`` client (or a compatible fake)
            poll_interval: Seconds between GetCertificate attempts
            timeout: Maximum seconds spent polling per certificate (None = no limit)
            sleep: Sleep function, injectable for tests
            clock: Monotonic clock, injectable for tests
        """
        self.ca_client = ca_client
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.sleep = sleep
        self.clock = clock

    def _poll_deadline(self, deadline: Optional[float]) -> Optional[float]:
        """Earliest of the configured timeout and the caller's deadline."""
        candidates = [] if deadline is None else [deadline]
        if self.timeout is not None:
            candidates.append(self.clock() + self.timeout)
        return min(candidates) if candidates else None

    def submit(self, payload: CertificateRequestPayload) -> str:
        """Phase one: returns the certificate ARN."""
        response = self.ca_client.issue_certificate(**payload.to_issue_kwargs())
        return response["CertificateArn"]

    def issue(
        self,
        payload: CertificateRequestPayload,
        deadline: Optional[float] = None,
    ) -> Result[str]:
        """
        Issue a certificate and wait until it is available.

        Args:
            payload: Signing payload built for this request
            deadline: Absolute ``clock()`` value after which polling stops

        Returns:
            Result holding the PEM certificate, or an ISSUANCE_* failure
        """
        try:
            certificate_arn = self.submit(payload)
        except (ClientError, BotoCoreError, KeyError) as e:
            return Result.error(classify_ca_error(e), f"Couldn't submit signing request to {payload.ca_arn}", e)

        logger.info(f"Submitted signing request to {payload.ca_arn}: {certificate_arn}")

        poll_deadline = self._poll_deadline(deadline)
        attempts = 0
        while True:
            attempts += 1
            try:
                response = self.ca_client.get_certificate(
                    CertificateAuthorityArn=payload.ca_arn,
                    CertificateArn=certificate_arn,
                )
                return Result.success(response["Certificate"])
            except ClientError as e:
                if error_code(e) != CA_IN_PROGRESS_CODE:
                    return Result.error(classify_ca_error(e), f"Couldn't retrieve certificate {certificate_arn}", e)
            except (BotoCoreError, KeyError) as e:
                return Result.error(ErrorKind.ISSUANCE_TRANSIENT, f"Couldn't retrieve certificate {certificate_arn}", e)

            # Not ready yet, wait longer
            if poll_deadline is not None and self.clock() + self.poll_interval > poll_deadline:
                return Result.error(
                    ErrorKind.ISSUANCE_TIMEOUT,
                    f"Certificate {certificate_arn} not ready after {attempts} attempt(s)",
                )
            logger.debug(f"Certificate {certificate_arn} in progress (attempt {attempts})")
            self.sleep(self.poll_interval)
