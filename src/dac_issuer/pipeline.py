# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Batch pipeline: intake -> resolve PAI -> build -> issue -> verify -> persist.

Workflow per invocation:
1. Decode queue messages and group requests by PAI ARN
2. Resolve each PAI once per group (failure: whole group is redelivered)
3. For each request: build payload, issue, verify, store the .pem
4. Any per-request failure writes a best-effort .err and, if retryable,
   adds the owning queue message to the batch failures
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

from .ca_resolver import CaIdentity, CaResolver
from .config import Settings
from .errors import ErrorKind, Failure, Result, describe
from .intake import SigningRequest, intake
from .issuance import IssuancePoller
from .persister import ResultPersister
from .request_builder import RequestBuilder
from .verifier import DacVerifier

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """Queue message ids that must be redelivered, in first-failure order."""

    failed_message_ids: list[str] = field(default_factory=list)

    def add(self, message_id: str) -> None:
        if message_id not in self.failed_message_ids:
            self.failed_message_ids.append(message_id)

    def extend(self, message_ids: Iterable[str]) -> None:
        for message_id in message_ids:
            self.add(message_id)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed_message_ids)

    def to_response(self) -> dict:
        """Partial batch response understood by the queue service."""
        return {
            "batchItemFailures": [
                {"itemIdentifier": message_id} for message_id in self.failed_message_ids
            ]
        }


class CertificateIssuer:
    """
    Processes queued CSR notifications.

    Clients are injected so the whole pipeline runs against fakes in tests.
    """

    def __init__(
        self,
        storage_client: Any,
        ca_client: Any,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.resolver = CaResolver(ca_client)
        self.builder = RequestBuilder(storage_client, settings)
        self.poller = IssuancePoller(
            ca_client,
            poll_interval=settings.poll_interval_seconds,
            timeout=settings.issuance_timeout_seconds,
            sleep=sleep,
            clock=clock,
        )
        self.persister = ResultPersister(storage_client)

    def process(
        self,
        messages: Iterable[Mapping[str, Any]],
        deadline: Optional[float] = None,
    ) -> BatchOutcome:
        """
        Process one batch of queue messages.

        Args:
            messages: Queue records with ``messageId`` and ``body``
            deadline: Absolute clock() value by which polling must stop

        Returns:
            BatchOutcome listing the messages to redeliver
        """
        messages = list(messages)
        logger.info(f"Found {len(messages)} queue message(s)")

        groups = intake(messages)
        outcome = BatchOutcome()

        if self.settings.max_workers > 1 and len(groups) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
                futures = [
                    pool.submit(self.process_group, ca_arn, requests, deadline)
                    for ca_arn, requests in groups.items()
                ]
                # Merge in group order so the outcome is deterministic
                for future in futures:
                    outcome.extend(future.result())
        else:
            for ca_arn, requests in groups.items():
                outcome.extend(self.process_group(ca_arn, requests, deadline))

        if outcome.partial_failure:
            logger.warning(f"Failed {len(outcome.failed_message_ids)} request(s)")
        return outcome

    def process_group(
        self,
        ca_arn: str,
        requests: list[SigningRequest],
        deadline: Optional[float] = None,
    ) -> list[str]:
        """Sign every request of one PAI. Returns message ids to redeliver."""
        try:
            resolved = self.resolver.resolve(ca_arn)
        except Exception as e:
            logger.exception(f"Unexpected error resolving PAI {ca_arn}")
            resolved = Result.error(ErrorKind.CA_UNAVAILABLE, f"Unexpected error resolving PAI {ca_arn}", e)
        if not resolved.ok:
            logger.error(f"{describe(resolved.failure).rstrip()} - skipping {len(requests)} request(s)")
            return [request.queue_message_id for request in requests]

        ca = resolved.value
        verifier = DacVerifier(ca) if self.settings.verify_issued_certificates else None

        failed = []
        for request in requests:
            try:
                failure = self.process_request(request, ca, verifier, deadline)
            except Exception as e:
                logger.exception(f"Unexpected error processing {request.location}")
                failure = Failure(ErrorKind.UNEXPECTED, f"Unexpected error processing {request.location}", e)
                try:
                    self._fail(request, failure)
                except Exception:
                    logger.exception(f"Couldn't report failure of {request.location}")
            if failure is not None and failure.retryable:
                failed.append(request.queue_message_id)
        return failed

    def process_request(
        self,
        request: SigningRequest,
        ca: CaIdentity,
        verifier: Optional[DacVerifier] = None,
        deadline: Optional[float] = None,
    ) -> Optional[Failure]:
        """
        Run one request through build, issue, verify and persist.

        Returns:
            The failure that stopped the request, or None on success
        """
        built = self.builder.build(request, ca)
        if not built.ok:
            return self._fail(request, built.failure)

        payload = built.value
        issued = self.poller.issue(payload, deadline=self._poll_deadline(deadline))
        if not issued.ok:
            return self._fail(request, issued.failure)

        pem = issued.value
        if verifier is not None:
            checked = verifier.check(pem, request.key.product_id, payload.csr_public_key)
            if not checked.ok:
                return self._fail(request, checked.failure)

        stored = self.persister.persist_success(request, pem)
        if not stored.ok:
            return self._fail(request, stored.failure)

        logger.info(f"Succeeded signing {request.location}:{stored.value}")
        return None

    def _poll_deadline(self, deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return deadline - self.settings.deadline_margin_seconds

    def _fail(self, request: SigningRequest, failure: Failure) -> Failure:
        """Log the failure and write the .err artifact if its policy asks for one."""
        logger.warning(
            f"Skipping CSR {request.location} (message {request.queue_message_id}, "
            f"retryable={failure.retryable}) due to {describe(failure).rstrip()}"
        )
        if failure.policy.writes_artifact:
            self.persister.persist_error(request, failure)
        return failure
