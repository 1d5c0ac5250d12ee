# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Batch intake: queue messages -> signing requests grouped by target CA.

Each queue message carries an object storage notification envelope in its
body. Malformed envelopes, unrelated events and malformed keys are dropped
here; none of them is ever redelivered.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from . import storage_key
from .errors import MalformedKey
from .storage_key import StorageKey

logger = logging.getLogger(__name__)

OBJECT_STORE_EVENT_SOURCE = "aws:s3"
OBJECT_CREATED_PUT = "ObjectCreated:Put"


class _Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class BucketEntity(_Envelope):
    name: str


class ObjectEntity(_Envelope):
    key: str
    version_id: Optional[str] = Field(None, alias="versionId")


class StorageEntity(_Envelope):
    bucket: BucketEntity
    object: ObjectEntity


class StorageRecord(_Envelope):
    """One storage-change record of a notification."""

    event_source: str = Field(alias="eventSource")
    event_name: str = Field(alias="eventName")
    s3: Optional[StorageEntity] = None

    @property
    def is_object_created(self) -> bool:
        return (
            self.event_source == OBJECT_STORE_EVENT_SOURCE
            and self.event_name == OBJECT_CREATED_PUT
        )


class StorageNotification(_Envelope):
    """Storage-change notification envelope (``Records`` or ``records``)."""

    records: list[StorageRecord] = Field(
        validation_alias=AliasChoices("Records", "records"),
    )


@dataclass(frozen=True)
class SigningRequest:
    """One CSR to sign, tied to the queue message that delivered it."""

    key: StorageKey
    bucket: str
    object_version: Optional[str]
    queue_message_id: str

    @property
    def location(self) -> str:
        return f"{self.bucket}/{self.key.render()}"


def parse_notification(body: str) -> StorageNotification:
    """
    Deserialize a queue message body.

    Raises:
        ValueError: If the body is not a notification envelope
    """
    try:
        return StorageNotification.model_validate_json(body)
    except ValidationError as e:
        raise ValueError(f"Not a storage notification: {e.error_count()} error(s)") from e


def requests_from_message(message: Mapping[str, Any]) -> list[SigningRequest]:
    """Turn one queue message into zero or more signing requests."""
    message_id = message.get("messageId", "")
    body = message.get("body") or ""

    try:
        notification = parse_notification(body)
    except ValueError as e:
        logger.warning(f"Skipping unexpected message {message_id} due to {e}: {body!r}")
        return []

    logger.info(f"Found {len(notification.records)} storage event(s) in message {message_id}")

    requests = []
    for record in notification.records:
        if not record.is_object_created:
            logger.info(
                f"Skipping unexpected event {record.event_source}/{record.event_name} "
                f"in message {message_id}"
            )
            continue

        if record.s3 is None:
            logger.warning(f"Skipping event without object entity in message {message_id}")
            continue

        raw_key = record.s3.object.key
        try:
            key = storage_key.decode(raw_key)
        except MalformedKey as e:
            logger.warning(f"Invalid input object key {raw_key} ({e}), skipping")
            continue

        requests.append(
            SigningRequest(
                key=key,
                bucket=record.s3.bucket.name,
                object_version=record.s3.object.version_id,
                queue_message_id=message_id,
            )
        )

    return requests


def group_by_ca(requests: Iterable[SigningRequest]) -> dict[str, list[SigningRequest]]:
    """Group requests by CA ARN, ordered by first appearance."""
    groups: dict[str, list[SigningRequest]] = {}
    for request in requests:
        groups.setdefault(request.key.ca_arn, []).append(request)
    return groups


def intake(messages: Iterable[Mapping[str, Any]]) -> dict[str, list[SigningRequest]]:
    """
    Decode a batch of queue messages and group the resulting requests.

    Args:
        messages: Queue records, each with ``messageId`` and ``body``

    Returns:
        Mapping of CA ARN to the requests it must sign, in first-seen order
    """
    requests = []
    for message in messages:
        requests.extend(requests_from_message(message))
    return group_by_ca(requests)
