# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Result persistence.

Successful requests get ``<name>.pem`` next to their CSR; failed ones get a
best-effort ``<name>.err`` describing what went wrong.
"""

import logging
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .errors import Failure, Result, classify_storage_write_error, describe
from .intake import SigningRequest
from .storage_key import ERROR_EXTENSION, SUCCESS_EXTENSION

logger = logging.getLogger(__name__)


class ResultPersister:
    """Writes .pem and .err artifacts to the request's bucket."""

    def __init__(self, storage_client: Any):
        """
        Args:
            storage_client: boto3 ``s3`` client (or a compatible fake)
        """
        self.storage_client = storage_client

    def _put(self, bucket: str, key: str, data: str) -> Optional[str]:
        response = self.storage_client.put_object(
            Bucket=bucket,
            Key=key,
            Body=data.encode("utf-8"),
        )
        return response.get("VersionId")

    def persist_success(self, request: SigningRequest, pem: str) -> Result[Optional[str]]:
        """
        Store the issued certificate.

        Returns:
            Result holding the written object version, or a WRITE_* failure
        """
        key = request.key.with_extension(SUCCESS_EXTENSION).render()
        try:
            version = self._put(request.bucket, key, pem)
        except (ClientError, BotoCoreError) as e:
            return Result.error(classify_storage_write_error(e), f"Couldn't write object {request.bucket}/{key}", e)
        return Result.success(version)

    def persist_error(self, request: SigningRequest, failure: Failure) -> Optional[str]:
        """
        Best-effort write of the .err artifact.

        Never fails: a problem writing the diagnostic is logged and dropped so
        it cannot mask the original failure.
        """
        key = request.key.with_extension(ERROR_EXTENSION).render()
        try:
            return self._put(request.bucket, key, describe(failure))
        except Exception as e:
            logger.warning(f"Couldn't create .err file {request.bucket}/{key} due to {e}")
            return None
