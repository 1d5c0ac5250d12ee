# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Storage key codec.

Keys look like ``<ca-arn-part1>/<ca-arn-part2>/<productId>/<baseName>.<ext>``.
The first two segments together form the ARN of the intermediate CA (PAI)
that must sign the request.
"""

from dataclasses import dataclass, replace
from urllib.parse import unquote_plus

from .errors import MalformedKey

CSR_EXTENSION = "csr"
SUCCESS_EXTENSION = "pem"
ERROR_EXTENSION = "err"


@dataclass(frozen=True)
class StorageKey:
    """Parsed storage key. Derived keys are new instances, never mutations."""

    ca_arn: str
    product_id: str
    base_name: str
    extension: str

    def render(self) -> str:
        """Reconstruct the canonical key string."""
        return f"{self.ca_arn}/{self.product_id}/{self.base_name}.{self.extension}"

    def with_extension(self, extension: str) -> "StorageKey":
        """Return a copy of this key with a different extension."""
        return replace(self, extension=extension)

    def __str__(self) -> str:
        return self.render()


def parse(raw_key: str) -> StorageKey:
    """
    Parse a raw (already decoded) key.

    Args:
        raw_key: Key such as ``arn:pca/PAIArn/1001/request 1.csr``

    Returns:
        Parsed StorageKey

    Raises:
        MalformedKey: If the key is not 4 segments or the file has no extension
    """
    parts = raw_key.split("/")
    if len(parts) != 4 or "." not in parts[3]:
        raise MalformedKey(
            f"Unexpected key {raw_key}, should be <pca_arn>/<PAI_ARN>/<pid>/<name>.csr"
        )

    base_name, _, extension = parts[3].rpartition(".")
    return StorageKey(
        ca_arn=f"{parts[0]}/{parts[1]}",
        product_id=parts[2],
        base_name=base_name,
        extension=extension,
    )


def decode(raw_key: str) -> StorageKey:
    """Undo the transport's URL encoding (``%XX`` and ``+`` for space), then parse."""
    return parse(unquote_plus(raw_key))


def render(key: StorageKey) -> str:
    return key.render()


def with_extension(key: StorageKey, extension: str) -> StorageKey:
    return key.with_extension(extension)
