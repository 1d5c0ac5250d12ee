# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Resolve the identity of the intermediate CA (PAI) that signs a group.

The PAI subject carries the vendor id and, for product-specific PAIs, the
product id. Both are needed before any request of the group can be built.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError
from cryptography import x509

from .errors import ErrorKind, Result
from .oids import AttestationOIDs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaIdentity:
    """Subject attributes of a CA certificate, keyed by dotted OID."""

    ca_arn: str
    attributes: Mapping[str, str]
    certificate: Optional[x509.Certificate] = field(default=None, compare=False)

    @property
    def vendor_id(self) -> Optional[str]:
        return self.attributes.get(AttestationOIDs.VENDOR_ID.dotted_string)

    @property
    def product_id(self) -> Optional[str]:
        """Product restriction of the CA, or None if it signs any product."""
        return self.attributes.get(AttestationOIDs.PRODUCT_ID.dotted_string)


def subject_attributes(name: x509.Name) -> dict[str, str]:
    """
    Flatten an X.509 name into ``{dotted_oid: value}``.

    Only the first attribute of each RDN is taken, as multi-valued RDNs do
    not occur in attestation subjects.
    """
    attributes = {}
    for rdn in name.rdns:
        attribute = next(iter(rdn))
        value = attribute.value
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        attributes[attribute.oid.dotted_string] = value
    return attributes


def identity_from_pem(ca_arn: str, certificate_pem: str) -> CaIdentity:
    """
    Build a CaIdentity from a PEM-encoded CA certificate.

    Raises:
        ValueError: If the certificate cannot be parsed
    """
    certificate = x509.load_pem_x509_certificate(certificate_pem.encode("utf-8"))
    return CaIdentity(
        ca_arn=ca_arn,
        attributes=MappingProxyType(subject_attributes(certificate.subject)),
        certificate=certificate,
    )


class CaResolver:
    """Fetches CA certificates from the private CA service."""

    def __init__(self, ca_client: Any):
        """
        Args:
            ca_client: boto3 ``acm-pca`` client (or a compatible fake)
        """
        self.ca_client = ca_client

    def resolve(self, ca_arn: str) -> Result[CaIdentity]:
        """
        Fetch and parse the certificate of ``ca_arn``.

        Returns:
            Result holding the CaIdentity, or a CA_UNAVAILABLE failure
        """
        try:
            response = self.ca_client.get_certificate_authority_certificate(
                CertificateAuthorityArn=ca_arn,
            )
            identity = identity_from_pem(ca_arn, response["Certificate"])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            return Result.error(ErrorKind.CA_UNAVAILABLE, f"Couldn't parse certificate of PAI {ca_arn}", e)
        except (ClientError, BotoCoreError) as e:
            return Result.error(ErrorKind.CA_UNAVAILABLE, f"Couldn't obtain information about PAI {ca_arn}", e)

        logger.info(
            f"Resolved PAI {ca_arn}: vid={identity.vendor_id} "
            f"pid={identity.product_id or '(any)'}"
        )
        return Result.success(identity)
