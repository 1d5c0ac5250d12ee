# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Certificate request construction.

Turns a SigningRequest plus the resolved PAI identity into the payload the
private CA needs: the CSR, the subject attributes to place in the DAC and a
critical digital-signature-only KeyUsage extension.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError
from cryptography import x509

from .ca_resolver import CaIdentity
from .config import Settings
from .errors import ErrorKind, Result
from .intake import SigningRequest
from .oids import KEY_USAGE_OID, AttestationOIDs, encoded_key_usage
from .storage_key import CSR_EXTENSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomAttribute:
    """One subject attribute passed through to the CA."""

    object_identifier: str
    value: str

    def to_api(self) -> dict:
        return {"ObjectIdentifier": self.object_identifier, "Value": self.value}


@dataclass(frozen=True)
class CustomExtension:
    """One extension passed through to the CA, value base64-encoded DER."""

    object_identifier: str
    value: str
    critical: bool = False

    def to_api(self) -> dict:
        return {
            "ObjectIdentifier": self.object_identifier,
            "Value": self.value,
            "Critical": self.critical,
        }


@dataclass(frozen=True)
class CertificateRequestPayload:
    """Everything needed for one IssueCertificate call."""

    ca_arn: str
    csr: bytes
    template_arn: str
    signing_algorithm: str
    validity_months: int
    idempotency_token: str
    attributes: tuple[CustomAttribute, ...]
    extensions: tuple[CustomExtension, ...]
    csr_public_key: Optional[Any] = field(default=None, compare=False, repr=False)

    def to_issue_kwargs(self) -> dict:
        """Keyword arguments for ``acm-pca`` ``issue_certificate``."""
        return {
            "CertificateAuthorityArn": self.ca_arn,
            "Csr": self.csr,
            "TemplateArn": self.template_arn,
            "SigningAlgorithm": self.signing_algorithm,
            "Validity": {"Type": "MONTHS", "Value": self.validity_months},
            "IdempotencyToken": self.idempotency_token,
            "ApiPassthrough": {
                "Subject": {
                    "CustomAttributes": [a.to_api() for a in self.attributes],
                },
                "Extensions": {
                    "CustomExtensions": [e.to_api() for e in self.extensions],
                },
            },
        }


def _attribute_value(attribute: x509.NameAttribute) -> str:
    value = attribute.value
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def certificate_attributes(
    csr: x509.CertificateSigningRequest,
    ca: CaIdentity,
    product_id: str,
) -> tuple[CustomAttribute, ...]:
    """
    CSR subject verbatim, then the PAI's vendor id, then the request's product id.

    Every RDN component of the CSR subject is kept in order, including
    repeated attribute types.
    """
    attributes = [
        CustomAttribute(object_identifier=attribute.oid.dotted_string, value=_attribute_value(attribute))
        for rdn in csr.subject.rdns
        for attribute in rdn
    ]
    attributes.append(
        CustomAttribute(
            object_identifier=AttestationOIDs.VENDOR_ID.dotted_string,
            value=ca.vendor_id,
        )
    )
    attributes.append(
        CustomAttribute(
            object_identifier=AttestationOIDs.PRODUCT_ID.dotted_string,
            value=product_id,
        )
    )
    return tuple(attributes)


def key_usage_extension() -> CustomExtension:
    return CustomExtension(
        object_identifier=KEY_USAGE_OID.dotted_string,
        value=encoded_key_usage(),
        critical=True,
    )


class RequestBuilder:
    """Validates a request and assembles its CertificateRequestPayload."""

    def __init__(self, storage_client: Any, settings: Settings):
        """
        Args:
            storage_client: boto3 ``s3`` client (or a compatible fake)
            settings: Certificate profile settings
        """
        self.storage_client = storage_client
        self.settings = settings

    def fetch_csr(self, request: SigningRequest) -> bytes:
        """Read the CSR object, pinned to the notified version when there is one."""
        params = {"Bucket": request.bucket, "Key": request.key.render()}
        if request.object_version:
            params["VersionId"] = request.object_version
        response = self.storage_client.get_object(**params)
        return response["Body"].read()

    def build(self, request: SigningRequest, ca: CaIdentity) -> Result[CertificateRequestPayload]:
        """
        Build the signing payload for one request.

        Every failure here is VALIDATION: redelivering the same input cannot
        make it succeed.
        """
        if request.key.extension != CSR_EXTENSION:
            return Result.error(
                ErrorKind.VALIDATION,
                f"Unexpected key {request.key}, should have .{CSR_EXTENSION} extension",
            )

        try:
            csr_bytes = self.fetch_csr(request)
        except (ClientError, BotoCoreError, KeyError) as e:
            return Result.error(ErrorKind.VALIDATION, f"Couldn't access object {request.location}", e)

        try:
            csr = x509.load_pem_x509_csr(csr_bytes)
        except ValueError as e:
            return Result.error(ErrorKind.VALIDATION, f"Couldn't parse CSR {request.location}", e)

        if not csr.is_signature_valid:
            return Result.error(ErrorKind.VALIDATION, f"CSR {request.location} has an invalid signature")

        if ca.vendor_id is None:
            return Result.error(ErrorKind.VALIDATION, f"PAI {ca.ca_arn} carries no vendor id")

        if ca.product_id is not None and ca.product_id != request.key.product_id:
            return Result.error(
                ErrorKind.VALIDATION,
                f"Cannot sign as PAI is product specific and supplied PID {request.key.product_id} "
                f"is different from the one of the PAI - {ca.product_id}",
            )

        payload = CertificateRequestPayload(
            ca_arn=request.key.ca_arn,
            csr=csr_bytes,
            template_arn=self.settings.template_arn,
            signing_algorithm=self.settings.signing_algorithm,
            validity_months=self.settings.validity_months,
            idempotency_token=self.settings.idempotency_token,
            attributes=certificate_attributes(csr, ca, request.key.product_id),
            extensions=(key_usage_extension(),),
            csr_public_key=csr.public_key(),
        )
        logger.debug(f"Built signing request for {request.location} with {len(payload.attributes)} attribute(s)")
        return Result.success(payload)
