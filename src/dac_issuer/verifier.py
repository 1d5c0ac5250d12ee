# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Post-issuance checks of device attestation certificates.

A DAC is only stored once it provably chains to the PAI that was asked to
sign it and carries the identity the request asked for.
"""

from dataclasses import dataclass
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization

from .ca_resolver import CaIdentity
from .errors import ErrorKind, Result
from .oids import KEY_USAGE_OID, AttestationOIDs


@dataclass
class VerificationResult:
    """Result of DAC verification."""

    valid: bool
    error_message: Optional[str] = None
    certificate: Optional[x509.Certificate] = None


def _public_key_bytes(public_key) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _subject_value(cert: x509.Certificate, oid: x509.ObjectIdentifier) -> Optional[str]:
    try:
        return cert.subject.get_attributes_for_oid(oid)[0].value
    except IndexError:
        return None


class DacVerifier:
    """Verify an issued DAC against its PAI and the originating CSR."""

    def __init__(self, ca: CaIdentity):
        """
        Args:
            ca: Resolved identity of the signing PAI (must carry its certificate)
        """
        self.ca = ca

    def verify(
        self,
        certificate_pem: str,
        product_id: str,
        csr_public_key=None,
    ) -> VerificationResult:
        """
        Check an issued certificate.

        Args:
            certificate_pem: PEM returned by the CA
            product_id: Product id the request asked for
            csr_public_key: Public key of the CSR, if it should be compared

        Returns:
            VerificationResult naming the first failed check
        """
        try:
            cert = x509.load_pem_x509_certificate(certificate_pem.encode("utf-8"))
        except ValueError as e:
            return VerificationResult(valid=False, error_message=f"Issued certificate is not valid PEM: {e}")

        if self.ca.certificate is None:
            return VerificationResult(valid=False, error_message=f"No certificate available for PAI {self.ca.ca_arn}")

        try:
            cert.verify_directly_issued_by(self.ca.certificate)
        except (ValueError, TypeError, InvalidSignature) as e:
            return VerificationResult(
                valid=False,
                error_message=f"Issued certificate is not signed by PAI {self.ca.ca_arn}: {str(e) or type(e).__name__}",
            )

        if csr_public_key is not None and _public_key_bytes(cert.public_key()) != _public_key_bytes(csr_public_key):
            return VerificationResult(valid=False, error_message="Issued certificate public key differs from CSR")

        vendor_id = _subject_value(cert, AttestationOIDs.VENDOR_ID)
        if vendor_id != self.ca.vendor_id:
            return VerificationResult(
                valid=False,
                error_message=f"Issued certificate VID {vendor_id} differs from PAI VID {self.ca.vendor_id}",
            )

        issued_product_id = _subject_value(cert, AttestationOIDs.PRODUCT_ID)
        if issued_product_id != product_id:
            return VerificationResult(
                valid=False,
                error_message=f"Issued certificate PID {issued_product_id} differs from requested PID {product_id}",
            )

        try:
            key_usage = cert.extensions.get_extension_for_oid(KEY_USAGE_OID)
        except x509.ExtensionNotFound:
            return VerificationResult(valid=False, error_message="Issued certificate has no KeyUsage extension")

        if not key_usage.critical or not key_usage.value.digital_signature:
            return VerificationResult(
                valid=False,
                error_message="Issued certificate KeyUsage must be critical with digitalSignature",
            )

        return VerificationResult(valid=True, certificate=cert)

    def check(self, certificate_pem: str, product_id: str, csr_public_key=None) -> Result[str]:
        """Same as verify(), as a pipeline stage result."""
        result = self.verify(certificate_pem, product_id, csr_public_key)
        if not result.valid:
            return Result.error(ErrorKind.VERIFICATION_FAILED, result.error_message)
        return Result.success(certificate_pem)
