# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Object Identifier (OID) definitions for device attestation certificates.

OID Namespace: 1.3.6.1.4.1.37244 (Connectivity Standards Alliance PEN)
└── 2.* - Device attestation subject attributes
    ├── 2.1 - Vendor ID
    └── 2.2 - Product ID
"""

import base64

from cryptography import x509
from cryptography.x509.oid import ExtensionOID


class AttestationOIDs:
    """Subject attribute OIDs carried by PAI and DAC certificates."""

    # 1.3.6.1.4.1.37244.2.1 - Vendor ID (must coincide with the one on the PAI)
    VENDOR_ID = x509.ObjectIdentifier("1.3.6.1.4.1.37244.2.1")

    # 1.3.6.1.4.1.37244.2.2 - Product ID (present on product-specific PAIs)
    PRODUCT_ID = x509.ObjectIdentifier("1.3.6.1.4.1.37244.2.2")

    @classmethod
    def all_oids(cls) -> list[x509.ObjectIdentifier]:
        """Return all attestation subject OIDs."""
        return [cls.VENDOR_ID, cls.PRODUCT_ID]


# 2.5.29.15 - X.509 KeyUsage extension
KEY_USAGE_OID = ExtensionOID.KEY_USAGE


def dac_key_usage() -> x509.KeyUsage:
    """KeyUsage for a device attestation certificate: digital signature only."""
    return x509.KeyUsage(
        digital_signature=True,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=False,
        crl_sign=False,
        encipher_only=False,
        decipher_only=False,
    )


def encoded_key_usage() -> str:
    """Base64 of the DER-encoded digital-signature-only KeyUsage value."""
    return base64.b64encode(dac_key_usage().public_bytes()).decode("ascii")
