# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Configuration management for the DAC issuer."""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Fallback when dacValidityInDays is not set
DEFAULT_VALIDITY_DAYS = 1865

BLANK_END_ENTITY_TEMPLATE_ARN = (
    "arn:aws:acm-pca:::template/"
    "BlankEndEntityCertificate_CriticalBasicConstraints_APIPassthrough/V1"
)


class Settings(BaseSettings):
    """Issuer settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Certificate profile
    dac_validity_in_days: int = Field(
        DEFAULT_VALIDITY_DAYS,
        ge=1,
        validation_alias=AliasChoices("dacValidityInDays", "dac_validity_in_days"),
    )
    template_arn: str = BLANK_END_ENTITY_TEMPLATE_ARN
    signing_algorithm: str = "SHA256WITHECDSA"
    idempotency_token: str = "1234"

    # Issuance polling
    poll_interval_seconds: float = Field(1.0, ge=0)
    issuance_timeout_seconds: float = Field(120.0, gt=0)
    deadline_margin_seconds: float = Field(5.0, ge=0)

    # Batch processing
    max_workers: int = Field(1, ge=1)
    verify_issued_certificates: bool = True

    # AWS
    aws_region: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    @property
    def validity_months(self) -> int:
        """Validity expressed in whole months, as the CA service expects."""
        return max(1, self.dac_validity_in_days * 12 // 365)


# Global settings instance
settings = Settings()
