"""Key Vaultのルール。"""

import re
from typing import Any

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult, ValidationResultBuilder
from armcheck.validators.common import (
    collect_results,
    get_in,
    validate_ends_with,
    validate_length,
    validate_no_consecutive,
    validate_pattern,
    validate_range,
    validate_starts_with,
    warn_globally_unique,
)
from armcheck.validators.rule import BaseValidationRule, RuleOutput

KEY_VAULTS = "Microsoft.KeyVault/vaults"

_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]*[a-zA-Z0-9]$")

RETENTION_MIN_DAYS = 7
RETENTION_MAX_DAYS = 90


class KeyVaultNameValidator(BaseValidationRule):
    name = "keyvault-name-format"
    description = "Validates Key Vault name follows Azure naming rules"
    severity = Severity.ERROR
    resource_types = (KEY_VAULTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        name = resource.get("name") or resource.get("vaultName")

        if not name:
            return ValidationResultBuilder.error(self.name).with_message("Key Vault name is required").build()

        return collect_results(
            validate_length(name, 3, 24, "Key Vault name", self.name),
            validate_starts_with(name, "letter", "Key Vault name", self.name),
            validate_ends_with(name, "alphanumeric", "Key Vault name", self.name),
            validate_no_consecutive(name, "-", "Key Vault name", self.name),
            validate_pattern(
                name,
                _NAME_PATTERN,
                "Key Vault name",
                self.name,
                "Key Vault names must contain only alphanumeric characters and hyphens",
            ),
            warn_globally_unique(self.name, "Key Vault"),
        )


class KeyVaultSoftDeleteValidator(BaseValidationRule):
    name = "keyvault-soft-delete"
    description = "Validates Key Vault soft delete and purge protection settings"
    severity = Severity.ERROR
    resource_types = (KEY_VAULTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        props = resource.get("properties") or {}
        soft_delete = props.get("enableSoftDelete")
        results: list[ValidationResult] = []

        if props.get("enablePurgeProtection") and soft_delete is False:
            results.append(
                ValidationResultBuilder.error(self.name)
                .with_message("Purge protection requires soft delete to be enabled")
                .with_suggestion("Set enableSoftDelete: true")
                .with_path("properties.enableSoftDelete")
                .build()
            )

        if soft_delete is False:
            results.append(
                ValidationResultBuilder.error(self.name)
                .with_message("Soft delete cannot be disabled (Azure policy requirement)")
                .with_suggestion("Remove enableSoftDelete property or set to true")
                .with_details("Soft delete is required for compliance and data protection")
                .with_path("properties.enableSoftDelete")
                .build()
            )

        return results or ValidationResultBuilder.success(self.name).build()


class KeyVaultRetentionValidator(BaseValidationRule):
    name = "keyvault-retention-period"
    description = "Validates Key Vault soft delete retention period is within valid range"
    severity = Severity.ERROR
    resource_types = (KEY_VAULTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        retention_days = get_in(resource, "properties", "softDeleteRetentionInDays")

        if not retention_days:
            return (
                ValidationResultBuilder.warning(self.name)
                .as_advisory()
                .with_message("No soft delete retention period specified")
                .with_suggestion(
                    f"Consider setting softDeleteRetentionInDays to {RETENTION_MAX_DAYS} for maximum protection"
                )
                .build()
            )

        range_result = validate_range(
            retention_days, RETENTION_MIN_DAYS, RETENTION_MAX_DAYS, "Soft delete retention period", self.name
        )
        if range_result is not None:
            return range_result

        if retention_days < RETENTION_MAX_DAYS:
            return (
                ValidationResultBuilder.warning(self.name)
                .as_advisory()
                .with_message(f"Soft delete retention period is {retention_days} days")
                .with_suggestion(f"Consider using {RETENTION_MAX_DAYS}-day retention for maximum data protection")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class KeyVaultRbacAccessPolicyValidator(BaseValidationRule):
    name = "keyvault-rbac-access-policy"
    description = "Warns when both RBAC and access policies are configured"
    severity = Severity.WARNING
    resource_types = (KEY_VAULTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        props = resource.get("properties") or {}

        if props.get("enableRbacAuthorization") and props.get("accessPolicies"):
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Both RBAC and access policies are configured")
                .with_suggestion("Use RBAC exclusively for simpler management")
                .with_details("Access policies are ignored when RBAC authorization is enabled")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class KeyVaultNetworkAclsValidator(BaseValidationRule):
    name = "keyvault-network-acls"
    description = "Validates Key Vault network ACLs allow Azure services when needed"
    severity = Severity.WARNING
    resource_types = (KEY_VAULTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        network_acls = get_in(resource, "properties", "networkAcls")
        if not network_acls:
            return ValidationResultBuilder.success(self.name).build()

        bypass = network_acls.get("bypass") or ""
        if network_acls.get("defaultAction") == "Deny" and "AzureServices" not in bypass:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Network ACLs deny all access without Azure Services bypass")
                .with_suggestion('Consider adding bypass: "AzureServices" to allow trusted Azure services')
                .with_details("This allows services like Azure Backup and Azure Site Recovery to access the vault")
                .with_path("properties.networkAcls.bypass")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class KeyVaultPublicAccessValidator(BaseValidationRule):
    name = "keyvault-public-access"
    description = "Validates Key Vault has private endpoints before disabling public access"
    severity = Severity.ERROR
    resource_types = (KEY_VAULTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        public_access = get_in(resource, "properties", "publicNetworkAccess")
        has_private_endpoints = bool(context and context.has_private_endpoints)

        if str(public_access).lower() == "disabled" and not has_private_endpoints:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Public network access disabled without private endpoints")
                .with_suggestion("Create private endpoints before disabling public access")
                .with_details("Without either, the vault will be inaccessible")
                .with_path("properties.publicNetworkAccess")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


keyvault_validators: list[BaseValidationRule] = [
    KeyVaultNameValidator(),
    KeyVaultSoftDeleteValidator(),
    KeyVaultRetentionValidator(),
    KeyVaultRbacAccessPolicyValidator(),
    KeyVaultNetworkAclsValidator(),
    KeyVaultPublicAccessValidator(),
]
