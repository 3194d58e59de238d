"""ストレージアカウントのルール。"""

import re
from typing import Any

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult, ValidationResultBuilder
from armcheck.validators.common import (
    collect_results,
    get_in,
    validate_enum,
    validate_length,
    validate_lowercase,
    validate_pattern,
    warn_globally_unique,
)
from armcheck.validators.rule import BaseValidationRule, RuleOutput

STORAGE_ACCOUNTS = "Microsoft.Storage/storageAccounts"

_NAME_PATTERN = re.compile(r"^[a-z0-9]+$")

STORAGE_SKUS = (
    "Standard_LRS",
    "Standard_GRS",
    "Standard_RAGRS",
    "Standard_ZRS",
    "Standard_GZRS",
    "Standard_RAGZRS",
    "Premium_LRS",
    "Premium_ZRS",
)

# kind → そのkindで使えるSKU
STORAGE_KIND_SKUS: dict[str, tuple[str, ...]] = {
    "StorageV2": STORAGE_SKUS,
    "Storage": ("Standard_LRS", "Standard_GRS", "Standard_RAGRS", "Standard_ZRS", "Premium_LRS"),
    "BlobStorage": ("Standard_LRS", "Standard_GRS", "Standard_RAGRS"),
    "BlockBlobStorage": ("Premium_LRS", "Premium_ZRS"),
    "FileStorage": ("Premium_LRS", "Premium_ZRS"),
}

TLS_VERSIONS = ("TLS1_0", "TLS1_1", "TLS1_2", "TLS1_3")
_OUTDATED_TLS_VERSIONS = ("TLS1_0", "TLS1_1")


class StorageAccountNameValidator(BaseValidationRule):
    name = "storage-account-name-format"
    description = "Validates Storage Account name follows Azure naming rules"
    severity = Severity.ERROR
    resource_types = (STORAGE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        name = resource.get("name") or resource.get("accountName")

        if not name:
            return ValidationResultBuilder.error(self.name).with_message("Storage account name is required").build()

        return collect_results(
            validate_lowercase(name, "Storage account name", self.name),
            validate_length(name, 3, 24, "Storage account name", self.name),
            validate_pattern(
                name,
                _NAME_PATTERN,
                "Storage account name",
                self.name,
                "Storage account names can only contain lowercase letters and numbers",
            ),
            warn_globally_unique(self.name, "Storage account"),
        )


class StorageAccountSkuValidator(BaseValidationRule):
    name = "storage-account-sku"
    description = "Validates Storage Account SKU and kind are compatible"
    severity = Severity.ERROR
    resource_types = (STORAGE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        sku_name = get_in(resource, "sku", "name")
        kind = resource.get("kind")

        if not sku_name:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Storage account SKU is required")
                .with_suggestion('Set sku.name (e.g., "Standard_LRS", "Standard_ZRS")')
                .with_path("sku.name")
                .build()
            )

        results: list[ValidationResult] = []

        sku_result = validate_enum(sku_name, STORAGE_SKUS, "storage SKU", self.name)
        if sku_result is not None:
            results.append(sku_result)

        if kind is not None:
            kind_result = validate_enum(kind, tuple(STORAGE_KIND_SKUS), "storage account kind", self.name)
            if kind_result is not None:
                results.append(kind_result)
            elif sku_result is None and sku_name not in STORAGE_KIND_SKUS[kind]:
                results.append(
                    ValidationResultBuilder.error(self.name)
                    .with_message(f'SKU "{sku_name}" is not supported for kind "{kind}"')
                    .with_suggestion(f"Supported SKUs for {kind}: {', '.join(STORAGE_KIND_SKUS[kind])}")
                    .build()
                )

        if context is not None and context.environment == "production" and sku_name.endswith("_LRS"):
            results.append(
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message(f"Locally redundant SKU ({sku_name}) in production environment")
                .with_suggestion("Use a zone or geo redundant SKU (ZRS, GRS, GZRS) for production")
                .with_details("LRS keeps all copies in a single datacenter")
                .build()
            )

        return results or ValidationResultBuilder.success(self.name).build()


class StorageAccountSecureTransferValidator(BaseValidationRule):
    name = "storage-account-secure-transfer"
    description = "Validates Storage Account enforces HTTPS and a current TLS version"
    severity = Severity.ERROR
    resource_types = (STORAGE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        props = resource.get("properties") or {}
        results: list[ValidationResult] = []

        if props.get("supportsHttpsTrafficOnly") is False:
            results.append(
                ValidationResultBuilder.error(self.name)
                .with_message("Storage account allows unencrypted HTTP traffic")
                .with_suggestion("Set supportsHttpsTrafficOnly: true")
                .with_path("properties.supportsHttpsTrafficOnly")
                .build()
            )

        tls_version = props.get("minimumTlsVersion")
        if tls_version is not None:
            tls_result = validate_enum(tls_version, TLS_VERSIONS, "minimumTlsVersion", self.name)
            if tls_result is not None:
                results.append(tls_result)
            elif tls_version in _OUTDATED_TLS_VERSIONS:
                results.append(
                    ValidationResultBuilder.warning(self.name)
                    .invalid()
                    .with_message(f"Minimum TLS version {tls_version} is outdated")
                    .with_suggestion('Set minimumTlsVersion: "TLS1_2"')
                    .with_path("properties.minimumTlsVersion")
                    .build()
                )

        return results or ValidationResultBuilder.success(self.name).build()


class StorageAccountPublicAccessValidator(BaseValidationRule):
    name = "storage-account-blob-public-access"
    description = "Warns when anonymous blob access is allowed"
    severity = Severity.WARNING
    resource_types = (STORAGE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        if get_in(resource, "properties", "allowBlobPublicAccess") is True:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Anonymous public read access to blobs is allowed")
                .with_suggestion("Set allowBlobPublicAccess: false")
                .with_details("Containers can then be configured for anonymous access")
                .with_path("properties.allowBlobPublicAccess")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class StorageAccountNetworkAccessValidator(BaseValidationRule):
    name = "storage-account-network-access"
    description = "Validates Storage Account network restrictions keep the account reachable"
    severity = Severity.ERROR
    resource_types = (STORAGE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        props = resource.get("properties") or {}
        has_private_endpoints = bool(context and context.has_private_endpoints)
        results: list[ValidationResult] = []

        if props.get("publicNetworkAccess") == "Disabled" and not has_private_endpoints:
            results.append(
                ValidationResultBuilder.error(self.name)
                .with_message("Public network access disabled without private endpoints")
                .with_suggestion("Create private endpoints before disabling public access")
                .with_details("Without either, the storage account will be inaccessible")
                .with_path("properties.publicNetworkAccess")
                .build()
            )

        network_acls = props.get("networkAcls")
        if network_acls and network_acls.get("defaultAction") == "Deny":
            bypass = network_acls.get("bypass") or ""
            if "AzureServices" not in bypass:
                results.append(
                    ValidationResultBuilder.warning(self.name)
                    .invalid()
                    .with_message("Network ACLs deny all access without Azure Services bypass")
                    .with_suggestion('Consider adding bypass: "AzureServices" to allow trusted Azure services')
                    .with_path("properties.networkAcls.bypass")
                    .build()
                )

        return results or ValidationResultBuilder.success(self.name).build()


storage_validators: list[BaseValidationRule] = [
    StorageAccountNameValidator(),
    StorageAccountSkuValidator(),
    StorageAccountSecureTransferValidator(),
    StorageAccountPublicAccessValidator(),
    StorageAccountNetworkAccessValidator(),
]
