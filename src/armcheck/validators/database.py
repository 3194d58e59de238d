"""Cosmos DBアカウントのルール。"""

import re
from typing import Any

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResultBuilder
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

DATABASE_ACCOUNTS = "Microsoft.DocumentDB/databaseAccounts"

_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")

CONSISTENCY_LEVELS = ("Strong", "BoundedStaleness", "Session", "ConsistentPrefix", "Eventual")
API_CAPABILITIES = ("EnableCassandra", "EnableGremlin", "EnableMongo", "EnableTable")


def _locations(resource: dict[str, Any]) -> list[dict[str, Any]]:
    return get_in(resource, "properties", "locations") or []


class CosmosDbAccountNameValidator(BaseValidationRule):
    name = "cosmosdb-account-name-format"
    description = "Validates Cosmos DB account name follows Azure naming rules"
    severity = Severity.ERROR
    resource_types = (DATABASE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        name = resource.get("name") or resource.get("accountName")

        if not name:
            return ValidationResultBuilder.error(self.name).with_message("Cosmos DB account name is required").build()

        return collect_results(
            validate_lowercase(name, "Cosmos DB account name", self.name),
            validate_length(name, 3, 44, "Cosmos DB account name", self.name),
            validate_pattern(
                name,
                _NAME_PATTERN,
                "Cosmos DB account name",
                self.name,
                "Cosmos DB account names must contain only lowercase letters, numbers, and hyphens, "
                "and cannot start or end with a hyphen",
            ),
            warn_globally_unique(self.name, "Cosmos DB account"),
        )


class CosmosDbConsistencyValidator(BaseValidationRule):
    name = "cosmosdb-consistency-level"
    description = "Validates Cosmos DB consistency level is valid"
    severity = Severity.ERROR
    resource_types = (DATABASE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        consistency = get_in(resource, "properties", "consistencyPolicy")

        if not consistency:
            return (
                ValidationResultBuilder.warning(self.name)
                .as_advisory()
                .with_message("No consistency policy specified")
                .with_suggestion("Consider setting consistencyPolicy with defaultConsistencyLevel")
                .with_details('Default is "Session" if not specified')
                .build()
            )

        level = consistency.get("defaultConsistencyLevel")
        if not level:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("defaultConsistencyLevel is required in consistencyPolicy")
                .with_suggestion(f"Valid values: {', '.join(CONSISTENCY_LEVELS)}")
                .with_path("properties.consistencyPolicy.defaultConsistencyLevel")
                .build()
            )

        enum_result = validate_enum(level, CONSISTENCY_LEVELS, "defaultConsistencyLevel", self.name)
        if enum_result is not None:
            return enum_result

        if (
            level == "BoundedStaleness"
            and consistency.get("maxStalenessPrefix") is None
            and consistency.get("maxIntervalInSeconds") is None
        ):
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("BoundedStaleness requires maxStalenessPrefix or maxIntervalInSeconds")
                .with_suggestion("Set maxStalenessPrefix (10-2147483647) or maxIntervalInSeconds (5-86400)")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class CosmosDbMultiRegionValidator(BaseValidationRule):
    name = "cosmosdb-multi-region"
    description = "Validates Cosmos DB multi-region consistency requirements"
    severity = Severity.WARNING
    resource_types = (DATABASE_ACCOUNTS,)

    def condition(self, resource: dict[str, Any], context: ValidationContext | None = None) -> bool:
        return len(_locations(resource)) > 1

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        locations = _locations(resource)

        if get_in(resource, "properties", "consistencyPolicy", "defaultConsistencyLevel") == "Strong":
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Strong consistency with multiple regions increases latency")
                .with_suggestion("Consider using BoundedStaleness for multi-region deployments")
                .with_details("Strong consistency requires synchronous replication across all regions")
                .build()
            )

        write_regions = [loc for loc in locations if loc.get("failoverPriority") == 0]
        if len(write_regions) > 1:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Only one region can have failoverPriority: 0 (primary write region)")
                .with_suggestion("Ensure failoverPriority values are unique starting from 0")
                .with_path("properties.locations")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class CosmosDbBackupPolicyValidator(BaseValidationRule):
    name = "cosmosdb-backup-policy"
    description = "Validates Cosmos DB backup policy configuration"
    severity = Severity.WARNING
    resource_types = (DATABASE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        backup_policy = get_in(resource, "properties", "backupPolicy")

        if not backup_policy:
            return (
                ValidationResultBuilder.warning(self.name)
                .as_advisory()
                .with_message("No backup policy specified")
                .with_suggestion("Consider configuring continuous or periodic backup")
                .with_details("Default is periodic backup with 4-hour intervals")
                .build()
            )

        if backup_policy.get("type") == "Periodic":
            interval = get_in(backup_policy, "periodicModeProperties", "backupIntervalInMinutes")
            retention = get_in(backup_policy, "periodicModeProperties", "backupRetentionIntervalInHours")

            if not interval or interval < 60:
                return (
                    ValidationResultBuilder.warning(self.name)
                    .invalid()
                    .with_message("Backup interval should be at least 60 minutes")
                    .with_suggestion("Set backupIntervalInMinutes to 60 or higher")
                    .build()
                )

            if not retention or retention < 8:
                return (
                    ValidationResultBuilder.warning(self.name)
                    .invalid()
                    .with_message("Backup retention should be at least 8 hours")
                    .with_suggestion("Set backupRetentionIntervalInHours to 8 or higher")
                    .build()
                )

        return ValidationResultBuilder.success(self.name).build()


class CosmosDbAutomaticFailoverValidator(BaseValidationRule):
    name = "cosmosdb-automatic-failover"
    description = "Validates Cosmos DB automatic failover settings"
    severity = Severity.WARNING
    resource_types = (DATABASE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        automatic_failover = get_in(resource, "properties", "enableAutomaticFailover")

        if len(_locations(resource)) <= 1:
            if automatic_failover:
                return (
                    ValidationResultBuilder.warning(self.name)
                    .invalid()
                    .with_message("Automatic failover requires multiple regions")
                    .with_suggestion("Add additional regions to locations array")
                    .build()
                )
            return ValidationResultBuilder.success(self.name).build()

        if not automatic_failover:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Multi-region deployment without automatic failover")
                .with_suggestion("Consider enabling automatic failover for high availability")
                .with_details("Set enableAutomaticFailover: true")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class CosmosDbCapabilitiesValidator(BaseValidationRule):
    name = "cosmosdb-capabilities"
    description = "Validates Cosmos DB capabilities are compatible"
    severity = Severity.ERROR
    resource_types = (DATABASE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        capability_names = {c.get("name") for c in get_in(resource, "properties", "capabilities", default=[])}

        if not capability_names:
            return ValidationResultBuilder.success(self.name).build()

        enabled_apis = [api for api in API_CAPABILITIES if api in capability_names]
        if len(enabled_apis) > 1:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Cannot enable multiple API capabilities")
                .with_suggestion("Use only one API capability (Cassandra, Gremlin, Mongo, or Table)")
                .with_details(f"Currently enabled: {', '.join(enabled_apis)}")
                .build()
            )

        if "EnableServerless" in capability_names:
            if "EnableAnalyticalStorage" in capability_names:
                return (
                    ValidationResultBuilder.error(self.name)
                    .with_message("Serverless mode is incompatible with analytical storage")
                    .with_suggestion("Remove EnableAnalyticalStorage capability")
                    .build()
                )

            if len(_locations(resource)) > 1:
                return (
                    ValidationResultBuilder.error(self.name)
                    .with_message("Serverless mode does not support multi-region writes")
                    .with_suggestion("Use single region for serverless accounts")
                    .build()
                )

        return ValidationResultBuilder.success(self.name).build()


class CosmosDbNetworkAclsValidator(BaseValidationRule):
    name = "cosmosdb-network-acls"
    description = "Validates Cosmos DB network ACLs and firewall rules"
    severity = Severity.WARNING
    resource_types = (DATABASE_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        props = resource.get("properties") or {}
        ip_rules = props.get("ipRules") or []

        has_private_endpoints = bool(context and context.has_private_endpoints)

        if (
            props.get("publicNetworkAccess") == "Disabled"
            and not props.get("virtualNetworkRules")
            and not has_private_endpoints
        ):
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Public network access disabled without virtual network rules")
                .with_suggestion("Add virtual network rules or use private endpoints for access")
                .with_details("Account will be inaccessible without private connectivity")
                .build()
            )

        if any(rule.get("ipAddressOrRange") in ("0.0.0.0/0", "*") for rule in ip_rules):
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("IP rules allow access from all addresses (0.0.0.0/0)")
                .with_suggestion("Restrict IP rules to specific address ranges")
                .with_details("Consider using virtual network rules or private endpoints instead")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


database_validators: list[BaseValidationRule] = [
    CosmosDbAccountNameValidator(),
    CosmosDbConsistencyValidator(),
    CosmosDbMultiRegionValidator(),
    CosmosDbBackupPolicyValidator(),
    CosmosDbAutomaticFailoverValidator(),
    CosmosDbCapabilitiesValidator(),
    CosmosDbNetworkAclsValidator(),
]
