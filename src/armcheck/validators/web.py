"""App Service Plan / Function Appのルール。"""

import re
from typing import Any

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult, ValidationResultBuilder
from armcheck.validators.common import collect_results, find_app_setting, get_in, validate_length, validate_pattern
from armcheck.validators.rule import BaseValidationRule, RuleOutput

SERVER_FARMS = "Microsoft.Web/serverfarms"
SITES = "Microsoft.Web/sites"

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9]$")

# SKU名 → tier
APP_SERVICE_PLAN_TIERS: dict[str, str] = {
    "F1": "Free",
    "D1": "Shared",
    "B1": "Basic",
    "B2": "Basic",
    "B3": "Basic",
    "S1": "Standard",
    "S2": "Standard",
    "S3": "Standard",
    "P1": "Premium",
    "P2": "Premium",
    "P3": "Premium",
    "P1v2": "PremiumV2",
    "P2v2": "PremiumV2",
    "P3v2": "PremiumV2",
    "P1v3": "PremiumV3",
    "P2v3": "PremiumV3",
    "P3v3": "PremiumV3",
    "EP1": "ElasticPremium",
    "EP2": "ElasticPremium",
    "EP3": "ElasticPremium",
    "Y1": "Dynamic",
}

ZONE_REDUNDANT_SKUS = ("P1v2", "P2v2", "P3v2", "P1v3", "P2v3", "P3v3")
ZONE_REDUNDANT_MIN_CAPACITY = 3

CONSUMPTION_SKU = "Y1"
OUTDATED_RUNTIME_VERSIONS = ("~1", "~2", "~3")


def _is_function_app(resource: dict[str, Any]) -> bool:
    return "functionapp" in str(resource.get("kind") or "")


class AppServicePlanNameValidator(BaseValidationRule):
    name = "appserviceplan-name-format"
    description = "Validates App Service Plan name follows Azure naming rules"
    severity = Severity.ERROR
    resource_types = (SERVER_FARMS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        name = resource.get("name") or resource.get("planName")

        if not name:
            return ValidationResultBuilder.error(self.name).with_message("App Service Plan name is required").build()

        results = collect_results(
            validate_length(name, 1, 40, "App Service Plan name", self.name),
            validate_pattern(
                name,
                _NAME_PATTERN,
                "App Service Plan name",
                self.name,
                "App Service Plan names must contain only alphanumeric characters and hyphens, "
                "and cannot start or end with a hyphen",
            ),
        )
        return results or ValidationResultBuilder.success(self.name).build()


class AppServicePlanSkuValidator(BaseValidationRule):
    name = "appserviceplan-sku"
    description = "Validates App Service Plan SKU is valid and appropriate"
    severity = Severity.ERROR
    resource_types = (SERVER_FARMS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        sku = resource.get("sku")

        if not sku:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("App Service Plan SKU is required")
                .with_suggestion("Set sku with name, tier, size, family, and capacity")
                .with_path("sku")
                .build()
            )

        sku_name = sku.get("name")
        tier = sku.get("tier")
        results: list[ValidationResult] = []

        if sku_name and sku_name not in APP_SERVICE_PLAN_TIERS:
            results.append(
                ValidationResultBuilder.error(self.name)
                .with_message(f"Invalid SKU name: {sku_name}")
                .with_suggestion(f"Valid SKU names: {', '.join(APP_SERVICE_PLAN_TIERS)}")
                .with_path("sku.name")
                .build()
            )

        expected_tier = APP_SERVICE_PLAN_TIERS.get(sku_name)
        if expected_tier and tier and tier != expected_tier:
            results.append(
                ValidationResultBuilder.error(self.name)
                .with_message(f'SKU tier "{tier}" does not match name "{sku_name}"')
                .with_suggestion(f'Use tier: "{expected_tier}"')
                .with_path("sku.tier")
                .build()
            )

        if sku_name == "F1" and context is not None and context.environment == "production":
            results.append(
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Free tier (F1) in production environment")
                .with_suggestion("Use Basic, Standard, or Premium tier for production")
                .with_details("Free tier has limited resources and no SLA")
                .build()
            )

        return results or ValidationResultBuilder.success(self.name).build()


class AppServicePlanZoneRedundancyValidator(BaseValidationRule):
    name = "appserviceplan-zone-redundancy"
    description = "Validates App Service Plan zone redundancy is properly configured"
    severity = Severity.WARNING
    resource_types = (SERVER_FARMS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        zone_redundant = get_in(resource, "properties", "zoneRedundant")
        sku_name = get_in(resource, "sku", "name")
        capacity = get_in(resource, "sku", "capacity")

        if zone_redundant and sku_name:
            if sku_name not in ZONE_REDUNDANT_SKUS:
                return (
                    ValidationResultBuilder.error(self.name)
                    .with_message(f"SKU {sku_name} does not support zone redundancy")
                    .with_suggestion("Use PremiumV2 or PremiumV3 SKU for zone redundancy")
                    .with_path("sku.name")
                    .build()
                )

            if capacity and capacity < ZONE_REDUNDANT_MIN_CAPACITY:
                return (
                    ValidationResultBuilder.error(self.name)
                    .with_message(f"Zone redundancy requires minimum capacity of {ZONE_REDUNDANT_MIN_CAPACITY}")
                    .with_suggestion(f"Set sku.capacity to {ZONE_REDUNDANT_MIN_CAPACITY} or higher")
                    .with_path("sku.capacity")
                    .build()
                )

        if (
            not zone_redundant
            and context is not None
            and context.environment == "production"
            and str(sku_name or "").startswith("P")
        ):
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Production App Service Plan without zone redundancy")
                .with_suggestion("Enable zoneRedundant for high availability")
                .with_details("Zone redundancy provides automatic failover across availability zones")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class FunctionAppRule(BaseValidationRule):
    """``kind`` に functionapp を含むサイトにのみ適用されるルール。"""

    resource_types = (SITES,)

    def condition(self, resource: dict[str, Any], context: ValidationContext | None = None) -> bool:
        return _is_function_app(resource)


class FunctionAppNameValidator(FunctionAppRule):
    name = "functionapp-name-format"
    description = "Validates Function App name follows Azure naming rules"
    severity = Severity.ERROR

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        name = resource.get("name") or resource.get("siteName")

        if not name:
            return ValidationResultBuilder.error(self.name).with_message("Function App name is required").build()

        results = collect_results(
            validate_length(name, 2, 60, "Function App name", self.name),
            validate_pattern(
                name,
                _NAME_PATTERN,
                "Function App name",
                self.name,
                "Function App names must contain only alphanumeric characters and hyphens, "
                "and cannot start or end with a hyphen",
            ),
        )
        return results or ValidationResultBuilder.success(self.name).build()


class FunctionAppStorageValidator(FunctionAppRule):
    name = "functionapp-storage"
    description = "Validates Function App has required storage account configuration"
    severity = Severity.ERROR

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        storage_setting = find_app_setting(resource, "AzureWebJobsStorage")

        if storage_setting is None:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Function App requires AzureWebJobsStorage app setting")
                .with_suggestion("Add AzureWebJobsStorage connection string to app settings")
                .with_details("This storage account is used for internal function runtime operations")
                .with_path("properties.siteConfig.appSettings")
                .build()
            )

        if not storage_setting.get("value"):
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("AzureWebJobsStorage connection string is empty")
                .with_suggestion("Provide a valid storage account connection string")
                .with_path("properties.siteConfig.appSettings")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class FunctionAppRuntimeValidator(FunctionAppRule):
    name = "functionapp-runtime"
    description = "Validates Function App runtime stack and version"
    severity = Severity.WARNING

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        runtime_version = find_app_setting(resource, "FUNCTIONS_EXTENSION_VERSION")

        if runtime_version is None:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("FUNCTIONS_EXTENSION_VERSION not specified")
                .with_suggestion("Set FUNCTIONS_EXTENSION_VERSION to ~4 for latest runtime")
                .build()
            )

        version = runtime_version.get("value")
        if version in OUTDATED_RUNTIME_VERSIONS:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message(f"Runtime version {version} is outdated")
                .with_suggestion("Upgrade to ~4 for latest features and support")
                .with_details("Older runtime versions may have reduced support")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class FunctionAppAlwaysOnValidator(FunctionAppRule):
    name = "functionapp-always-on"
    description = "Validates Function App always-on setting is appropriate for plan"
    severity = Severity.WARNING

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        always_on = get_in(resource, "properties", "siteConfig", "alwaysOn")
        server_farm_id = get_in(resource, "properties", "serverFarmId")

        plan = context.get_resource(server_farm_id) if context else None
        plan_sku = get_in(plan, "sku", "name")

        if always_on and plan_sku == CONSUMPTION_SKU:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Always-on is not supported on Consumption plan")
                .with_suggestion("Remove alwaysOn setting or use Premium/Dedicated plan")
                .with_path("properties.siteConfig.alwaysOn")
                .build()
            )

        if (
            not always_on
            and plan_sku
            and plan_sku != CONSUMPTION_SKU
            and context is not None
            and context.environment == "production"
        ):
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Always-on is disabled on non-consumption plan")
                .with_suggestion("Enable always-on to prevent cold starts")
                .with_details("Set siteConfig.alwaysOn: true")
                .with_path("properties.siteConfig.alwaysOn")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class FunctionAppApplicationInsightsValidator(FunctionAppRule):
    name = "functionapp-appinsights"
    description = "Validates Function App has Application Insights configured"
    severity = Severity.WARNING

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        instrumentation_key = find_app_setting(resource, "APPINSIGHTS_INSTRUMENTATIONKEY")
        connection_string = find_app_setting(resource, "APPLICATIONINSIGHTS_CONNECTION_STRING")

        if instrumentation_key is None and connection_string is None:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Application Insights not configured")
                .with_suggestion("Add APPLICATIONINSIGHTS_CONNECTION_STRING app setting")
                .with_details("Application Insights provides monitoring, logging, and diagnostics")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


web_validators: list[BaseValidationRule] = [
    AppServicePlanNameValidator(),
    AppServicePlanSkuValidator(),
    AppServicePlanZoneRedundancyValidator(),
    FunctionAppNameValidator(),
    FunctionAppStorageValidator(),
    FunctionAppRuntimeValidator(),
    FunctionAppAlwaysOnValidator(),
    FunctionAppApplicationInsightsValidator(),
]
