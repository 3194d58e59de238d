"""Cognitive Services / Azure OpenAIのルール。"""

import re
from typing import Any

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult, ValidationResultBuilder
from armcheck.validators.common import collect_results, get_in, validate_length, validate_pattern, warn_globally_unique
from armcheck.validators.rule import BaseValidationRule, RuleOutput

COGNITIVE_SERVICES_ACCOUNTS = "Microsoft.CognitiveServices/accounts"
OPENAI_DEPLOYMENTS = "Microsoft.CognitiveServices/accounts/deployments"

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9]$")
_SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")

# 1000 TPM単位
CAPACITY_LOW_THRESHOLD = 10
CAPACITY_HIGH_THRESHOLD = 300


class CognitiveServicesAccountNameValidator(BaseValidationRule):
    name = "cognitiveservices-account-name-format"
    description = "Validates Cognitive Services account name follows Azure naming rules"
    severity = Severity.ERROR
    resource_types = (COGNITIVE_SERVICES_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        name = resource.get("name") or resource.get("accountName")

        if not name:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Cognitive Services account name is required")
                .build()
            )

        return collect_results(
            validate_length(name, 2, 64, "Cognitive Services account name", self.name),
            validate_pattern(
                name,
                _NAME_PATTERN,
                "Cognitive Services account name",
                self.name,
                "Cognitive Services account names must contain only alphanumeric characters and hyphens, "
                "and cannot start or end with a hyphen",
            ),
            warn_globally_unique(self.name, "Cognitive Services account"),
        )


class OpenAIDeploymentModelValidator(BaseValidationRule):
    name = "openai-deployment-model"
    description = "Validates OpenAI deployment has valid model and version"
    severity = Severity.ERROR
    resource_types = (OPENAI_DEPLOYMENTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        model = get_in(resource, "properties", "model")

        if not model:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("OpenAI deployment must specify a model")
                .with_suggestion("Set properties.model with name and version")
                .with_path("properties.model")
                .build()
            )

        results: list[ValidationResult] = []

        if not model.get("name"):
            results.append(
                ValidationResultBuilder.error(self.name)
                .with_message("Model name is required")
                .with_suggestion('Set model.name (e.g., "gpt-4", "gpt-35-turbo", "text-embedding-ada-002")')
                .with_path("properties.model.name")
                .build()
            )

        if not model.get("version"):
            results.append(
                ValidationResultBuilder.error(self.name)
                .with_message("Model version is required")
                .with_suggestion('Set model.version (e.g., "0613", "1106")')
                .with_path("properties.model.version")
                .build()
            )

        return results or ValidationResultBuilder.success(self.name).build()


class OpenAIDeploymentCapacityValidator(BaseValidationRule):
    name = "openai-deployment-capacity"
    description = "Validates OpenAI deployment capacity is within quota limits"
    severity = Severity.WARNING
    resource_types = (OPENAI_DEPLOYMENTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        capacity = get_in(resource, "sku", "capacity")

        if not capacity:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("No capacity specified for OpenAI deployment")
                .with_suggestion("Set sku.capacity in thousands of tokens per minute (TPM)")
                .with_details("Default capacity may be insufficient for production workloads")
                .with_path("sku.capacity")
                .build()
            )

        if capacity < CAPACITY_LOW_THRESHOLD:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message(f"Deployment capacity is {capacity}K TPM, which may be too low")
                .with_suggestion("Consider increasing capacity for production workloads")
                .with_details("Low capacity may cause throttling under load")
                .build()
            )

        if capacity > CAPACITY_HIGH_THRESHOLD:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message(f"Deployment capacity is {capacity}K TPM, which may exceed quota")
                .with_suggestion("Verify your subscription has sufficient quota")
                .with_details("High capacity may require quota increase request")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class OpenAIDeploymentNameValidator(BaseValidationRule):
    name = "openai-deployment-name"
    description = "Validates OpenAI deployment name is unique and descriptive"
    severity = Severity.WARNING
    resource_types = (OPENAI_DEPLOYMENTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        name = resource.get("name") or resource.get("deploymentName")

        if not name:
            return ValidationResultBuilder.error(self.name).with_message("OpenAI deployment name is required").build()

        model = get_in(resource, "properties", "model", "name")
        # 子リソース名は "account/deployment" 形式のことがある
        deployment_name = str(name).rsplit("/", 1)[-1]

        if model and model.lower() not in deployment_name.lower():
            return (
                ValidationResultBuilder.warning(self.name)
                .as_advisory()
                .with_message("Deployment name does not indicate the model type")
                .with_suggestion(f'Consider including "{model}" in the deployment name for clarity')
                .with_details("Descriptive names help identify deployments when multiple models are used")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class CognitiveServicesNetworkAclsValidator(BaseValidationRule):
    name = "cognitiveservices-network-acls"
    description = "Validates Cognitive Services network ACLs are configured appropriately"
    severity = Severity.WARNING
    resource_types = (COGNITIVE_SERVICES_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        network_acls = get_in(resource, "properties", "networkAcls")

        if not network_acls:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("No network ACLs configured")
                .with_suggestion("Consider restricting access with network ACLs or private endpoints")
                .with_details("By default, Cognitive Services accounts are accessible from all networks")
                .build()
            )

        if network_acls.get("defaultAction") == "Allow":
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Network ACLs allow access from all networks")
                .with_suggestion('Set defaultAction to "Deny" and specify allowed networks')
                .with_details("Unrestricted access may pose security risks")
                .with_path("properties.networkAcls.defaultAction")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class CognitiveServicesSkuValidator(BaseValidationRule):
    name = "cognitiveservices-sku"
    description = "Validates Cognitive Services SKU is appropriate for the workload"
    severity = Severity.WARNING
    resource_types = (COGNITIVE_SERVICES_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        sku_name = get_in(resource, "sku", "name")

        if not sku_name:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("SKU name is required")
                .with_suggestion('Set sku.name (e.g., "S0", "S1", "F0")')
                .with_path("sku.name")
                .build()
            )

        if sku_name == "F0" and context is not None and context.environment == "production":
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message("Free tier (F0) SKU in production environment")
                .with_suggestion("Use a standard SKU (S0 or higher) for production workloads")
                .with_details("Free tier has limited quota and no SLA")
                .build()
            )

        if resource.get("kind") == "OpenAI" and sku_name != "S0":
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message(f'SKU "{sku_name}" may not be supported for OpenAI')
                .with_suggestion('Use "S0" SKU for OpenAI accounts')
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class CognitiveServicesCustomSubdomainValidator(BaseValidationRule):
    name = "cognitiveservices-custom-subdomain"
    description = "Validates custom subdomain is configured when required"
    severity = Severity.ERROR
    resource_types = (COGNITIVE_SERVICES_ACCOUNTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        subdomain = get_in(resource, "properties", "customSubDomainName")
        kind = resource.get("kind")
        network_acls = get_in(resource, "properties", "networkAcls")
        has_private_endpoints = bool(get_in(resource, "properties", "privateEndpointConnections")) or bool(
            context and context.has_private_endpoints
        )

        requires_subdomain = (
            kind == "OpenAI"
            or has_private_endpoints
            or (bool(network_acls) and network_acls.get("defaultAction") == "Deny")
        )

        if requires_subdomain and not subdomain:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Custom subdomain is required for this configuration")
                .with_suggestion("Set properties.customSubDomainName")
                .with_details(
                    "OpenAI accounts require a custom subdomain"
                    if kind == "OpenAI"
                    else "Private endpoints and network restrictions require a custom subdomain"
                )
                .with_path("properties.customSubDomainName")
                .build()
            )

        if subdomain:
            if not _SUBDOMAIN_PATTERN.match(subdomain):
                return (
                    ValidationResultBuilder.error(self.name)
                    .with_message("Custom subdomain name has invalid format")
                    .with_suggestion("Use only lowercase letters, numbers, and hyphens")
                    .with_details("Cannot start or end with a hyphen")
                    .with_path("properties.customSubDomainName")
                    .build()
                )

            if not 2 <= len(subdomain) <= 64:
                return (
                    ValidationResultBuilder.error(self.name)
                    .with_message("Custom subdomain name must be 2-64 characters")
                    .with_details(f"Current length: {len(subdomain)}")
                    .with_path("properties.customSubDomainName")
                    .build()
                )

        return ValidationResultBuilder.success(self.name).build()


cognitive_services_validators: list[BaseValidationRule] = [
    CognitiveServicesAccountNameValidator(),
    OpenAIDeploymentModelValidator(),
    OpenAIDeploymentCapacityValidator(),
    OpenAIDeploymentNameValidator(),
    CognitiveServicesNetworkAclsValidator(),
    CognitiveServicesSkuValidator(),
    CognitiveServicesCustomSubdomainValidator(),
]
