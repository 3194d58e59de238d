"""Cognitive Services / Azure OpenAIルールのユニットテスト。"""

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult
from armcheck.validators.cognitiveservices import (
    CognitiveServicesAccountNameValidator,
    CognitiveServicesCustomSubdomainValidator,
    CognitiveServicesNetworkAclsValidator,
    CognitiveServicesSkuValidator,
    OpenAIDeploymentCapacityValidator,
    OpenAIDeploymentModelValidator,
    OpenAIDeploymentNameValidator,
)
from armcheck.validators.rule import RuleOutput


def _as_list(output: RuleOutput) -> list[ValidationResult]:
    return [output] if isinstance(output, ValidationResult) else list(output)


class TestAccountRules:
    def test_name_ending_with_hyphen(self) -> None:
        results = _as_list(CognitiveServicesAccountNameValidator().validate({"name": "oai-app-"}))
        assert [r.severity for r in results if not r.valid] == [Severity.ERROR]

    def test_openai_requires_s0(self) -> None:
        result = _as_list(CognitiveServicesSkuValidator().validate({"kind": "OpenAI", "sku": {"name": "S1"}}))[0]
        assert result.message == 'SKU "S1" may not be supported for OpenAI'

    def test_free_tier_in_production(self) -> None:
        context = ValidationContext(environment="production")
        result = _as_list(CognitiveServicesSkuValidator().validate({"sku": {"name": "F0"}}, context))[0]
        assert result.severity == Severity.WARNING
        assert result.valid is False

    def test_missing_network_acls(self) -> None:
        result = _as_list(CognitiveServicesNetworkAclsValidator().validate({"properties": {}}))[0]
        assert result.message == "No network ACLs configured"

    def test_openai_requires_subdomain(self) -> None:
        result = _as_list(CognitiveServicesCustomSubdomainValidator().validate({"kind": "OpenAI", "properties": {}}))[0]
        assert result.severity == Severity.ERROR
        assert result.details == "OpenAI accounts require a custom subdomain"

    def test_private_endpoints_require_subdomain(self) -> None:
        context = ValidationContext(has_private_endpoints=True)
        result = _as_list(
            CognitiveServicesCustomSubdomainValidator().validate({"kind": "TextAnalytics", "properties": {}}, context)
        )[0]
        assert result.valid is False

    def test_subdomain_format(self) -> None:
        resource = {"kind": "OpenAI", "properties": {"customSubDomainName": "My_Subdomain"}}
        result = _as_list(CognitiveServicesCustomSubdomainValidator().validate(resource))[0]
        assert result.message == "Custom subdomain name has invalid format"

        valid = {"kind": "OpenAI", "properties": {"customSubDomainName": "oai-app-prod"}}
        assert _as_list(CognitiveServicesCustomSubdomainValidator().validate(valid))[0].valid is True


class TestDeploymentRules:
    def test_model_name_and_version_required(self) -> None:
        results = _as_list(OpenAIDeploymentModelValidator().validate({"properties": {"model": {"format": "OpenAI"}}}))
        assert [r.path for r in results] == ["properties.model.name", "properties.model.version"]

    def test_missing_model(self) -> None:
        result = _as_list(OpenAIDeploymentModelValidator().validate({"properties": {}}))[0]
        assert result.message == "OpenAI deployment must specify a model"

    def test_capacity_thresholds(self) -> None:
        rule = OpenAIDeploymentCapacityValidator()
        low = _as_list(rule.validate({"sku": {"capacity": 5}}))[0]
        high = _as_list(rule.validate({"sku": {"capacity": 500}}))[0]
        ok = _as_list(rule.validate({"sku": {"capacity": 120}}))[0]
        assert low.message == "Deployment capacity is 5K TPM, which may be too low"
        assert high.message == "Deployment capacity is 500K TPM, which may exceed quota"
        assert ok.valid is True and ok.severity == Severity.INFO

    def test_deployment_name_reminder(self) -> None:
        resource = {"name": "oai-app/chat", "properties": {"model": {"name": "gpt-4o", "version": "2024-05-13"}}}
        result = _as_list(OpenAIDeploymentNameValidator().validate(resource))[0]
        assert result.advisory is True
        assert result.valid is True

    def test_descriptive_deployment_name(self) -> None:
        resource = {"name": "oai-app/gpt-4o-chat", "properties": {"model": {"name": "gpt-4o"}}}
        result = _as_list(OpenAIDeploymentNameValidator().validate(resource))[0]
        assert result.severity == Severity.INFO
