"""Cosmos DBルールのユニットテスト。"""

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult
from armcheck.validators.database import (
    CosmosDbAccountNameValidator,
    CosmosDbAutomaticFailoverValidator,
    CosmosDbBackupPolicyValidator,
    CosmosDbCapabilitiesValidator,
    CosmosDbConsistencyValidator,
    CosmosDbMultiRegionValidator,
    CosmosDbNetworkAclsValidator,
)
from armcheck.validators.rule import RuleOutput


def _as_list(output: RuleOutput) -> list[ValidationResult]:
    return [output] if isinstance(output, ValidationResult) else list(output)


def _locations(*regions: str) -> list[dict]:
    return [{"locationName": region, "failoverPriority": i} for i, region in enumerate(regions)]


class TestCosmosDbAccountName:
    def test_uppercase_rejected(self) -> None:
        results = _as_list(CosmosDbAccountNameValidator().validate({"name": "CosmosApp"}))
        messages = [r.message for r in results if not r.valid]
        assert "Cosmos DB account name must be lowercase" in messages

    def test_valid(self) -> None:
        results = _as_list(CosmosDbAccountNameValidator().validate({"name": "cosmos-app-prod"}))
        assert all(r.valid for r in results)


class TestCosmosDbConsistency:
    def test_missing_policy_is_advisory(self) -> None:
        result = _as_list(CosmosDbConsistencyValidator().validate({"properties": {}}))[0]
        assert result.severity == Severity.WARNING
        assert result.advisory is True

    def test_invalid_level(self) -> None:
        resource = {"properties": {"consistencyPolicy": {"defaultConsistencyLevel": "Weak"}}}
        result = _as_list(CosmosDbConsistencyValidator().validate(resource))[0]
        assert result.message == "Invalid defaultConsistencyLevel: Weak"

    def test_bounded_staleness_requires_bounds(self) -> None:
        resource = {"properties": {"consistencyPolicy": {"defaultConsistencyLevel": "BoundedStaleness"}}}
        result = _as_list(CosmosDbConsistencyValidator().validate(resource))[0]
        assert result.valid is False

        bounded = {
            "properties": {
                "consistencyPolicy": {"defaultConsistencyLevel": "BoundedStaleness", "maxIntervalInSeconds": 300}
            }
        }
        assert _as_list(CosmosDbConsistencyValidator().validate(bounded))[0].valid is True


class TestCosmosDbMultiRegion:
    def test_condition_requires_multiple_regions(self) -> None:
        rule = CosmosDbMultiRegionValidator()
        assert rule.condition({"properties": {"locations": _locations("japaneast")}}) is False
        assert rule.condition({"properties": {"locations": _locations("japaneast", "japanwest")}}) is True

    def test_strong_consistency_warns(self) -> None:
        resource = {
            "properties": {
                "locations": _locations("japaneast", "japanwest"),
                "consistencyPolicy": {"defaultConsistencyLevel": "Strong"},
            }
        }
        result = _as_list(CosmosDbMultiRegionValidator().validate(resource))[0]
        assert result.severity == Severity.WARNING
        assert result.valid is False

    def test_duplicate_write_region(self) -> None:
        locations = [
            {"locationName": "japaneast", "failoverPriority": 0},
            {"locationName": "japanwest", "failoverPriority": 0},
        ]
        result = _as_list(CosmosDbMultiRegionValidator().validate({"properties": {"locations": locations}}))[0]
        assert result.severity == Severity.ERROR


class TestCosmosDbOperationalRules:
    def test_short_backup_interval(self) -> None:
        resource = {
            "properties": {
                "backupPolicy": {
                    "type": "Periodic",
                    "periodicModeProperties": {"backupIntervalInMinutes": 30, "backupRetentionIntervalInHours": 8},
                }
            }
        }
        result = _as_list(CosmosDbBackupPolicyValidator().validate(resource))[0]
        assert result.message == "Backup interval should be at least 60 minutes"

    def test_failover_without_regions(self) -> None:
        resource = {"properties": {"enableAutomaticFailover": True, "locations": _locations("japaneast")}}
        result = _as_list(CosmosDbAutomaticFailoverValidator().validate(resource))[0]
        assert result.message == "Automatic failover requires multiple regions"

    def test_multi_region_without_failover(self) -> None:
        resource = {"properties": {"locations": _locations("japaneast", "japanwest")}}
        result = _as_list(CosmosDbAutomaticFailoverValidator().validate(resource))[0]
        assert result.valid is False

    def test_multiple_api_capabilities(self) -> None:
        resource = {"properties": {"capabilities": [{"name": "EnableMongo"}, {"name": "EnableTable"}]}}
        result = _as_list(CosmosDbCapabilitiesValidator().validate(resource))[0]
        assert result.details == "Currently enabled: EnableMongo, EnableTable"

    def test_serverless_with_analytical_storage(self) -> None:
        resource = {"properties": {"capabilities": [{"name": "EnableServerless"}, {"name": "EnableAnalyticalStorage"}]}}
        result = _as_list(CosmosDbCapabilitiesValidator().validate(resource))[0]
        assert result.message == "Serverless mode is incompatible with analytical storage"

    def test_open_ip_rule(self) -> None:
        resource = {"properties": {"ipRules": [{"ipAddressOrRange": "0.0.0.0/0"}]}}
        result = _as_list(CosmosDbNetworkAclsValidator().validate(resource))[0]
        assert result.valid is False

    def test_public_access_disabled_with_private_endpoints(self) -> None:
        resource = {"properties": {"publicNetworkAccess": "Disabled"}}
        assert _as_list(CosmosDbNetworkAclsValidator().validate(resource))[0].valid is False
        context = ValidationContext(has_private_endpoints=True)
        assert _as_list(CosmosDbNetworkAclsValidator().validate(resource, context))[0].valid is True
