"""ValidationServiceのユニットテスト。"""

import json
from pathlib import Path

import pytest
import yaml

from armcheck.models.context import ValidationContext
from armcheck.models.errors import InvalidTemplateError, PolicyLoadError, TemplateNotFoundError
from armcheck.services.validation import ValidationService
from armcheck.validators.registry import ValidatorRegistry

KEY_VAULT_ID = "/subscriptions/0000/resourceGroups/rg/providers/Microsoft.KeyVault/vaults/kv-app-prod"


def _template(*resources: dict) -> dict:
    return {
        "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#",
        "contentVersion": "1.0.0.0",
        "resources": list(resources),
    }


def _vnet(*subnets: dict) -> dict:
    return {
        "type": "Microsoft.Network/virtualNetworks",
        "name": "vnet-hub",
        "location": "japaneast",
        "properties": {
            "addressSpace": {"addressPrefixes": ["10.0.0.0/16"]},
            "subnets": list(subnets),
        },
    }


def _subnet(name: str, prefix: str) -> dict:
    return {"name": name, "properties": {"addressPrefix": prefix}}


def _key_vault(**props: object) -> dict:
    return {
        "type": "Microsoft.KeyVault/vaults",
        "name": "kv-app-prod",
        "id": KEY_VAULT_ID,
        "location": "japaneast",
        "properties": {"enableRbacAuthorization": True, "softDeleteRetentionInDays": 90, **props},
    }


def _private_endpoint(target_id: str, group_ids: list[str]) -> dict:
    return {
        "type": "Microsoft.Network/privateEndpoints",
        "name": "pe-kv",
        "location": "japaneast",
        "properties": {
            "privateLinkServiceConnections": [
                {"name": "kv", "properties": {"privateLinkServiceId": target_id, "groupIds": group_ids}}
            ]
        },
    }


def _messages(report: object) -> list[str]:
    return [r.message for resource in report.resources for r in resource.results if r.message]  # type: ignore[attr-defined]


class TestValidateResource:
    async def test_validate_resource(self, validation_service: ValidationService) -> None:
        report = await validation_service.validate_resource(
            "Microsoft.Storage/storageAccounts", {"name": "My-Account", "sku": {"name": "Standard_ZRS"}}
        )
        assert report.resource_type == "Microsoft.Storage/storageAccounts"
        assert report.name == "My-Account"
        assert report.error_count == 2

    async def test_validate_resource_with_context(self, validation_service: ValidationService) -> None:
        context = ValidationContext(environment="production")
        report = await validation_service.validate_resource(
            "Microsoft.Web/serverfarms", {"name": "plan", "sku": {"name": "F1", "tier": "Free"}}, context
        )
        assert report.warning_count == 1

    async def test_unknown_type_has_no_results(self, validation_service: ValidationService) -> None:
        report = await validation_service.validate_resource("Microsoft.Unknown/things", {"name": "x"})
        assert report.results == []

    async def test_default_region_applies(self, loaded_registry: ValidatorRegistry, config_dir: Path) -> None:
        service = ValidationService(registry=loaded_registry, config_dir=config_dir, region="japaneast")
        report = await service.validate_resource("Microsoft.Unknown/things", {"location": "eastus"})
        assert report.warning_count == 1


class TestValidateTemplate:
    async def test_inline_subnets_are_validated(self, validation_service: ValidationService) -> None:
        template = _template(_vnet(_subnet("snet-app", "10.0.1.0/24"), _subnet("snet-outside", "10.1.0.0/24")))
        report = await validation_service.validate_template(template)

        types = [r.resource_type for r in report.resources]
        assert types == [
            "Microsoft.Network/virtualNetworks",
            "Microsoft.Network/virtualNetworks/subnets",
            "Microsoft.Network/virtualNetworks/subnets",
        ]
        assert report.resources[1].error_count == 0
        assert report.resources[2].error_count == 1
        assert "Subnet address prefix is not within VNet address space" in _messages(report)
        assert report.passed is False

    async def test_overlapping_inline_subnets(self, validation_service: ValidationService) -> None:
        template = _template(_vnet(_subnet("a", "10.0.1.0/24"), _subnet("b", "10.0.1.128/25")))
        report = await validation_service.validate_template(template)
        assert _messages(report).count("Subnet address range overlaps with existing subnets") == 2

    async def test_standalone_subnet_uses_parent_vnet(self, validation_service: ValidationService) -> None:
        subnet = {
            "type": "Microsoft.Network/virtualNetworks/subnets",
            "name": "vnet-hub/snet-outside",
            "properties": {"addressPrefix": "192.168.0.0/24"},
        }
        report = await validation_service.validate_template(_template(_vnet(), subnet))
        assert report.resources[1].error_count == 1

    async def test_nested_child_resources(self, validation_service: ValidationService) -> None:
        account = {
            "type": "Microsoft.CognitiveServices/accounts",
            "name": "oai-app",
            "kind": "OpenAI",
            "sku": {"name": "S0"},
            "properties": {"customSubDomainName": "oai-app", "networkAcls": {"defaultAction": "Deny"}},
            "resources": [
                {
                    "type": "deployments",
                    "name": "chat",
                    "sku": {"name": "Standard", "capacity": 50},
                    "properties": {"model": {"format": "OpenAI", "name": "gpt-4o", "version": "2024-05-13"}},
                }
            ],
        }
        report = await validation_service.validate_template(_template(account))
        deployment = report.resources[1]
        assert deployment.resource_type == "Microsoft.CognitiveServices/accounts/deployments"
        assert deployment.name == "oai-app/chat"
        assert deployment.error_count == 0

    async def test_private_endpoint_target_is_resolved(self, validation_service: ValidationService) -> None:
        template = _template(
            _key_vault(publicNetworkAccess="Disabled"),
            _private_endpoint(KEY_VAULT_ID, ["blob"]),
        )
        report = await validation_service.validate_template(template)

        vault, endpoint = report.resources
        assert vault.error_count == 0
        assert endpoint.error_count == 1
        assert "Invalid group IDs for Microsoft.KeyVault/vaults" in _messages(report)

    async def test_private_endpoint_target_outside_template(self, validation_service: ValidationService) -> None:
        external = "/subscriptions/0000/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/stshared"
        report = await validation_service.validate_template(_template(_private_endpoint(external, ["blob"])))
        assert report.resources[0].error_count == 0

    async def test_vault_without_private_endpoint(self, validation_service: ValidationService) -> None:
        report = await validation_service.validate_template(_template(_key_vault(publicNetworkAccess="Disabled")))
        assert "Public network access disabled without private endpoints" in _messages(report)

    async def test_region_from_arguments(self, validation_service: ValidationService) -> None:
        report = await validation_service.validate_template(_template(_key_vault()), region="eastus")
        assert any(
            r.rule_name == "resource-location-consistency" and not r.valid for r in report.resources[0].results
        )

    async def test_missing_resources(self, validation_service: ValidationService) -> None:
        with pytest.raises(InvalidTemplateError):
            await validation_service.validate_template({"contentVersion": "1.0.0.0"})

    async def test_resource_without_type(self, validation_service: ValidationService) -> None:
        with pytest.raises(InvalidTemplateError, match=r"resources\[0\] has no type"):
            await validation_service.validate_template(_template({"name": "x"}))

    async def test_non_object_inline_subnet(self, validation_service: ValidationService) -> None:
        with pytest.raises(InvalidTemplateError, match=r"resources\[0\]\.properties\.subnets\[1\]"):
            await validation_service.validate_template(
                _template(_vnet(_subnet("snet", "10.0.1.0/24"), "bad"))  # type: ignore[arg-type]
            )

    async def test_non_array_inline_subnets(self, validation_service: ValidationService) -> None:
        vnet = _vnet()
        vnet["properties"]["subnets"] = {"name": "snet"}
        with pytest.raises(InvalidTemplateError, match="properties.subnets"):
            await validation_service.validate_template(_template(vnet))

    async def test_nested_child_with_invalid_type(self, validation_service: ValidationService) -> None:
        parent = {"type": "Microsoft.Storage/storageAccounts", "name": "stapp", "resources": [{"type": 5}]}
        with pytest.raises(InvalidTemplateError, match=r"resources\[0\]\.resources\[0\] has no type"):
            await validation_service.validate_template(_template(parent))

    async def test_nested_child_not_object(self, validation_service: ValidationService) -> None:
        parent = {"type": "Microsoft.Storage/storageAccounts", "name": "stapp", "resources": ["blob"]}
        with pytest.raises(InvalidTemplateError, match=r"resources\[0\]\.resources\[0\] must be an object"):
            await validation_service.validate_template(_template(parent))

    async def test_empty_template_passes(self, validation_service: ValidationService) -> None:
        report = await validation_service.validate_template(_template())
        assert report.passed is True
        assert report.resources == []


class TestCrossResourceLookup:
    @staticmethod
    def _plan(name: str, sku: str) -> dict:
        return {"type": "Microsoft.Web/serverfarms", "name": name, "location": "japaneast", "sku": {"name": sku}}

    @staticmethod
    def _function_app(name: str, server_farm_id: str) -> dict:
        return {
            "type": "Microsoft.Web/sites",
            "name": name,
            "kind": "functionapp",
            "location": "japaneast",
            "properties": {"serverFarmId": server_farm_id, "siteConfig": {"alwaysOn": True}},
        }

    @staticmethod
    def _failed_rules(report: object) -> list[str]:
        return [r.rule_name for r in report.results if not r.valid]  # type: ignore[attr-defined]

    async def test_plan_resolved_from_resource_id(self, validation_service: ValidationService) -> None:
        plan_id = "/subscriptions/0000/resourceGroups/rg/providers/Microsoft.Web/serverfarms/plan"
        template = _template(self._plan("plan", "Y1"), self._function_app("func-app-prod", plan_id))
        report = await validation_service.validate_template(template)
        assert "functionapp-always-on" in self._failed_rules(report.resources[1])

    async def test_plan_resolved_from_resource_id_expression(self, validation_service: ValidationService) -> None:
        expression = "[resourceId('Microsoft.Web/serverfarms', 'plan')]"
        template = _template(self._plan("plan", "Y1"), self._function_app("func-app-prod", expression))
        report = await validation_service.validate_template(template)
        assert "functionapp-always-on" in self._failed_rules(report.resources[1])

    async def test_same_name_resources_do_not_collide(self, validation_service: ValidationService) -> None:
        expression = "[resourceId('Microsoft.Web/serverfarms', 'func-app-prod')]"
        template = _template(self._plan("func-app-prod", "Y1"), self._function_app("func-app-prod", expression))
        report = await validation_service.validate_template(template)
        assert "functionapp-always-on" in self._failed_rules(report.resources[1])

    async def test_dedicated_plan_allows_always_on(self, validation_service: ValidationService) -> None:
        expression = "[resourceId('Microsoft.Web/serverfarms', 'plan')]"
        template = _template(self._plan("plan", "EP1"), self._function_app("func-app-prod", expression))
        report = await validation_service.validate_template(template)
        assert "functionapp-always-on" not in self._failed_rules(report.resources[1])

    async def test_private_endpoint_resolved_without_id(self, validation_service: ValidationService) -> None:
        vault = _key_vault(publicNetworkAccess="Disabled")
        del vault["id"]
        endpoint = _private_endpoint("[resourceId('Microsoft.KeyVault/vaults', 'kv-app-prod')]", ["vault"])
        report = await validation_service.validate_template(_template(vault, endpoint))
        assert "Public network access disabled without private endpoints" not in _messages(report)
        assert report.resources[1].error_count == 0


class TestValidateTemplateFile:
    async def test_json_file(self, validation_service: ValidationService, tmp_path: Path) -> None:
        path = tmp_path / "main.json"
        path.write_text(json.dumps(_template(_vnet(_subnet("snet", "10.0.1.0/24")))), encoding="utf-8")
        report = await validation_service.validate_template_file(str(path))
        assert report.passed is True
        assert len(report.resources) == 2

    async def test_yaml_file(self, validation_service: ValidationService, tmp_path: Path) -> None:
        path = tmp_path / "main.yaml"
        path.write_text(yaml.safe_dump(_template(_key_vault())), encoding="utf-8")
        report = await validation_service.validate_template_file(str(path))
        assert report.resources[0].resource_type == "Microsoft.KeyVault/vaults"

    async def test_missing_file(self, validation_service: ValidationService, tmp_path: Path) -> None:
        with pytest.raises(TemplateNotFoundError):
            await validation_service.validate_template_file(str(tmp_path / "missing.json"))

    async def test_invalid_json(self, validation_service: ValidationService, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidTemplateError):
            await validation_service.validate_template_file(str(path))

    async def test_non_object_template(self, validation_service: ValidationService, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(InvalidTemplateError, match="must be an object"):
            await validation_service.validate_template_file(str(path))


class TestPolicy:
    async def test_default_policy_from_config(self, validation_service: ValidationService) -> None:
        assert validation_service.policy.suppressed_rules == []
        assert validation_service.policy.fail_on_warnings is False

    async def test_missing_policy_file(self, loaded_registry: ValidatorRegistry, tmp_path: Path) -> None:
        service = ValidationService(registry=loaded_registry, config_dir=tmp_path)
        assert service.policy.suppressed_rules == []

    async def test_suppressed_rules(self, loaded_registry: ValidatorRegistry, tmp_path: Path) -> None:
        (tmp_path / "validation-policy.yaml").write_text(
            "suppressed_rules:\n  - storage-account-name-format\n", encoding="utf-8"
        )
        service = ValidationService(registry=loaded_registry, config_dir=tmp_path)
        report = await service.validate_resource(
            "Microsoft.Storage/storageAccounts", {"name": "My-Account", "sku": {"name": "Standard_ZRS"}}
        )
        assert report.error_count == 0
        assert report.suppressed_count == 3
        assert all(r.rule_name != "storage-account-name-format" for r in report.results)

    async def test_fail_on_warnings(self, loaded_registry: ValidatorRegistry, tmp_path: Path) -> None:
        (tmp_path / "validation-policy.yaml").write_text("fail_on_warnings: true\n", encoding="utf-8")
        service = ValidationService(registry=loaded_registry, config_dir=tmp_path)
        report = await service.validate_template(_template(_key_vault(enableRbacAuthorization=True, accessPolicies=[{}])))
        assert report.error_count == 0
        assert report.warning_count >= 1
        assert report.passed is False

    async def test_invalid_policy(self, loaded_registry: ValidatorRegistry, tmp_path: Path) -> None:
        (tmp_path / "validation-policy.yaml").write_text("fail_on_warnings: [1, 2]\n", encoding="utf-8")
        service = ValidationService(registry=loaded_registry, config_dir=tmp_path)
        with pytest.raises(PolicyLoadError):
            _ = service.policy


class TestListRules:
    async def test_list_all_rules(self, validation_service: ValidationService) -> None:
        rules = await validation_service.list_rules()
        names = [r.name for r in rules]
        assert names[0] == "resource-location-consistency"
        assert len(names) == len(set(names))
        assert "functionapp-storage" in names

    async def test_list_rules_for_type(self, validation_service: ValidationService) -> None:
        rules = await validation_service.list_rules("Microsoft.KeyVault/vaults")
        assert [r.name for r in rules][:2] == ["resource-location-consistency", "keyvault-name-format"]
        assert rules[1].resource_types == ["Microsoft.KeyVault/vaults"]

    async def test_empty_registry(self, config_dir: Path) -> None:
        service = ValidationService(registry=ValidatorRegistry(), config_dir=config_dir)
        assert await service.list_rules() == []
