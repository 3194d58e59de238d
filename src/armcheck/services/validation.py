"""ARMテンプレート/単一リソースの検証パスを実行するサービス。"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from armcheck.models.context import ValidationContext, build_resource_id
from armcheck.models.errors import InvalidTemplateError, PolicyLoadError, TemplateNotFoundError
from armcheck.models.report import ResourceReport, RuleSummary, ValidationPolicy, ValidationReport
from armcheck.validators.common import get_in
from armcheck.validators.network import PRIVATE_ENDPOINTS, SUBNETS, VIRTUAL_NETWORKS
from armcheck.validators.registry import ValidatorRegistry
from armcheck.validators.rule import ValidationRule

logger = logging.getLogger(__name__)

POLICY_FILE = "validation-policy.yaml"
_YAML_SUFFIXES = (".yaml", ".yml")


class ValidationService:
    """レジストリを使ってテンプレート内の各リソースを検証する。"""

    def __init__(
        self,
        registry: ValidatorRegistry,
        config_dir: Path,
        environment: str | None = None,
        region: str | None = None,
    ) -> None:
        self._registry = registry
        self._config_dir = config_dir
        self._environment = environment
        self._region = region
        self._policy: ValidationPolicy | None = None

    @property
    def policy(self) -> ValidationPolicy:
        """検証ポリシー。ファイルが無ければデフォルト値を使う。"""
        if self._policy is not None:
            return self._policy

        policy_file = self._config_dir / POLICY_FILE
        if not policy_file.exists():
            self._policy = ValidationPolicy()
            return self._policy

        try:
            with open(policy_file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            self._policy = ValidationPolicy.model_validate(data)
        except (yaml.YAMLError, ValidationError) as e:
            raise PolicyLoadError(str(policy_file), str(e)) from e

        logger.debug("Loaded validation policy from %s", policy_file)
        return self._policy

    async def validate_resource(
        self,
        resource_type: str,
        resource: dict[str, Any],
        context: ValidationContext | None = None,
    ) -> ResourceReport:
        """単一リソースを検証する。

        Args:
            resource_type: リソース種別 (例: "Microsoft.Storage/storageAccounts")。
            resource: リソース定義。
            context: 検証コンテキスト。Noneの場合は既定の環境・リージョンのみを持つ。

        Returns:
            抑制ポリシー適用後のリソース単位の結果。
        """
        if context is None:
            context = ValidationContext(environment=self._environment, region=self._region)
        return self._run(resource_type, resource, context)

    async def validate_template(
        self,
        template: dict[str, Any],
        environment: str | None = None,
        region: str | None = None,
    ) -> ValidationReport:
        """ARMテンプレートの全リソースを検証する。

        ``resources`` 配下のリソース(入れ子の子リソースを含む)を順に検証する。
        仮想ネットワークにインラインで定義されたサブネットはサブネットとしても
        検証し、VNetのアドレス空間と兄弟サブネットをコンテキストに渡す。

        Raises:
            InvalidTemplateError: ``resources`` が無い、または形式が不正なリソース・サブネットがある場合。
        """
        resources = _flatten_resources(template)
        base_context = ValidationContext(
            environment=environment or self._environment,
            region=region or self._region,
            resources={_resource_key(t, r): r for t, r in resources},
            has_private_endpoints=any(t == PRIVATE_ENDPOINTS for t, _ in resources),
        )
        endpoint_targets = _private_endpoint_targets(resources, base_context)

        reports: list[ResourceReport] = []
        for resource_type, resource in resources:
            context = _context_for(resource_type, resource, base_context, endpoint_targets)
            reports.append(self._run(resource_type, resource, context))

            if resource_type == VIRTUAL_NETWORKS:
                reports.extend(self._validate_inline_subnets(resource, base_context))

        report = ValidationReport.from_resources(reports, fail_on_warnings=self.policy.fail_on_warnings)
        logger.info(
            "Validated %d resources: %d errors, %d warnings, %d suppressed",
            len(reports),
            report.error_count,
            report.warning_count,
            report.suppressed_count,
        )
        return report

    async def validate_template_file(
        self,
        path: str,
        environment: str | None = None,
        region: str | None = None,
    ) -> ValidationReport:
        """JSONまたはYAMLのテンプレートファイルを読み込んで検証する。

        Raises:
            TemplateNotFoundError: ファイルが存在しない場合。
            InvalidTemplateError: ファイルを解釈できない場合。
        """
        template_path = Path(path)
        if not template_path.is_file():
            raise TemplateNotFoundError(path)

        with open(template_path, encoding="utf-8") as f:
            try:
                if template_path.suffix.lower() in _YAML_SUFFIXES:
                    template = yaml.safe_load(f)
                else:
                    template = json.load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as e:
                raise InvalidTemplateError(f"Failed to parse template: {e}", source=path) from e

        if not isinstance(template, dict):
            raise InvalidTemplateError("Template must be an object", source=path)

        return await self.validate_template(template, environment=environment, region=region)

    async def list_rules(self, resource_type: str | None = None) -> list[RuleSummary]:
        """登録済みルールの一覧を返す。

        resource_typeを指定した場合は、その種別に適用される順序で返す。
        """
        if resource_type is not None:
            rules = self._registry.get_rules(resource_type)
        else:
            rules = []
            seen: set[int] = set()
            for registered_type in ["", *self._registry.registered_types]:
                for rule in self._registry.get_rules(registered_type):
                    if id(rule) not in seen:
                        seen.add(id(rule))
                        rules.append(rule)

        return [_summarize(rule) for rule in rules]

    def _run(self, resource_type: str, resource: dict[str, Any], context: ValidationContext) -> ResourceReport:
        results = self._registry.validate(resource_type, resource, context)

        suppressed = set(self.policy.suppressed_rules)
        kept = [r for r in results if r.rule_name not in suppressed]

        return ResourceReport.from_results(
            resource_type,
            resource.get("name"),
            kept,
            suppressed_count=len(results) - len(kept),
        )

    def _validate_inline_subnets(
        self, vnet: dict[str, Any], base_context: ValidationContext
    ) -> list[ResourceReport]:
        subnets = get_in(vnet, "properties", "subnets", default=[])
        vnet_address_space = get_in(vnet, "properties", "addressSpace", "addressPrefixes", 0)

        reports: list[ResourceReport] = []
        for subnet in subnets:
            siblings = [s for s in subnets if s is not subnet]
            context = base_context.model_copy(
                update={"vnet_address_space": vnet_address_space, "existing_subnets": siblings}
            )
            reports.append(self._run(SUBNETS, subnet, context))
        return reports


def _flatten_resources(template: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    """テンプレートのリソースを (種別, 定義) のリストに展開する。

    子リソースの ``type`` が名前空間を含まない場合は親の種別を前置し、
    名前も ``parent/child`` 形式にする。不正な形のリソースは
    ``resources[0].resources[1]`` のような位置付きで報告する。
    """
    resources = template.get("resources")
    if not isinstance(resources, list):
        raise InvalidTemplateError("Template must contain a 'resources' array")

    flattened: list[tuple[str, dict[str, Any]]] = []

    def visit(items: list[Any], parent_type: str | None, parent_name: str | None, prefix: str) -> None:
        for index, item in enumerate(items):
            path = f"{prefix}[{index}]"
            if not isinstance(item, dict):
                raise InvalidTemplateError(f"Resource at {path} must be an object")
            if not isinstance(item.get("type"), str) or not item["type"]:
                raise InvalidTemplateError(f"Resource at {path} has no type")

            resource_type = item["type"]
            resource = item
            if parent_type is not None and "." not in resource_type.split("/", 1)[0]:
                resource_type = f"{parent_type}/{resource_type}"
                resource = {**item, "type": resource_type}
                if parent_name and isinstance(item.get("name"), str) and "/" not in item["name"]:
                    resource["name"] = f"{parent_name}/{item['name']}"

            if resource_type == VIRTUAL_NETWORKS:
                _check_inline_subnets(resource, path)

            flattened.append((resource_type, resource))

            children = item.get("resources")
            if children is not None and not isinstance(children, list):
                raise InvalidTemplateError(f"Resource at {path} has a non-array 'resources'")
            if children:
                name = resource.get("name")
                visit(children, resource_type, name if isinstance(name, str) else None, f"{path}.resources")

    visit(resources, None, None, "resources")
    return flattened


def _check_inline_subnets(vnet: dict[str, Any], path: str) -> None:
    subnets = get_in(vnet, "properties", "subnets")
    if subnets is None:
        return
    if not isinstance(subnets, list):
        raise InvalidTemplateError(f"Resource at {path} has a non-array 'properties.subnets'")
    for index, subnet in enumerate(subnets):
        if not isinstance(subnet, dict):
            raise InvalidTemplateError(f"Subnet at {path}.properties.subnets[{index}] must be an object")


def _resource_key(resource_type: str, resource: dict[str, Any]) -> str:
    if resource.get("id"):
        return str(resource["id"])
    return build_resource_id(resource_type, str(resource.get("name") or ""))


def _private_endpoint_targets(
    resources: list[tuple[str, dict[str, Any]]], base_context: ValidationContext
) -> set[str]:
    """テンプレート内のプライベートエンドポイントが接続するリソースのキー集合。"""
    targets: set[str] = set()
    for resource_type, resource in resources:
        if resource_type != PRIVATE_ENDPOINTS:
            continue
        for connection in get_in(resource, "properties", "privateLinkServiceConnections", default=[]):
            target = base_context.get_resource(get_in(connection, "properties", "privateLinkServiceId"))
            if target is not None:
                targets.add(_resource_key(str(target.get("type") or ""), target))
    return targets


def _type_from_resource_id(resource_id: str) -> str | None:
    """ARMリソースIDから最上位のリソース種別を取り出す。"""
    _, sep, tail = resource_id.partition("/providers/")
    if not sep:
        return None
    parts = tail.split("/")
    if len(parts) < 2:
        return None
    return f"{parts[0]}/{parts[1]}"


def _context_for(
    resource_type: str,
    resource: dict[str, Any],
    base_context: ValidationContext,
    endpoint_targets: set[str],
) -> ValidationContext:
    if resource_type == PRIVATE_ENDPOINTS:
        target_id = get_in(
            resource, "properties", "privateLinkServiceConnections", 0, "properties", "privateLinkServiceId"
        )
        if not isinstance(target_id, str) or not target_id:
            return base_context

        target = base_context.get_resource(target_id)
        target_type = target.get("type") if target else _type_from_resource_id(target_id)
        return base_context.model_copy(update={"target_resource_type": target_type})

    if resource_type == SUBNETS:
        # 単独定義のサブネットは "vnet/subnet" の名前から親VNetを引く
        parent_name, sep, _ = str(resource.get("name") or "").partition("/")
        vnet = base_context.get_resource(build_resource_id(VIRTUAL_NETWORKS, parent_name)) if sep else None
        if vnet is None:
            return base_context
        return base_context.model_copy(
            update={
                "vnet_address_space": get_in(vnet, "properties", "addressSpace", "addressPrefixes", 0),
                "existing_subnets": get_in(vnet, "properties", "subnets", default=[]),
            }
        )

    has_endpoint = _resource_key(resource_type, resource) in endpoint_targets
    return base_context.model_copy(update={"has_private_endpoints": has_endpoint})


def _summarize(rule: ValidationRule) -> RuleSummary:
    return RuleSummary(
        name=rule.name,
        description=rule.description,
        severity=rule.severity,
        resource_types=list(rule.resource_types),
    )
