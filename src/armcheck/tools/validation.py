"""検証のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from armcheck.models.context import ValidationContext
from armcheck.models.errors import ArmcheckError
from armcheck.services.validation import ValidationService


def register_validation_tools(mcp: FastMCP, validation_service: ValidationService) -> None:
    """検証関連のMCPツールを登録する。"""

    @mcp.tool()
    async def validate_resource(
        resource_type: str,
        resource: dict[str, Any],
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """単一のAzureリソース定義を検証する。

        リソース種別に登録されたルールとグローバルルールを順に適用し、
        抑制ポリシー適用後の結果を返します。

        Args:
            resource_type: リソース種別（例: "Microsoft.KeyVault/vaults"）。
            resource: ARMテンプレート形式のリソース定義。
            context: 検証コンテキスト（任意）。environment, region, resources,
                vnet_address_space, existing_subnets, has_private_endpoints などを指定できる。
        """
        try:
            validation_context = ValidationContext.model_validate(context) if context is not None else None
            report = await validation_service.validate_resource(resource_type, resource, validation_context)
            return report.model_dump(mode="json")
        except (ArmcheckError, ValueError) as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def validate_template(
        template: dict[str, Any],
        environment: str | None = None,
        region: str | None = None,
    ) -> dict[str, Any]:
        """ARMテンプレート全体を検証する。

        テンプレート内の全リソース（入れ子の子リソース、VNetのインラインサブネットを含む）を
        検証し、エラー・警告の件数と合否を返します。

        Args:
            template: ARMテンプレート（"resources" 配列を含むオブジェクト）。
            environment: デプロイ先環境（例: "production"）。省略時はサーバー設定値。
            region: デプロイ先リージョン（例: "japaneast"）。省略時はサーバー設定値。
        """
        try:
            report = await validation_service.validate_template(template, environment=environment, region=region)
            return report.model_dump(mode="json")
        except (ArmcheckError, ValueError) as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def validate_template_file(
        path: str,
        environment: str | None = None,
        region: str | None = None,
    ) -> dict[str, Any]:
        """ファイルに保存されたARMテンプレート（JSON/YAML）を検証する。

        Args:
            path: テンプレートファイルのパス。拡張子が .yaml/.yml の場合はYAMLとして読み込む。
            environment: デプロイ先環境。省略時はサーバー設定値。
            region: デプロイ先リージョン。省略時はサーバー設定値。
        """
        try:
            report = await validation_service.validate_template_file(path, environment=environment, region=region)
            return report.model_dump(mode="json")
        except (ArmcheckError, ValueError) as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def list_rules(resource_type: str | None = None) -> dict[str, Any]:
        """登録済みの検証ルール一覧を取得する。

        Args:
            resource_type: 指定した場合、その種別に適用されるルールのみを評価順で返す。
        """
        rules = await validation_service.list_rules(resource_type)
        return {"rules": [r.model_dump(mode="json") for r in rules], "count": len(rules)}
