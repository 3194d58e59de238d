"""ルールとポリシーのMCPリソース定義。"""

import yaml
from fastmcp import FastMCP

from armcheck.services.validation import ValidationService


def register_rule_resources(mcp: FastMCP, validation_service: ValidationService) -> None:
    """ルール関連のMCPリソースを登録する。"""

    @mcp.resource("armcheck://rules")
    async def rules() -> str:
        """登録済みの検証ルール一覧を取得する。

        各ルールの名前、説明、重大度、適用されるリソース種別を返します。
        リソース種別が空のルールは全リソースに適用されます。
        """
        summaries = await validation_service.list_rules()
        data = {"rules": [s.model_dump(mode="json") for s in summaries]}
        return yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False)

    @mcp.resource("armcheck://policy")
    async def policy() -> str:
        """現在の検証ポリシー（抑制ルール、警告時の扱い）を取得する。"""
        data = validation_service.policy.model_dump(mode="json")
        return yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False)
