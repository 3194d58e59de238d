"""検証のMCPプロンプト定義。"""

from fastmcp import FastMCP


def register_validation_prompts(mcp: FastMCP) -> None:
    """検証関連のMCPプロンプトを登録する。"""

    @mcp.prompt()
    async def review_template(path: str, environment: str = "production") -> str:
        """ARMテンプレートをレビューし、指摘を修正するためのプロンプト。

        テンプレートを検証し、エラー→警告の順に修正して再検証する
        フローをガイドします。

        Args:
            path: テンプレートファイルのパス。
            environment: デプロイ先環境。
        """
        return (
            f"ARMテンプレート `{path}` を `{environment}` 環境向けにレビューします。\n\n"
            "## 手順\n\n"
            f'1. `validate_template_file` ツールに `path="{path}"`, `environment="{environment}"` を渡して'
            "検証してください。\n"
            "2. `passed` が false の場合、`severity` が `error` かつ `valid` が false の結果から修正してください。\n"
            "3. 各結果の `suggestion` と `path` を参考にテンプレートを修正してください。\n"
            "4. 修正後、再度 `validate_template_file` を実行してください。\n"
            "5. エラーが無くなったら、`warning` の結果を確認し、対応要否を利用者に提示してください。\n\n"
            "## 注意事項\n\n"
            "- `advisory` が true の結果はリマインダーです。修正は不要ですが利用者に伝えてください。\n"
            "- `Validation rule threw error` または `Validation rule condition threw error` で始まる"
            "メッセージはルール自体の不具合です。"
            "テンプレートの問題として扱わないでください。\n"
            "- 適用されるルールの詳細は `armcheck://rules` リソースで確認できます。\n"
        )
