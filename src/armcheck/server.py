"""FastMCPベースのMCPサーバーエントリポイント。"""

from fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from armcheck.config import ServerConfig
from armcheck.middleware import TokenAuthMiddleware
from armcheck.prompts.validation import register_validation_prompts
from armcheck.resources.rules import register_rule_resources
from armcheck.services.validation import ValidationService
from armcheck.tools.validation import register_validation_tools
from armcheck.validators.catalog import register_all_validators
from armcheck.validators.registry import ValidatorRegistry


def create_server(config: ServerConfig | None = None, registry: ValidatorRegistry | None = None) -> FastMCP:
    """armcheck MCPサーバーを作成し、ツール・リソース・プロンプトを登録する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。
        registry: ルールレジストリ。Noneの場合は組み込みルールを登録した新しいレジストリを使用。

    Returns:
        設定済みのFastMCPインスタンス。
    """
    if config is None:
        config = ServerConfig()

    if registry is None:
        registry = register_all_validators(ValidatorRegistry())

    mcp = FastMCP("armcheck")

    # サービス層
    validation_service = ValidationService(
        registry=registry,
        config_dir=config.config_dir,
        environment=config.environment,
        region=config.region,
    )

    # MCPインターフェース登録
    register_validation_tools(mcp, validation_service)
    register_rule_resources(mcp, validation_service)
    register_validation_prompts(mcp)

    # ヘルスチェックエンドポイント
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "rules": registry.get_rule_count()})

    return mcp


def create_app(config: ServerConfig | None = None, registry: ValidatorRegistry | None = None) -> Starlette:
    """streamable-httpで公開するASGIアプリを作成する。

    url_tokenが設定されていれば /health 以外のパスにトークン認証をかける。
    """
    if config is None:
        config = ServerConfig()

    mcp = create_server(config, registry)
    return mcp.http_app(
        transport="streamable-http",
        middleware=[Middleware(TokenAuthMiddleware, url_token=config.url_token)],
    )
