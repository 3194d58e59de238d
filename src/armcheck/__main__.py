"""armcheck MCPサーバーのコマンドラインエントリポイント。"""

if __name__ == "__main__":
    import logging

    import uvicorn

    from armcheck.config import ServerConfig
    from armcheck.server import create_app

    config = ServerConfig()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info(
        "Starting armcheck on %s:%d (environment=%s, region=%s)",
        config.host,
        config.port,
        config.environment,
        config.region,
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port)
