"""テスト共通フィクスチャ。"""

from pathlib import Path

import pytest

from armcheck.config import ServerConfig
from armcheck.services.validation import ValidationService
from armcheck.validators.catalog import register_all_validators
from armcheck.validators.registry import ValidatorRegistry


@pytest.fixture
def config_dir() -> Path:
    """設定ファイルディレクトリ。"""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def registry() -> ValidatorRegistry:
    """空のValidatorRegistry。"""
    return ValidatorRegistry()


@pytest.fixture
def loaded_registry() -> ValidatorRegistry:
    """組み込みルールを全て登録したValidatorRegistry。"""
    return register_all_validators(ValidatorRegistry())


@pytest.fixture
def validation_service(loaded_registry: ValidatorRegistry, config_dir: Path) -> ValidationService:
    """テスト用ValidationService。"""
    return ValidationService(registry=loaded_registry, config_dir=config_dir)


@pytest.fixture
def server_config(config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(config_dir=config_dir, url_token="")
