"""組み込みルールカタログの集約と一括登録。"""

import logging

from armcheck.validators.cognitiveservices import cognitive_services_validators
from armcheck.validators.database import database_validators
from armcheck.validators.general import general_validators
from armcheck.validators.keyvault import keyvault_validators
from armcheck.validators.network import network_validators
from armcheck.validators.registry import ValidatorRegistry
from armcheck.validators.rule import ValidationRule
from armcheck.validators.storage import storage_validators
from armcheck.validators.web import web_validators

logger = logging.getLogger(__name__)

ALL_VALIDATORS: list[ValidationRule] = [
    *general_validators,
    *network_validators,
    *storage_validators,
    *keyvault_validators,
    *database_validators,
    *cognitive_services_validators,
    *web_validators,
]


def register_all_validators(registry: ValidatorRegistry) -> ValidatorRegistry:
    """全カタログのルールをレジストリに登録する。

    ルールは宣言された各リソース種別に登録され、種別を持たないルールは
    グローバルルールとして登録される。同じレジストリに二度呼ぶと重複登録に
    なるため、再登録する場合は先に ``clear`` すること。
    """
    for validation_rule in ALL_VALIDATORS:
        if not validation_rule.resource_types:
            registry.register_global(validation_rule)
            continue
        for resource_type in validation_rule.resource_types:
            registry.register(resource_type, validation_rule)

    logger.info(
        "Registered %d rules for %d resource types",
        registry.get_rule_count(),
        len(registry.registered_types),
    )
    return registry
