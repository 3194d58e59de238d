"""リソース種別ごとにルールを保持し、検証パスを実行するレジストリ。"""

import logging
import threading
from collections.abc import Iterable
from typing import Any, ClassVar

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult, ValidationResultBuilder
from armcheck.validators.rule import ValidationRule

logger = logging.getLogger(__name__)


class ValidatorRegistry:
    """リソース種別文字列 → ルールリストの対応と、グローバルルールを管理する。

    ``get_rules`` は常にグローバルルールを先に、その後に種別固有ルールを
    それぞれの登録順で返す。この順序がそのまま評価順・結果の並び順になる。

    通常は起動時に一つ構築してサービスへ注入する。登録と ``clear`` はロックで
    保護されており、検証はロック下で取ったスナップショットに対して行う。
    """

    _instance: ClassVar["ValidatorRegistry | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self._rules: dict[str, list[ValidationRule]] = {}
        self._global_rules: list[ValidationRule] = []
        self._lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> "ValidatorRegistry":
        """プロセス既定のレジストリを遅延生成して返す。"""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def register(self, resource_type: str, rule: ValidationRule) -> None:
        with self._lock:
            self._rules.setdefault(resource_type, []).append(rule)

    def register_global(self, rule: ValidationRule) -> None:
        with self._lock:
            self._global_rules.append(rule)

    def register_many(self, resource_type: str, rules: Iterable[ValidationRule]) -> None:
        for rule in rules:
            self.register(resource_type, rule)

    def get_rules(self, resource_type: str) -> list[ValidationRule]:
        """グローバルルール→種別固有ルールの順で適用対象ルールを返す。"""
        with self._lock:
            return [*self._global_rules, *self._rules.get(resource_type, [])]

    @property
    def registered_types(self) -> list[str]:
        with self._lock:
            return list(self._rules)

    def validate(
        self,
        resource_type: str,
        resource: dict[str, Any],
        context: ValidationContext | None = None,
    ) -> list[ValidationResult]:
        """適用対象の全ルールでリソースを検証する。

        ``condition`` がFalseのルールは結果を出さずにスキップする。ルール実装が
        例外を送出しても伝播させず、そのルール名でERROR結果を合成して残りの
        ルールの評価を続ける。結果は評価順のまま平坦化して返す。
        """
        results: list[ValidationResult] = []

        for rule in self.get_rules(resource_type):
            condition = getattr(rule, "condition", None)
            if condition is not None:
                try:
                    applicable = condition(resource, context)
                except Exception as e:
                    logger.error("Condition of rule %s failed for %s", rule.name, resource_type, exc_info=True)
                    results.append(_fault_result(rule.name, f"Validation rule condition threw error: {e}"))
                    continue
                if not applicable:
                    continue

            try:
                output = rule.validate(resource, context)
                batch = [output] if isinstance(output, ValidationResult) else list(output)
            except Exception as e:
                logger.error("Rule %s failed for %s", rule.name, resource_type, exc_info=True)
                results.append(_fault_result(rule.name, f"Validation rule threw error: {e}"))
                continue

            results.extend(batch)

        logger.debug("Evaluated %s: %d results", resource_type, len(results))
        return results

    def get_rule_count(self) -> int:
        """登録数の合計。複数種別に登録されたルールは登録ごとに数える。"""
        with self._lock:
            return len(self._global_rules) + sum(len(rules) for rules in self._rules.values())

    def clear(self) -> None:
        with self._lock:
            self._rules.clear()
            self._global_rules.clear()


def _fault_result(rule_name: str, message: str) -> ValidationResult:
    return ValidationResultBuilder.error(rule_name).with_message(message).build()


def has_errors(results: Iterable[ValidationResult]) -> bool:
    return any(r.severity == Severity.ERROR and not r.valid for r in results)


def has_warnings(results: Iterable[ValidationResult]) -> bool:
    return any(r.severity == Severity.WARNING and not r.valid for r in results)


def get_errors(results: Iterable[ValidationResult]) -> list[ValidationResult]:
    return [r for r in results if r.severity == Severity.ERROR and not r.valid]


def get_warnings(results: Iterable[ValidationResult]) -> list[ValidationResult]:
    return [r for r in results if r.severity == Severity.WARNING and not r.valid]


def get_info(results: Iterable[ValidationResult]) -> list[ValidationResult]:
    """INFO結果をvalidに関わらず返す。INFOの多くはvalid=Trueの助言のため。"""
    return [r for r in results if r.severity == Severity.INFO]
