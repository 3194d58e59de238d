"""バリデーションルールの契約と基底クラス。"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, runtime_checkable

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult

Resource = dict[str, Any]
RuleOutput = ValidationResult | Sequence[ValidationResult]


@runtime_checkable
class ValidationRule(Protocol):
    """レジストリに登録できるルールが満たすべき能力セット。

    ``condition`` は任意で、定義されていればレジストリが事前に評価する。
    ``resource_types`` が空のルールは全リソース種別に適用されるグローバルルール。
    """

    name: str
    description: str
    severity: Severity
    resource_types: tuple[str, ...]

    def validate(self, resource: Resource, context: ValidationContext | None = None) -> RuleOutput: ...


class BaseValidationRule(ABC):
    """クラス属性でメタデータを宣言するルールの基底クラス。

    ルールはプロセス開始時に一度だけインスタンス化されて使い回されるため、
    呼び出しごとの可変状態を持たせてはならない。
    """

    name: ClassVar[str]
    description: ClassVar[str]
    severity: ClassVar[Severity]
    resource_types: ClassVar[tuple[str, ...]] = ()

    def condition(self, resource: Resource, context: ValidationContext | None = None) -> bool:
        """このルールを適用するかどうかの事前チェック。"""
        return True

    @abstractmethod
    def validate(self, resource: Resource, context: ValidationContext | None = None) -> RuleOutput:
        """リソースを検証する。resourceを変更してはならない。"""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


@dataclass(frozen=True)
class FunctionRule:
    """関数から組み立てるルール。"""

    name: str
    description: str
    severity: Severity
    check: Callable[[Resource, ValidationContext | None], RuleOutput]
    resource_types: tuple[str, ...] = ()
    when: Callable[[Resource, ValidationContext | None], bool] | None = None

    def condition(self, resource: Resource, context: ValidationContext | None = None) -> bool:
        if self.when is None:
            return True
        return self.when(resource, context)

    def validate(self, resource: Resource, context: ValidationContext | None = None) -> RuleOutput:
        return self.check(resource, context)


def rule(
    name: str,
    description: str,
    severity: Severity = Severity.ERROR,
    resource_types: Sequence[str] = (),
    when: Callable[[Resource, ValidationContext | None], bool] | None = None,
) -> Callable[[Callable[[Resource, ValidationContext | None], RuleOutput]], FunctionRule]:
    """関数をFunctionRuleに変換するデコレータ。

    Example:
        @rule("tags-required", "Validates resource has tags", Severity.WARNING)
        def tags_required(resource, context):
            ...
    """

    def decorator(func: Callable[[Resource, ValidationContext | None], RuleOutput]) -> FunctionRule:
        return FunctionRule(
            name=name,
            description=description,
            severity=severity,
            check=func,
            resource_types=tuple(resource_types),
            when=when,
        )

    return decorator
