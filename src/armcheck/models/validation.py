"""バリデーション結果のデータモデル。"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class Severity(StrEnum):
    """検証結果の重大度。ERRORのみがデプロイをブロックする。"""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationResult(BaseModel):
    """単一ルールによる個別検証結果。構築後は変更不可。"""

    model_config = ConfigDict(frozen=True)

    valid: bool
    severity: Severity
    rule_name: str
    message: str | None = None
    suggestion: str | None = None
    details: str | None = None
    path: str | None = None
    # 常に発火するリマインダー（グローバル一意性の注意など）であることを示す
    advisory: bool = False


class ValidationResultBuilder:
    """ValidationResultを組み立てるビルダー。

    初期状態は ``valid=True`` で、重大度は生成時に固定される。
    ``invalid()`` は重大度を変えずに ``valid`` だけを False にするため、
    ``WARNING`` かつ ``valid=False``（ブロックしない失敗）を表現できる。
    """

    def __init__(self, rule_name: str, severity: Severity) -> None:
        self._fields: dict[str, object] = {
            "valid": True,
            "severity": severity,
            "rule_name": rule_name,
        }

    @classmethod
    def error(cls, rule_name: str) -> "ValidationResultBuilder":
        """ERROR重大度のビルダー。生成時点で invalid になっている。"""
        return cls(rule_name, Severity.ERROR).invalid()

    @classmethod
    def warning(cls, rule_name: str) -> "ValidationResultBuilder":
        """WARNING重大度のビルダー。``invalid()`` を呼ぶまで valid のまま。"""
        return cls(rule_name, Severity.WARNING)

    @classmethod
    def info(cls, rule_name: str) -> "ValidationResultBuilder":
        return cls(rule_name, Severity.INFO)

    @classmethod
    def success(cls, rule_name: str) -> "ValidationResultBuilder":
        return cls(rule_name, Severity.INFO)

    def invalid(self) -> "ValidationResultBuilder":
        self._fields["valid"] = False
        return self

    def with_message(self, message: str) -> "ValidationResultBuilder":
        self._fields["message"] = message
        return self

    def with_suggestion(self, suggestion: str) -> "ValidationResultBuilder":
        self._fields["suggestion"] = suggestion
        return self

    def with_details(self, details: str) -> "ValidationResultBuilder":
        self._fields["details"] = details
        return self

    def with_path(self, path: str) -> "ValidationResultBuilder":
        self._fields["path"] = path
        return self

    def as_advisory(self) -> "ValidationResultBuilder":
        self._fields["advisory"] = True
        return self

    def build(self) -> ValidationResult:
        return ValidationResult.model_validate(self._fields)
