"""検証パスの集計結果とポリシーのデータモデル。"""

from collections.abc import Sequence

from pydantic import BaseModel, Field

from armcheck.models.validation import Severity, ValidationResult


class ValidationPolicy(BaseModel):
    """config/validation-policy.yaml の内容。"""

    suppressed_rules: list[str] = Field(default_factory=list)
    fail_on_warnings: bool = False


class ResourceReport(BaseModel):
    """1リソース分の検証結果。"""

    resource_type: str
    name: str | None = None
    results: list[ValidationResult] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    suppressed_count: int = 0

    @classmethod
    def from_results(
        cls,
        resource_type: str,
        name: str | None,
        results: Sequence[ValidationResult],
        suppressed_count: int = 0,
    ) -> "ResourceReport":
        return cls(
            resource_type=resource_type,
            name=name,
            results=list(results),
            error_count=sum(1 for r in results if r.severity == Severity.ERROR and not r.valid),
            warning_count=sum(1 for r in results if r.severity == Severity.WARNING and not r.valid),
            info_count=sum(1 for r in results if r.severity == Severity.INFO),
            suppressed_count=suppressed_count,
        )


class ValidationReport(BaseModel):
    """テンプレート全体の検証結果。"""

    resources: list[ResourceReport] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    suppressed_count: int = 0
    passed: bool = True

    @classmethod
    def from_resources(cls, resources: Sequence[ResourceReport], fail_on_warnings: bool = False) -> "ValidationReport":
        """リソース単位の結果を合算する。

        エラーが一件でもあれば不合格。``fail_on_warnings`` が有効な場合は
        無効扱いの警告も不合格とする。助言(advisory)の警告は数えない。
        """
        error_count = sum(r.error_count for r in resources)
        warning_count = sum(r.warning_count for r in resources)
        return cls(
            resources=list(resources),
            error_count=error_count,
            warning_count=warning_count,
            info_count=sum(r.info_count for r in resources),
            suppressed_count=sum(r.suppressed_count for r in resources),
            passed=error_count == 0 and not (fail_on_warnings and warning_count > 0),
        )


class RuleSummary(BaseModel):
    """登録済みルールの概要。"""

    name: str
    description: str
    severity: Severity
    resource_types: list[str] = Field(default_factory=list)
