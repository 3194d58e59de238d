"""具体ルールから組み合わせて使う共通チェック関数群。

各チェックは条件を満たせば ``None`` を、満たさなければ組み立て済みの
ERROR結果を返す。ルール側は複数のチェック結果を ``collect_results`` で
まとめ、``None`` を取り除いたリストをそのまま返す。
"""

import re
from collections.abc import Sequence
from typing import Any, Literal

from armcheck.models.validation import ValidationResult, ValidationResultBuilder

CharacterKind = Literal["letter", "alphanumeric", "lowercase"]

_STARTS_WITH: dict[str, re.Pattern[str]] = {
    "letter": re.compile(r"^[a-zA-Z]"),
    "alphanumeric": re.compile(r"^[a-zA-Z0-9]"),
    "lowercase": re.compile(r"^[a-z]"),
}

_ENDS_WITH: dict[str, re.Pattern[str]] = {
    "letter": re.compile(r"[a-zA-Z]$"),
    "alphanumeric": re.compile(r"[a-zA-Z0-9]$"),
    "lowercase": re.compile(r"[a-z]$"),
}

_KIND_LABELS: dict[str, str] = {
    "letter": "a letter",
    "alphanumeric": "a letter or number",
    "lowercase": "a lowercase letter",
}


def validate_length(value: str, min_length: int, max_length: int, field: str, rule: str) -> ValidationResult | None:
    if len(value) < min_length or len(value) > max_length:
        return (
            ValidationResultBuilder.error(rule)
            .with_message(f"{field} must be between {min_length} and {max_length} characters")
            .with_details(f"Current length: {len(value)}")
            .with_suggestion(f"Adjust {field} to be {min_length}-{max_length} characters long")
            .build()
        )
    return None


def validate_pattern(
    value: str,
    pattern: re.Pattern[str] | str,
    field: str,
    rule: str,
    message: str | None = None,
) -> ValidationResult | None:
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    if regex.search(value) is None:
        return (
            ValidationResultBuilder.error(rule)
            .with_message(message or f"{field} has invalid format")
            .with_details(f"Value '{value}' does not match pattern {regex.pattern}")
            .build()
        )
    return None


def validate_required(value: Any, field: str, rule: str) -> ValidationResult | None:
    if value is None or value == "":
        return (
            ValidationResultBuilder.error(rule)
            .with_message(f"{field} is required")
            .with_suggestion(f"Provide a value for {field}")
            .build()
        )
    return None


def validate_range(value: float, min_value: float, max_value: float, field: str, rule: str) -> ValidationResult | None:
    if value is None or value < min_value or value > max_value:
        return (
            ValidationResultBuilder.error(rule)
            .with_message(f"{field} must be between {min_value} and {max_value}")
            .with_details(f"Current value: {value}")
            .build()
        )
    return None


def validate_enum(value: Any, allowed: Sequence[Any], field: str, rule: str) -> ValidationResult | None:
    if value not in allowed:
        return (
            ValidationResultBuilder.error(rule)
            .with_message(f"Invalid {field}: {value}")
            .with_suggestion(f"Allowed values: {', '.join(str(a) for a in allowed)}")
            .build()
        )
    return None


def validate_azure_resource_name(
    name: str,
    min_length: int,
    max_length: int,
    pattern: re.Pattern[str] | str,
    rule: str,
    extra_message: str | None = None,
) -> ValidationResult | None:
    """長さ→パターンの順でチェックし、最初の失敗で打ち切る。"""
    length_result = validate_length(name, min_length, max_length, "Resource name", rule)
    if length_result is not None:
        return length_result
    return validate_pattern(name, pattern, "Resource name", rule, extra_message)


def warn_globally_unique(rule: str, resource_type_label: str) -> ValidationResult:
    """グローバル一意性のリマインダー。常に発火し、ブロックしない。"""
    return (
        ValidationResultBuilder.warning(rule)
        .as_advisory()
        .with_message(f"{resource_type_label} name must be globally unique across Azure")
        .with_suggestion("Consider adding a unique suffix to avoid naming conflicts")
        .build()
    )


def validate_lowercase(value: str, field: str, rule: str) -> ValidationResult | None:
    if value != value.lower():
        return (
            ValidationResultBuilder.error(rule)
            .with_message(f"{field} must be lowercase")
            .with_suggestion(f"Use '{value.lower()}' instead")
            .build()
        )
    return None


def validate_no_consecutive(value: str, char: str, field: str, rule: str) -> ValidationResult | None:
    if char * 2 in value:
        return (
            ValidationResultBuilder.error(rule)
            .with_message(f"{field} cannot contain consecutive '{char}' characters")
            .with_details(f"Value: {value}")
            .build()
        )
    return None


def validate_starts_with(value: str, kind: CharacterKind, field: str, rule: str) -> ValidationResult | None:
    if _STARTS_WITH[kind].search(value) is None:
        return (
            ValidationResultBuilder.error(rule)
            .with_message(f"{field} must start with {_KIND_LABELS[kind]}")
            .with_details(f"Value: {value}")
            .build()
        )
    return None


def validate_ends_with(value: str, kind: CharacterKind, field: str, rule: str) -> ValidationResult | None:
    if _ENDS_WITH[kind].search(value) is None:
        return (
            ValidationResultBuilder.error(rule)
            .with_message(f"{field} must end with {_KIND_LABELS[kind]}")
            .with_details(f"Value: {value}")
            .build()
        )
    return None


def collect_results(*results: ValidationResult | None) -> list[ValidationResult]:
    return [r for r in results if r is not None]


def get_in(obj: Any, *keys: str | int, default: Any = None) -> Any:
    """辞書・リストを辿って値を取得する。途中で欠けていればdefaultを返す。"""
    current = obj
    for key in keys:
        if isinstance(key, int):
            if not isinstance(current, list | tuple) or not -len(current) <= key < len(current):
                return default
            current = current[key]
        else:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        if current is None:
            return default
    return current


def find_app_setting(resource: dict[str, Any], setting_name: str) -> dict[str, Any] | None:
    """siteConfig.appSettingsから名前が一致する設定を探す。"""
    for setting in get_in(resource, "properties", "siteConfig", "appSettings", default=[]):
        if isinstance(setting, dict) and setting.get("name") == setting_name:
            return setting
    return None
