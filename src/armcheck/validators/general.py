"""リソース種別を問わず適用されるグローバルルール。"""

from typing import Any

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResultBuilder
from armcheck.validators.rule import FunctionRule, RuleOutput, rule

# リージョンに属さないリソースのlocation値
NON_REGIONAL_LOCATIONS = ("global",)


def _normalize_location(location: str) -> str:
    return location.replace(" ", "").lower()


def _has_regional_location(resource: dict[str, Any], context: ValidationContext | None) -> bool:
    location = resource.get("location")
    return (
        context is not None
        and bool(context.region)
        and isinstance(location, str)
        and bool(location)
        and _normalize_location(location) not in NON_REGIONAL_LOCATIONS
    )


@rule(
    "resource-location-consistency",
    "Warns when a resource is deployed outside the target region",
    Severity.WARNING,
    when=_has_regional_location,
)
def resource_location_consistency(resource: dict[str, Any], context: ValidationContext | None) -> RuleOutput:
    location = resource["location"]
    region = context.region if context else None

    if region and _normalize_location(location) != _normalize_location(region):
        return (
            ValidationResultBuilder.warning("resource-location-consistency")
            .invalid()
            .with_message(f'Resource location "{location}" differs from target region "{region}"')
            .with_suggestion(f'Deploy the resource to "{region}" unless cross-region placement is intended')
            .with_details("Cross-region traffic adds latency and egress cost")
            .with_path("location")
            .build()
        )

    return ValidationResultBuilder.success("resource-location-consistency").build()


general_validators: list[FunctionRule] = [
    resource_location_consistency,
]
