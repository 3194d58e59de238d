"""ネットワーク系リソース（VNet, Subnet, NSG, Public IP, Private DNS, Private Endpoint）のルール。"""

import re
from typing import Any

from armcheck.models.context import ValidationContext
from armcheck.models.validation import Severity, ValidationResult, ValidationResultBuilder
from armcheck.validators.cidr import (
    cidrs_overlap,
    is_valid_address_prefix,
    is_valid_cidr,
    is_valid_port_range,
    is_within_cidr,
    usable_host_count,
)
from armcheck.validators.common import collect_results, get_in, validate_length, validate_pattern, validate_range
from armcheck.validators.rule import BaseValidationRule, RuleOutput

VIRTUAL_NETWORKS = "Microsoft.Network/virtualNetworks"
SUBNETS = "Microsoft.Network/virtualNetworks/subnets"
NETWORK_SECURITY_GROUPS = "Microsoft.Network/networkSecurityGroups"
PUBLIC_IP_ADDRESSES = "Microsoft.Network/publicIPAddresses"
PRIVATE_DNS_ZONES = "Microsoft.Network/privateDnsZones"
PRIVATE_ENDPOINTS = "Microsoft.Network/privateEndpoints"

_VNET_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*[a-zA-Z0-9_]$")
_DNS_ZONE_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)*$")

NSG_PRIORITY_MIN = 100
NSG_PRIORITY_MAX = 4096
NSG_PROTOCOLS = ("Tcp", "Udp", "Icmp", "Esp", "Ah", "*")

# Bastion関連でよくある誤り
_SERVICE_TAG_HINTS: dict[str, str] = {
    "AzureBastion": "VirtualNetwork (Bastion traffic comes from VNet)",
    "Bastion": "VirtualNetwork",
    "AzureBastionSubnet": "VirtualNetwork",
}

# 接続先リソース種別ごとの有効なPrivate EndpointグループID
PRIVATE_ENDPOINT_GROUP_IDS: dict[str, tuple[str, ...]] = {
    "Microsoft.Storage/storageAccounts": ("blob", "file", "queue", "table", "web", "dfs"),
    "Microsoft.KeyVault/vaults": ("vault",),
    "Microsoft.DocumentDB/databaseAccounts": ("Sql",),
    "Microsoft.CognitiveServices/accounts": ("account",),
    "Microsoft.Search/searchServices": ("searchService",),
    "Microsoft.Sql/servers": ("sqlServer",),
    "Microsoft.Web/sites": ("sites",),
}


def _subnet_prefix(subnet: dict[str, Any]) -> str | None:
    return get_in(subnet, "properties", "addressPrefix") or subnet.get("addressPrefix")


def _security_rules(resource: dict[str, Any]) -> list[dict[str, Any]]:
    return get_in(resource, "properties", "securityRules") or resource.get("securityRules") or []


def _rule_label(security_rule: dict[str, Any], index: int) -> str:
    return security_rule.get("name") or f"rule-{index}"


def _rule_properties(security_rule: dict[str, Any]) -> dict[str, Any]:
    return security_rule.get("properties") or security_rule


class VNetAddressSpaceValidator(BaseValidationRule):
    name = "vnet-address-space-format"
    description = "Validates VNet address space is valid CIDR notation"
    severity = Severity.ERROR
    resource_types = (VIRTUAL_NETWORKS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        address_space = get_in(resource, "properties", "addressSpace", "addressPrefixes", 0) or resource.get(
            "addressSpace"
        )

        if not address_space:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("VNet must have at least one address space")
                .with_suggestion('Add addressSpace with CIDR notation (e.g., "10.0.0.0/16")')
                .with_path("properties.addressSpace.addressPrefixes")
                .build()
            )

        if not is_valid_cidr(address_space):
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("VNet address space is not valid CIDR notation")
                .with_details(f"Address space: {address_space}")
                .with_suggestion("Use format: x.x.x.x/y where x is 0-255 and y is 0-32")
                .with_path("properties.addressSpace.addressPrefixes")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class VNetNameValidator(BaseValidationRule):
    name = "vnet-name-format"
    description = "Validates VNet name follows Azure naming rules"
    severity = Severity.ERROR
    resource_types = (VIRTUAL_NETWORKS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        name = resource.get("name") or resource.get("virtualNetworkName")

        if not name:
            return ValidationResultBuilder.error(self.name).with_message("VNet name is required").build()

        results = collect_results(
            validate_length(name, 2, 64, "VNet name", self.name),
            validate_pattern(
                name,
                _VNET_NAME_PATTERN,
                "VNet name",
                self.name,
                "VNet name must start and end with alphanumeric, "
                "can contain letters, numbers, underscores, periods, hyphens",
            ),
        )
        return results or ValidationResultBuilder.success(self.name).build()


class SubnetWithinVNetValidator(BaseValidationRule):
    name = "subnet-within-vnet"
    description = "Validates subnet address prefix is within VNet address space"
    severity = Severity.ERROR
    resource_types = (SUBNETS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        subnet_prefix = _subnet_prefix(resource)
        vnet_prefix = context.vnet_address_space if context else None

        if not subnet_prefix:
            return ValidationResultBuilder.error(self.name).with_message("Subnet must have address prefix").build()

        if not is_valid_cidr(subnet_prefix):
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Subnet address prefix is not valid CIDR notation")
                .with_details(f"Address prefix: {subnet_prefix}")
                .with_path("properties.addressPrefix")
                .build()
            )

        if vnet_prefix and not is_within_cidr(subnet_prefix, vnet_prefix):
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Subnet address prefix is not within VNet address space")
                .with_details(f"Subnet: {subnet_prefix}, VNet: {vnet_prefix}")
                .with_suggestion("Subnet must be a subset of the VNet address space")
                .with_path("properties.addressPrefix")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class SubnetOverlapValidator(BaseValidationRule):
    name = "subnet-no-overlap"
    description = "Validates subnets do not have overlapping address ranges"
    severity = Severity.ERROR
    resource_types = (SUBNETS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        subnet_prefix = _subnet_prefix(resource)
        existing_subnets = context.existing_subnets if context else []

        if not subnet_prefix:
            return ValidationResultBuilder.success(self.name).build()

        overlapping = []
        for subnet in existing_subnets:
            existing_prefix = _subnet_prefix(subnet)
            if existing_prefix and existing_prefix != subnet_prefix and cidrs_overlap(subnet_prefix, existing_prefix):
                overlapping.append(subnet)

        if overlapping:
            names = ", ".join(str(s.get("name") or s.get("subnetName")) for s in overlapping)
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Subnet address range overlaps with existing subnets")
                .with_details(f"Overlapping subnets: {names}")
                .with_suggestion("Choose a non-overlapping address range")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class SubnetMinimumSizeValidator(BaseValidationRule):
    name = "subnet-minimum-size"
    description = "Validates subnet has at least 3 usable IP addresses"
    severity = Severity.WARNING
    resource_types = (SUBNETS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        subnet_prefix = _subnet_prefix(resource)

        # 形式不正はsubnet-within-vnetが報告する
        if not subnet_prefix or not is_valid_cidr(subnet_prefix):
            return ValidationResultBuilder.success(self.name).build()

        prefix_length = int(subnet_prefix.split("/")[1])
        usable = usable_host_count(prefix_length)

        if usable < 3:
            return (
                ValidationResultBuilder.warning(self.name)
                .invalid()
                .with_message(f"Subnet /{prefix_length} has only {usable} usable IP addresses")
                .with_suggestion("Use /29 or larger subnet for at least 3 usable IPs")
                .with_details("Azure reserves first 4 and last 1 IP address in each subnet")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class PrivateEndpointSubnetPoliciesValidator(BaseValidationRule):
    name = "private-endpoint-subnet-policies"
    description = "Validates subnet has network policies disabled for private endpoints"
    severity = Severity.ERROR
    resource_types = (SUBNETS,)

    def condition(self, resource: dict[str, Any], context: ValidationContext | None = None) -> bool:
        return bool(context and context.has_private_endpoints)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        policies = get_in(resource, "properties", "privateEndpointNetworkPolicies")

        if policies != "Disabled":
            return (
                ValidationResultBuilder.error(self.name)
                .with_message('Subnet must have privateEndpointNetworkPolicies set to "Disabled" for private endpoints')
                .with_suggestion('Set privateEndpointNetworkPolicies: "Disabled" on the subnet')
                .with_details("This must be configured before creating private endpoints")
                .with_path("properties.privateEndpointNetworkPolicies")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class NSGPriorityUniqueValidator(BaseValidationRule):
    name = "nsg-priority-unique"
    description = "Validates NSG rule priorities are unique"
    severity = Severity.ERROR
    resource_types = (NETWORK_SECURITY_GROUPS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        # 優先度は方向（Inbound/Outbound）ごとに一意であればよい
        seen: set[tuple[str, Any]] = set()
        duplicates: list[Any] = []
        for security_rule in _security_rules(resource):
            props = _rule_properties(security_rule)
            priority = props.get("priority")
            if priority is None:
                continue
            key = (str(props.get("direction", "")).lower(), priority)
            if key in seen and priority not in duplicates:
                duplicates.append(priority)
            seen.add(key)

        if duplicates:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("NSG has rules with duplicate priorities")
                .with_details(f"Duplicate priorities: {', '.join(str(p) for p in duplicates)}")
                .with_suggestion(
                    f"Each rule must have a unique priority between {NSG_PRIORITY_MIN} and {NSG_PRIORITY_MAX}"
                )
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class NSGPriorityRangeValidator(BaseValidationRule):
    name = "nsg-priority-range"
    description = "Validates NSG rule priorities are in valid range"
    severity = Severity.ERROR
    resource_types = (NETWORK_SECURITY_GROUPS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        results: list[ValidationResult] = []
        for index, security_rule in enumerate(_security_rules(resource)):
            priority = _rule_properties(security_rule).get("priority")
            label = _rule_label(security_rule, index)
            range_result = validate_range(
                priority, NSG_PRIORITY_MIN, NSG_PRIORITY_MAX, f"Priority for rule '{label}'", self.name
            )
            if range_result is not None:
                results.append(range_result)

        return results or ValidationResultBuilder.success(self.name).build()


class NSGPortRangeValidator(BaseValidationRule):
    name = "nsg-port-range-format"
    description = "Validates NSG rule port ranges are valid"
    severity = Severity.ERROR
    resource_types = (NETWORK_SECURITY_GROUPS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        results: list[ValidationResult] = []
        for index, security_rule in enumerate(_security_rules(resource)):
            label = _rule_label(security_rule, index)
            props = _rule_properties(security_rule)

            ports = [
                props.get("destinationPortRange"),
                props.get("sourcePortRange"),
                *(props.get("destinationPortRanges") or []),
                *(props.get("sourcePortRanges") or []),
            ]
            invalid = [str(p) for p in ports if p and not is_valid_port_range(str(p))]
            if not invalid:
                continue

            builder = (
                ValidationResultBuilder.error(self.name)
                .with_message(f"Rule '{label}' has invalid port range format")
                .with_details(f"Invalid ports: {', '.join(invalid)}")
                .with_path(f"properties.securityRules[{index}]")
            )
            comma_separated = next((p for p in invalid if "," in p), None)
            if comma_separated is not None:
                split = "', '".join(part.strip() for part in comma_separated.split(","))
                builder.with_suggestion(f"Use destinationPortRanges for multiple ports: ['{split}']")
            else:
                builder.with_suggestion("Use format: single port (80), range (80-443), or wildcard (*)")
            results.append(builder.build())

        return results or ValidationResultBuilder.success(self.name).build()


class NSGProtocolValidator(BaseValidationRule):
    name = "nsg-protocol"
    description = "Validates NSG rule protocols are supported"
    severity = Severity.ERROR
    resource_types = (NETWORK_SECURITY_GROUPS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        results: list[ValidationResult] = []
        for index, security_rule in enumerate(_security_rules(resource)):
            protocol = _rule_properties(security_rule).get("protocol")
            if protocol and protocol not in NSG_PROTOCOLS:
                results.append(
                    ValidationResultBuilder.error(self.name)
                    .with_message(f"Rule '{_rule_label(security_rule, index)}' has invalid protocol: '{protocol}'")
                    .with_suggestion(f"Valid protocols: {', '.join(NSG_PROTOCOLS)}")
                    .with_path(f"properties.securityRules[{index}].properties.protocol")
                    .build()
                )

        return results or ValidationResultBuilder.success(self.name).build()


class NSGAddressPrefixValidator(BaseValidationRule):
    name = "nsg-address-prefix"
    description = "Validates NSG rule address prefixes are CIDR, IP addresses or service tags"
    severity = Severity.ERROR
    resource_types = (NETWORK_SECURITY_GROUPS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        results: list[ValidationResult] = []
        for index, security_rule in enumerate(_security_rules(resource)):
            props = _rule_properties(security_rule)
            label = _rule_label(security_rule, index)
            for direction in ("source", "destination"):
                prefixes = [props.get(f"{direction}AddressPrefix"), *(props.get(f"{direction}AddressPrefixes") or [])]
                for prefix in prefixes:
                    if not prefix or is_valid_address_prefix(prefix):
                        continue
                    hint = _SERVICE_TAG_HINTS.get(prefix)
                    results.append(
                        ValidationResultBuilder.error(self.name)
                        .with_message(f"Rule '{label}' has invalid {direction} address prefix: '{prefix}'")
                        .with_suggestion(
                            f"Did you mean '{hint}'?"
                            if hint
                            else "Use a valid service tag, CIDR notation, or IP address"
                        )
                        .with_path(f"properties.securityRules[{index}]")
                        .build()
                    )

        return results or ValidationResultBuilder.success(self.name).build()


def _sku_name(resource: dict[str, Any]) -> Any:
    sku = resource.get("sku")
    return sku.get("name") if isinstance(sku, dict) else sku


class PublicIPSkuCompatibilityValidator(BaseValidationRule):
    name = "public-ip-sku-compatibility"
    description = "Validates Public IP SKU is compatible with attached resources"
    severity = Severity.ERROR
    resource_types = (PUBLIC_IP_ADDRESSES,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        sku = _sku_name(resource)
        target_sku = context.target_resource_sku if context else None

        if target_sku == "Standard" and sku != "Standard":
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Standard SKU resources require Standard SKU Public IP")
                .with_details(f"Public IP SKU: {sku}, Target resource SKU: {target_sku}")
                .with_suggestion("Change Public IP SKU to Standard")
                .with_path("sku.name")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class PublicIPAllocationMethodValidator(BaseValidationRule):
    name = "public-ip-allocation-method"
    description = "Validates Public IP allocation method matches SKU requirements"
    severity = Severity.ERROR
    resource_types = (PUBLIC_IP_ADDRESSES,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        allocation_method = get_in(resource, "properties", "publicIPAllocationMethod") or resource.get(
            "publicIPAllocationMethod"
        )

        if _sku_name(resource) == "Standard" and allocation_method != "Static":
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Standard SKU Public IP must use Static allocation method")
                .with_suggestion('Set publicIPAllocationMethod to "Static"')
                .with_path("properties.publicIPAllocationMethod")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class PrivateDnsZoneLocationValidator(BaseValidationRule):
    name = "private-dns-zone-location"
    description = "Validates Private DNS Zone location is set to global"
    severity = Severity.ERROR
    resource_types = (PRIVATE_DNS_ZONES,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        location = resource.get("location")

        if location and str(location).lower() != "global":
            return (
                ValidationResultBuilder.error(self.name)
                .with_message(f"Private DNS Zone location must be 'global', not '{location}'")
                .with_suggestion('Set location: "global" or omit the location property')
                .with_details("Private DNS Zones are global resources and do not belong to a specific region")
                .with_path("location")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class PrivateDnsZoneNameValidator(BaseValidationRule):
    name = "private-dns-zone-name-format"
    description = "Validates Private DNS Zone name is valid DNS format"
    severity = Severity.ERROR
    resource_types = (PRIVATE_DNS_ZONES,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        zone_name = resource.get("name") or resource.get("privateZoneName") or resource.get("zoneName")

        if not zone_name:
            return ValidationResultBuilder.error(self.name).with_message("Private DNS Zone name is required").build()

        if not _DNS_ZONE_PATTERN.match(zone_name):
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Private DNS Zone name must be valid DNS format")
                .with_details(f"Zone name: {zone_name}")
                .with_suggestion("Use lowercase, alphanumeric characters, hyphens, and dots only")
                .build()
            )

        return ValidationResultBuilder.success(self.name).build()


class PrivateEndpointGroupIdValidator(BaseValidationRule):
    name = "private-endpoint-group-id"
    description = "Validates Private Endpoint group ID is valid for target resource type"
    severity = Severity.ERROR
    resource_types = (PRIVATE_ENDPOINTS,)

    def validate(self, resource: dict[str, Any], context: ValidationContext | None = None) -> RuleOutput:
        group_ids = get_in(
            resource, "properties", "privateLinkServiceConnections", 0, "properties", "groupIds"
        ) or resource.get("groupIds")
        target_type = context.target_resource_type if context else None

        if not group_ids:
            return (
                ValidationResultBuilder.error(self.name)
                .with_message("Private Endpoint must specify group IDs")
                .with_suggestion("Add groupIds array with appropriate subresource names")
                .build()
            )

        valid = PRIVATE_ENDPOINT_GROUP_IDS.get(target_type) if target_type else None
        if valid is not None:
            invalid = [group_id for group_id in group_ids if group_id not in valid]
            if invalid:
                return (
                    ValidationResultBuilder.error(self.name)
                    .with_message(f"Invalid group IDs for {target_type}")
                    .with_details(f"Invalid IDs: {', '.join(invalid)}")
                    .with_suggestion(f"Valid group IDs: {', '.join(valid)}")
                    .build()
                )

        return ValidationResultBuilder.success(self.name).build()


network_validators: list[BaseValidationRule] = [
    VNetAddressSpaceValidator(),
    VNetNameValidator(),
    SubnetWithinVNetValidator(),
    SubnetOverlapValidator(),
    SubnetMinimumSizeValidator(),
    PrivateEndpointSubnetPoliciesValidator(),
    NSGPriorityUniqueValidator(),
    NSGPriorityRangeValidator(),
    NSGPortRangeValidator(),
    NSGProtocolValidator(),
    NSGAddressPrefixValidator(),
    PublicIPSkuCompatibilityValidator(),
    PublicIPAllocationMethodValidator(),
    PrivateDnsZoneLocationValidator(),
    PrivateDnsZoneNameValidator(),
    PrivateEndpointGroupIdValidator(),
]
