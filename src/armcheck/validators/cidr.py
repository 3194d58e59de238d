"""CIDR表記・ポート範囲・アドレスプレフィックスの判定ユーティリティ。"""

import re

_CIDR_PATTERN = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})/(\d{1,2})$")
_IPV4_PATTERN = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")
_PORT_PATTERN = re.compile(r"^(\d+)(?:-(\d+))?$")

_FULL_MASK = 0xFFFFFFFF
_MAX_PORT = 65535

# Azureは各サブネットの先頭4つと末尾1つのアドレスを予約する
AZURE_RESERVED_ADDRESSES = 5

AZURE_SERVICE_TAGS: frozenset[str] = frozenset(
    {
        "ActionGroup",
        "ApiManagement",
        "AppConfiguration",
        "AppService",
        "AppServiceManagement",
        "AzureActiveDirectory",
        "AzureActiveDirectoryDomainServices",
        "AzureArcInfrastructure",
        "AzureAttestation",
        "AzureBackup",
        "AzureBotService",
        "AzureCloud",
        "AzureCognitiveSearch",
        "AzureConnectors",
        "AzureContainerRegistry",
        "AzureCosmosDB",
        "AzureDatabricks",
        "AzureDataExplorerManagement",
        "AzureDataLake",
        "AzureDevOps",
        "AzureDigitalTwins",
        "AzureEventGrid",
        "AzureFrontDoor.Backend",
        "AzureFrontDoor.Frontend",
        "AzureFrontDoor.FirstParty",
        "AzureHealthcareAPIs",
        "AzureInformationProtection",
        "AzureIoTHub",
        "AzureKeyVault",
        "AzureLoadBalancer",
        "AzureMachineLearning",
        "AzureMonitor",
        "AzureOpenDatasets",
        "AzurePlatformDNS",
        "AzurePlatformIMDS",
        "AzurePlatformLKM",
        "AzureResourceManager",
        "AzureSecurityCenter",
        "AzureSignalR",
        "AzureSiteRecovery",
        "AzureSphere",
        "AzureStorage",
        "AzureTrafficManager",
        "AzureUpdateDelivery",
        "BatchNodeManagement",
        "CognitiveServicesManagement",
        "DataFactory",
        "EventHub",
        "GatewayManager",
        "GuestAndHybridManagement",
        "Internet",
        "LogicApps",
        "MicrosoftCloudAppSecurity",
        "MicrosoftContainerRegistry",
        "PowerBI",
        "PowerQueryOnline",
        "ServiceBus",
        "ServiceFabric",
        "Sql",
        "SqlManagement",
        "Storage",
        "VirtualNetwork",
        "WindowsAdminCenter",
        "WindowsVirtualDesktop",
    }
)


def _octets_valid(groups: tuple[str, ...]) -> bool:
    return all(0 <= int(octet) <= 255 for octet in groups)


def is_valid_cidr(cidr: str) -> bool:
    """``x.x.x.x/y`` 形式で各オクテットが0-255、プレフィックス長が0-32か。"""
    if not isinstance(cidr, str):
        return False
    match = _CIDR_PATTERN.match(cidr)
    if match is None:
        return False
    return _octets_valid(match.groups()[:4]) and 0 <= int(match.group(5)) <= 32


def parse_cidr(cidr: str) -> tuple[int, int] | None:
    """CIDRを (32bit整数アドレス, プレフィックス長) に分解する。不正ならNone。"""
    if not is_valid_cidr(cidr):
        return None
    ip, prefix = cidr.split("/")
    return _ip_to_int(ip), int(prefix)


def _ip_to_int(ip: str) -> int:
    a, b, c, d = (int(p) for p in ip.split("."))
    return (a << 24) | (b << 16) | (c << 8) | d


def prefix_to_mask(prefix_length: int) -> int:
    """プレフィックス長を32bitネットマスクに変換する。"""
    return (_FULL_MASK << (32 - prefix_length)) & _FULL_MASK


def _network_bounds(address: int, prefix_length: int) -> tuple[int, int]:
    mask = prefix_to_mask(prefix_length)
    network = address & mask
    broadcast = network | (~mask & _FULL_MASK)
    return network, broadcast


def is_within_cidr(child_cidr: str, parent_cidr: str) -> bool:
    """child_cidrがparent_cidrのアドレス範囲に含まれるか。"""
    child = parse_cidr(child_cidr)
    parent = parse_cidr(parent_cidr)
    if child is None or parent is None:
        return False

    child_address, child_prefix = child
    parent_address, parent_prefix = parent
    if child_prefix < parent_prefix:
        return False

    parent_mask = prefix_to_mask(parent_prefix)
    return (child_address & parent_mask) == (parent_address & parent_mask)


def cidrs_overlap(cidr1: str, cidr2: str) -> bool:
    """2つのCIDR範囲が重なるか。入れ子の範囲も重なりとみなす。"""
    range1 = parse_cidr(cidr1)
    range2 = parse_cidr(cidr2)
    if range1 is None or range2 is None:
        return False

    network1, broadcast1 = _network_bounds(*range1)
    network2, broadcast2 = _network_bounds(*range2)
    return network1 <= broadcast2 and network2 <= broadcast1


def usable_host_count(prefix_length: int, reserved: int = AZURE_RESERVED_ADDRESSES) -> int:
    """プレフィックス長から利用可能なアドレス数を求める。負になり得る。"""
    return 2 ** (32 - prefix_length) - reserved


def is_valid_port_range(port_range: str) -> bool:
    """単一ポート、``開始-終了`` 形式の範囲、または ``*`` か。"""
    if port_range == "*":
        return True
    if not isinstance(port_range, str):
        return False
    match = _PORT_PATTERN.match(port_range)
    if match is None:
        return False
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) is not None else start
    return 0 <= start <= _MAX_PORT and 0 <= end <= _MAX_PORT and start <= end


def is_valid_address_prefix(prefix: str) -> bool:
    """NSGルールのアドレスプレフィックスとして使える値か。"""
    if prefix == "*":
        return True
    if is_valid_cidr(prefix):
        return True
    match = _IPV4_PATTERN.match(prefix)
    if match is not None:
        return _octets_valid(match.groups())
    # リージョン付きサービスタグ（例: Storage.WestUS）
    return prefix in AZURE_SERVICE_TAGS or prefix.split(".", 1)[0] in AZURE_SERVICE_TAGS
