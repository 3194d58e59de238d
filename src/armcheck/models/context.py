"""ルールが参照する検証コンテキストのデータモデル。"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_RESOURCE_ID_FUNCTION = re.compile(r"resourceId\((?P<args>.*)\)", re.IGNORECASE)
_LITERAL = re.compile(r"^'([^']*)'$")


def _split_arguments(args: str) -> list[str]:
    """テンプレート関数の引数を最上位のカンマで分割する。"""
    parts: list[str] = []
    depth = 0
    quoted = False
    current = ""
    for char in args:
        if char == "'":
            quoted = not quoted
        elif not quoted and char == "(":
            depth += 1
        elif not quoted and char == ")":
            depth -= 1
        elif not quoted and depth == 0 and char == ",":
            parts.append(current.strip())
            current = ""
            continue
        current += char
    parts.append(current.strip())
    return parts


def parse_resource_reference(reference: str) -> tuple[str, str] | None:
    """リソースIDまたは ``[resourceId(...)]`` 式を (種別, 名前) に分解する。

    子リソースは ``Microsoft.Network/virtualNetworks/subnets`` と ``vnet/snet``
    のように種別・名前ともにスラッシュ区切りで返す。名前がパラメータ式などで
    静的に決まらない場合はNone。
    """
    match = _RESOURCE_ID_FUNCTION.search(reference)
    if match:
        args = _split_arguments(match.group("args"))
        for index, arg in enumerate(args):
            literal = _LITERAL.match(arg)
            if not literal or "/" not in literal.group(1) or "." not in literal.group(1).split("/", 1)[0]:
                continue
            resource_type = literal.group(1)
            name_args = args[index + 1 :]
            names = [m.group(1) for m in map(_LITERAL.match, name_args) if m]
            if len(names) != len(name_args) or resource_type.count("/") != len(names):
                return None
            return resource_type, "/".join(names)
        return None

    _, sep, tail = reference.rpartition("/providers/")
    if not sep:
        return None
    parts = [p for p in tail.split("/") if p]
    if len(parts) < 3 or len(parts) % 2 == 0:
        return None
    resource_type = "/".join([parts[0], *parts[1::2]])
    name = "/".join(parts[2::2])
    return resource_type, name


def build_resource_id(resource_type: str, name: str) -> str:
    """種別と名前からサブスクリプション非依存のリソースIDを組み立てる。

    例: ``("Microsoft.Network/virtualNetworks/subnets", "vnet/snet")`` は
    ``/providers/Microsoft.Network/virtualNetworks/vnet/subnets/snet`` になる。
    """
    namespace, _, types = resource_type.partition("/")
    type_segments = types.split("/")
    name_segments = name.split("/")
    if len(type_segments) != len(name_segments):
        return f"/providers/{resource_type}/{name}"
    pairs = [f"{t}/{n}" for t, n in zip(type_segments, name_segments)]
    return f"/providers/{namespace}/{'/'.join(pairs)}"


class ValidationContext(BaseModel):
    """検証パスごとに呼び出し側が構築する周辺情報。

    ``resources`` は同一デプロイグラフ内の兄弟リソースをリソースIDで引ける
    マップで、リソース横断のチェックに使う。宣言されていない拡張フィールドも
    キーワード引数として受け付ける。ルールからは読み取り専用。
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    environment: str | None = None
    region: str | None = None
    subscription_id: str | None = None
    resource_group_name: str | None = None
    resources: dict[str, dict[str, Any]] = Field(default_factory=dict)

    # よく使われる拡張フィールド
    vnet_address_space: str | None = None
    existing_subnets: list[dict[str, Any]] = Field(default_factory=list)
    has_private_endpoints: bool | None = None
    target_resource_type: str | None = None
    target_resource_sku: str | None = None

    def get_resource(self, resource_id: str | None) -> dict[str, Any] | None:
        """兄弟リソースを取得する。存在しない場合はNone。

        マップのキーに一致しない場合は、完全なリソースIDや ``[resourceId(...)]``
        式から種別と名前を取り出し、同じ種別・名前のリソースを探す。
        ARMと同様に大文字小文字は区別しない。
        """
        if not isinstance(resource_id, str) or not resource_id:
            return None
        if resource_id in self.resources:
            return self.resources[resource_id]

        reference = parse_resource_reference(resource_id)
        if reference is None:
            return None
        resource_type, name = (part.lower() for part in reference)
        for resource in self.resources.values():
            if (
                str(resource.get("type", "")).lower() == resource_type
                and str(resource.get("name", "")).lower() == name
            ):
                return resource
        return None

    def extra(self, name: str, default: Any = None) -> Any:
        """宣言されていない拡張フィールドを取得する。"""
        extras = self.model_extra or {}
        return extras.get(name, default)
