"""CIDR・ポート範囲ユーティリティのユニットテスト。"""

import pytest

from armcheck.validators.cidr import (
    cidrs_overlap,
    is_valid_address_prefix,
    is_valid_cidr,
    is_valid_port_range,
    is_within_cidr,
    parse_cidr,
    prefix_to_mask,
    usable_host_count,
)


class TestIsValidCidr:
    @pytest.mark.parametrize("cidr", ["10.0.0.0/16", "0.0.0.0/0", "255.255.255.255/32", "192.168.1.0/24"])
    def test_valid(self, cidr: str) -> None:
        assert is_valid_cidr(cidr) is True

    @pytest.mark.parametrize(
        "cidr", ["10.0.0.0", "10.0.0.256/16", "10.0.0.0/33", "10.0.0/16", "abc", "", "10.0.0.0/"]
    )
    def test_invalid(self, cidr: str) -> None:
        assert is_valid_cidr(cidr) is False

    def test_parse_cidr(self) -> None:
        assert parse_cidr("10.0.0.0/8") == (10 << 24, 8)
        assert parse_cidr("not-a-cidr") is None


class TestContainment:
    def test_subnet_within_vnet(self) -> None:
        assert is_within_cidr("10.0.1.0/24", "10.0.0.0/16") is True

    def test_subnet_outside_vnet(self) -> None:
        assert is_within_cidr("10.1.0.0/24", "10.0.0.0/16") is False

    def test_larger_child_is_not_within(self) -> None:
        assert is_within_cidr("10.0.0.0/8", "10.0.0.0/16") is False

    def test_equal_ranges(self) -> None:
        assert is_within_cidr("10.0.0.0/16", "10.0.0.0/16") is True

    def test_invalid_input_is_not_within(self) -> None:
        assert is_within_cidr("bad", "10.0.0.0/16") is False

    def test_host_bits_in_child_are_masked(self) -> None:
        assert is_within_cidr("10.0.5.7/32", "10.0.0.0/16") is True


class TestOverlap:
    def test_overlapping(self) -> None:
        assert cidrs_overlap("10.0.0.0/24", "10.0.0.128/25") is True

    def test_nested_is_overlap(self) -> None:
        assert cidrs_overlap("10.0.0.0/16", "10.0.1.0/24") is True

    def test_disjoint(self) -> None:
        assert cidrs_overlap("10.0.0.0/24", "10.0.1.0/24") is False

    def test_symmetric(self) -> None:
        assert cidrs_overlap("10.0.1.0/24", "10.0.0.0/16") == cidrs_overlap("10.0.0.0/16", "10.0.1.0/24")

    def test_invalid_input(self) -> None:
        assert cidrs_overlap("10.0.0.0/24", "garbage") is False


class TestMaskAndHosts:
    def test_prefix_to_mask(self) -> None:
        assert prefix_to_mask(24) == 0xFFFFFF00
        assert prefix_to_mask(0) == 0
        assert prefix_to_mask(32) == 0xFFFFFFFF

    def test_usable_hosts(self) -> None:
        assert usable_host_count(24) == 251
        assert usable_host_count(29) == 3
        assert usable_host_count(30) == -1


class TestPortRange:
    @pytest.mark.parametrize("value", ["*", "80", "0", "65535", "1024-2048", "443-443"])
    def test_valid(self, value: str) -> None:
        assert is_valid_port_range(value) is True

    @pytest.mark.parametrize("value", ["65536", "2048-1024", "80,443", "abc", "", "-1", "80-"])
    def test_invalid(self, value: str) -> None:
        assert is_valid_port_range(value) is False


class TestAddressPrefix:
    @pytest.mark.parametrize(
        "value", ["*", "10.0.0.0/16", "10.0.0.4", "VirtualNetwork", "Internet", "Storage.WestUS", "AzureLoadBalancer"]
    )
    def test_valid(self, value: str) -> None:
        assert is_valid_address_prefix(value) is True

    @pytest.mark.parametrize("value", ["NotATag", "10.0.0.300", "GatewayManagerX", "10.0.0.0/40"])
    def test_invalid(self, value: str) -> None:
        assert is_valid_address_prefix(value) is False
