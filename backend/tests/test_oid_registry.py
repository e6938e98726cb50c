"""
Unit tests for vendor detection and OID table lookups.
"""
import pytest

from netscope.services.oid_registry import (
    GENERIC_VENDOR, STANDARD_OIDS, VENDOR_OIDS,
    build_interface_oid, get_environment_oids, get_interface_oids, get_memory_oids, get_system_oids,
    is_vendor_supported, normalize_vendor, resolve_vendor,
)


@pytest.mark.parametrize("descr,vendor,device_type", [
    ("Cisco IOS Software, C3750E Software", "cisco", "router"),
    ("Cisco NX-OS(tm) n9000", "cisco", "router"),
    ("Juniper Networks, Inc. ex4300-48t", "juniper", "router"),
    ("FortiGate-100F v7.2.5", "fortinet", "firewall"),
    ("Palo Alto Networks PA-3220 series firewall", "paloalto", "firewall"),
    ("RouterOS RB4011iGS+", "mikrotik", "router"),
    ("Linux web01 5.15.0-91-generic #101-Ubuntu SMP x86_64", "linux", "server"),
    ("Hardware: Intel64 Family 6 Model 85 - Software: Windows Version 6.3", "windows", "server"),
    ("Adaptive Security Appliance Version 9.16(3)", "cisco", "firewall"),
    ("ASA 5516-X Version 9.12", "cisco", "firewall"),
    ("EX4300-48T Ethernet Switch", "juniper", "switch"),
    # Hostnames that merely contain a short model token
    ("Linux casablanca-db01 5.15.0-91-generic #101-Ubuntu SMP x86_64", "linux", "server"),
    ("Linux busgw01 4.19.0 armv7l", "linux", "server"),
    ("Linux index2024-node 6.1.0 x86_64", "linux", "server"),
])
def test_resolve_vendor(descr, vendor, device_type):
    info = resolve_vendor(descr)
    assert info.vendor == vendor
    assert info.device_type == device_type


def test_unknown_and_empty_descr_is_generic():
    assert resolve_vendor("Some appliance v1") == GENERIC_VENDOR
    assert resolve_vendor("") == GENERIC_VENDOR
    assert resolve_vendor(None) == GENERIC_VENDOR


def test_normalize_vendor():
    assert normalize_vendor("Cisco") == "cisco"
    assert normalize_vendor("acme") == "generic"
    assert normalize_vendor(None) == "generic"
    assert is_vendor_supported("linux")
    assert not is_vendor_supported("acme")


def test_category_fallback_to_generic():
    # Cisco carries no system table of its own
    assert get_system_oids("cisco") == VENDOR_OIDS["generic"]["system"]
    assert get_memory_oids("acme") == VENDOR_OIDS["generic"]["memory"]
    assert get_environment_oids("generic") is None


def test_interface_oids_counter_width():
    hc = get_interface_oids(use_64bit=True)
    legacy = get_interface_oids(use_64bit=False)
    assert hc["ifInOctets"] == STANDARD_OIDS["ifXTable"]["ifHCInOctets"]
    assert legacy["ifInOctets"] == STANDARD_OIDS["interfaces"]["ifInOctets"]
    assert build_interface_oid("1.3.6.1.2.1.2.2.1.8", 3) == "1.3.6.1.2.1.2.2.1.8.3"
