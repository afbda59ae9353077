# SPDX-License-Identifier: LGPL-3.0-or-later
# xenguest/feature/request.py
"""
Static IP request model and validation.

A request is computed fresh from xenstore on every scan and only exists once
both its address and gateway have validated.
"""
from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from . import keys

IPInterface = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class AddressFamily(Enum):
    V4 = "v4"
    V6 = "v6"

    @property
    def version(self) -> int:
        return 4 if self is AddressFamily.V4 else 6

    @property
    def enabled_subkey(self) -> str:
        return keys.ENABLED_SUBKEY if self is AddressFamily.V4 else keys.ENABLED6_SUBKEY

    @property
    def address_subkey(self) -> str:
        return keys.ADDRESS_SUBKEY if self is AddressFamily.V4 else keys.ADDRESS6_SUBKEY

    @property
    def gateway_subkey(self) -> str:
        return keys.GATEWAY_SUBKEY if self is AddressFamily.V4 else keys.GATEWAY6_SUBKEY


@dataclass(frozen=True)
class StaticIPRequest:
    """Validated static IP settings for one VIF and one address family."""

    vif_path: str
    mac: str
    family: AddressFamily
    address: IPInterface
    gateway: IPAddress

    @property
    def ip(self) -> IPAddress:
        return self.address.ip

    @property
    def network(self) -> Union[ipaddress.IPv4Network, ipaddress.IPv6Network]:
        return self.address.network


_CIDR_RE = re.compile(r"[0-9A-Fa-f:.]+/[0-9]+")


def parse_address(value: str) -> IPInterface:
    """
    Parse CIDR notation ("192.0.2.10/24", "2001:db8::5/64").

    Only a decimal prefix length is accepted: bare addresses, netmask or
    hostmask suffixes, zones and surrounding whitespace are rejected.
    """
    if not value or _CIDR_RE.fullmatch(value) is None:
        raise ValueError(f"invalid CIDR address: {value!r}")
    return ipaddress.ip_interface(value)


def parse_gateway(value: str) -> IPAddress:
    """Parse an IPv4 or IPv6 literal; zoned addresses are rejected."""
    if not value or "%" in value:
        raise ValueError(f"invalid IP address: {value!r}")
    return ipaddress.ip_address(value)


def build_request(
    logger: logging.Logger,
    vif_path: str,
    mac: str,
    family: AddressFamily,
    address: Optional[str],
    gateway: Optional[str],
) -> Optional[StaticIPRequest]:
    """
    Validate address and gateway independently, logging each outcome.

    None means at least one field was missing or invalid; the other field is
    still validated and reported.
    """
    addr_key = vif_path + family.address_subkey
    gw_key = vif_path + family.gateway_subkey

    parsed_addr: Optional[IPInterface] = None
    if address is None:
        logger.warning("No address to set: %s unreadable", addr_key)
    else:
        try:
            parsed_addr = parse_address(address)
        except ValueError as e:
            logger.warning("ParseCIDR [%s] failed for %s: %s", address, addr_key, e)
        else:
            logger.info("Address %s resolved to ip=%s network=%s", addr_key, parsed_addr.ip, parsed_addr.network)
            if parsed_addr.version != family.version:
                logger.warning("Address %s is IPv%d but was requested via %s", address, parsed_addr.version, addr_key)

    parsed_gw: Optional[IPAddress] = None
    if gateway is None:
        logger.warning("No gateway to set: %s unreadable", gw_key)
    else:
        try:
            parsed_gw = parse_gateway(gateway)
        except ValueError:
            logger.warning("Invalid gateway [%s] in %s", gateway, gw_key)
        else:
            logger.info("Gateway %s resolved to %s", gw_key, parsed_gw)
            if parsed_gw.version != family.version:
                logger.warning("Gateway %s is IPv%d but was requested via %s", gateway, parsed_gw.version, gw_key)

    if parsed_addr is None or parsed_gw is None:
        return None
    return StaticIPRequest(
        vif_path=vif_path,
        mac=mac,
        family=family,
        address=parsed_addr,
        gateway=parsed_gw,
    )
