"""Address classification and formatting helpers for the streaming host."""

from __future__ import annotations

import ipaddress
import socket
from typing import Iterable, Optional, Tuple, Union

AddressLike = Union[
    str, bytes, ipaddress.IPv4Address, ipaddress.IPv6Address, Tuple
]

_LINK_LOCAL_PREFIX = bytes([0xFE, 0x80])
_SITE_LOCAL_PREFIX = bytes([0xFE, 0xC0])
_UNIQUE_LOCAL_PREFIX = bytes([0xFC, 0x00])

# 192.0.0.170 and 192.0.0.171, the addresses that ipv4only.arpa resolves to.
_WELL_KNOWN_IPV4ONLY = (
    bytes([0xC0, 0x00, 0x00, 0xAA]),
    bytes([0xC0, 0x00, 0x00, 0xAB]),
)

_NAT64_PROBE_HOST = "ipv4only.arpa."


def _to_ip(address: AddressLike) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
    """Coerce a string, packed bytes, ip object or sockaddr tuple to an address.

    Any IPv6 scope id is dropped, so only the raw address remains.
    """
    if isinstance(address, (tuple, list)):
        if not address:
            raise ValueError("empty socket address")
        address = address[0]
    if isinstance(address, (bytes, bytearray, memoryview)):
        address = bytes(address)
        if len(address) not in (4, 16):
            raise ValueError(f"packed address must be 4 or 16 bytes, got {len(address)}")
    if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        ip = address
    else:
        ip = ipaddress.ip_address(address)
    return ipaddress.ip_address(ip.packed)


def _to_v6(address: AddressLike) -> ipaddress.IPv6Address:
    ip = _to_ip(address)
    if not isinstance(ip, ipaddress.IPv6Address):
        raise ValueError(f"{ip} is not an IPv6 address")
    return ip


def url_safe_address(address: AddressLike) -> str:
    """Format an address for use as a URL host: IPv6 in brackets, IPv4 as is."""
    ip = _to_ip(address)
    if isinstance(ip, ipaddress.IPv6Address):
        return f"[{ip}]"
    return str(ip)


def is_private_v4(address: AddressLike, match_cgn: bool = False) -> bool:
    """Return whether an IPv4 address is in a private or link-local range.

    With ``match_cgn`` the carrier-grade NAT range 100.64.0.0/10 counts too.
    """
    ip = _to_ip(address)
    if not isinstance(ip, ipaddress.IPv4Address):
        raise ValueError(f"{ip} is not an IPv4 address")
    value = int(ip)
    if (value & 0xFF000000) == 0x0A000000:  # 10.0.0.0/8
        return True
    if (value & 0xFFF00000) == 0xAC100000:  # 172.16.0.0/12
        return True
    if (value & 0xFFFF0000) == 0xC0A80000:  # 192.168.0.0/16
        return True
    if (value & 0xFFFF0000) == 0xA9FE0000:  # 169.254.0.0/16
        return True
    if match_cgn and (value & 0xFFC00000) == 0x64400000:  # 100.64.0.0/10
        return True
    return False


def is_in_subnet_v6(address: AddressLike, subnet: bytes, prefix_length: int) -> bool:
    """Return whether the first ``prefix_length`` bits of ``address`` match ``subnet``.

    Bit ``i`` is taken from byte ``i // 8`` with mask ``1 << (i % 8)``, so
    within each byte the bits are counted from the least significant one.
    """
    packed = _to_v6(address).packed
    subnet = bytes(subnet)
    if prefix_length < 0 or prefix_length > 128:
        raise ValueError("prefix length must be between 0 and 128")
    if prefix_length > len(subnet) * 8:
        raise ValueError(
            f"subnet of {len(subnet)} bytes is too short for a /{prefix_length} prefix"
        )
    for bit in range(prefix_length):
        mask = 1 << (bit % 8)
        if (packed[bit // 8] & mask) != (subnet[bit // 8] & mask):
            return False
    return True


def is_private_network_address(address: AddressLike) -> bool:
    """Return whether an address belongs to a private or link-local network."""
    ip = _to_ip(address)
    if isinstance(ip, ipaddress.IPv4Address):
        return is_private_v4(ip, False)
    return (
        is_in_subnet_v6(ip, _LINK_LOCAL_PREFIX, 10)  # fe80::/10
        or is_in_subnet_v6(ip, _SITE_LOCAL_PREFIX, 10)  # fec0::/10
        or is_in_subnet_v6(ip, _UNIQUE_LOCAL_PREFIX, 7)  # fc00::/7
    )


def _resolve_nat64_candidates() -> list:
    try:
        infos = socket.getaddrinfo(
            _NAT64_PROBE_HOST,
            None,
            socket.AF_INET6,
            socket.SOCK_STREAM,
            socket.IPPROTO_TCP,
            socket.AI_ADDRCONFIG,
        )
    except (socket.gaierror, OSError):
        return []
    return [info[4] for info in infos if info[0] == socket.AF_INET6]


def _embedded_positions(candidate: bytes, well_known: bytes):
    """Yield (prefix_len, suffix_start) for each place ``well_known`` is embedded."""
    if candidate[4:8] == well_known:
        yield 4, 9
    if candidate[5:8] == well_known[0:3] and candidate[9:10] == well_known[3:4]:
        yield 5, 10
    if candidate[6:8] == well_known[0:2] and candidate[9:11] == well_known[2:4]:
        yield 6, 11
    if candidate[7:8] == well_known[0:1] and candidate[9:12] == well_known[1:4]:
        yield 7, 12
    if candidate[9:13] == well_known:
        yield 8, 13
    if candidate[12:16] == well_known:
        yield 12, 16


def is_nat64_synthesized_address(
    address: AddressLike, candidates: Optional[Iterable[AddressLike]] = None
) -> bool:
    """Return whether an IPv6 address lies within the local NAT64 prefix.

    ``candidates`` are the IPv6 addresses that ``ipv4only.arpa`` resolves to;
    when omitted they are looked up. A candidate identifies the NAT64 prefix
    when one of the well-known addresses is embedded in it exactly once.
    IPv4 addresses are never synthesized and give ``False``.
    """
    ip = _to_ip(address)
    if not isinstance(ip, ipaddress.IPv6Address):
        return False
    target = ip.packed

    if candidates is None:
        candidates = _resolve_nat64_candidates()

    for candidate in candidates:
        try:
            cand_ip = _to_ip(candidate)
        except ValueError:
            continue
        if not isinstance(cand_ip, ipaddress.IPv6Address):
            continue
        cand = cand_ip.packed

        for well_known in _WELL_KNOWN_IPV4ONLY:
            positions = list(_embedded_positions(cand, well_known))
            if len(positions) != 1:
                continue
            prefix_len, suffix_start = positions[0]
            if target[:prefix_len] == cand[:prefix_len] and (
                suffix_start == 16 or target[suffix_start:] == cand[suffix_start:]
            ):
                return True
            break

    return False