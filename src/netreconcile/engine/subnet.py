"""Address and subnet helpers.

Addresses may carry a route domain suffix (``10.0.0.5%2/24``) and an
optional CIDR. All functions here are pure.
"""
import ipaddress
from typing import Optional, Union

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def strip_cidr(address: str) -> str:
    """Remove the prefix length from an address, if present."""
    slash = address.find("/")
    return address if slash == -1 else address[:slash]


def split_route_domain(address: str) -> tuple[str, Optional[str]]:
    """Split ``addr%rd/len`` into (``addr/len``, ``rd``)."""
    if "%" not in address:
        return address, None
    host, _, rest = address.partition("%")
    route_domain, slash, prefix = rest.partition("/")
    return f"{host}{slash}{prefix}", route_domain


def normalize_address(address: Optional[str]) -> Optional[str]:
    """Reduce an address to a comparable bare IP.

    Strips CIDR and route domain; returns None for empty or ``none``.
    """
    if not address or address == "none":
        return None
    bare, _ = split_route_domain(strip_cidr(address))
    try:
        return str(ipaddress.ip_address(bare))
    except ValueError:
        return bare


def addresses_match(first: Optional[str], second: Optional[str]) -> bool:
    """Compare two addresses after normalization."""
    a = normalize_address(first)
    return a is not None and a == normalize_address(second)


def to_network(address: str) -> IPNetwork:
    """The network an interface address belongs to (host bits ignored)."""
    bare, _ = split_route_domain(address)
    return ipaddress.ip_network(bare, strict=False)


def is_in_subnet(address: Optional[str], subnet: Optional[str]) -> bool:
    """Check if ``address`` falls inside the subnet of ``subnet``.

    ``subnet`` is an interface address such as a self IP (``10.1.1.5/24``).
    A route domain on both sides must match. Unparseable input and mixed
    address families are never contained.
    """
    if not address or not subnet:
        return False

    addr, addr_rd = split_route_domain(address)
    net, net_rd = split_route_domain(subnet)
    if addr_rd is not None and net_rd is not None and addr_rd != net_rd:
        return False

    try:
        ip = ipaddress.ip_address(strip_cidr(addr))
        network = ipaddress.ip_network(net, strict=False)
    except ValueError:
        return False

    if ip.version != network.version:
        return False
    return ip in network


def host_network(network: str) -> str:
    """Give a bare host address a full-length prefix.

    ``default`` and ``default-inet6`` pass through untouched.
    """
    if network in ("default", "default-inet6") or "/" in network:
        return network
    mask = 128 if ":" in network else 32
    return f"{network}/{mask}"
