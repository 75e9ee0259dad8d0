"""Network utilities for address validation and guest reachability."""

import asyncio
import ipaddress
import time

from ..api.exceptions import ReadinessTimeout


def is_ipv4(value: str) -> bool:
    """Check for four dot-separated decimal octets, each 0-255, without leading zeros."""
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def check_network_placement(
    ip: str,
    subnet: str,
    reserved: dict[str, str | None],
) -> list[str]:
    """Check that a guest address fits the site network.

    Args:
        ip: Guest IPv4 address
        subnet: Site network in CIDR form
        reserved: Addresses that must not be handed out, keyed by role

    Returns:
        List of problems (empty if the address is usable)
    """
    problems = []
    if ipaddress.IPv4Address(ip) not in ipaddress.IPv4Network(subnet, strict=False):
        problems.append(f"IP address {ip} is not in the {subnet} range")
    for role, address in reserved.items():
        if address and ip == address:
            problems.append(f"{ip} is the {role} address and cannot be used for VMs")
    return problems


async def port_open(host: str, port: int, timeout: float) -> bool:
    """Try a single TCP connect."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def wait_for_port(
    host: str,
    port: int = 22,
    timeout: float = 300,
    interval: float = 5,
) -> float:
    """Poll a TCP port until it accepts connections.

    Args:
        host: Guest address
        port: TCP port
        timeout: Give up after this many seconds
        interval: Pause between attempts

    Returns:
        Seconds waited

    Raises:
        ReadinessTimeout: If the port stays closed until the deadline
    """
    start = time.monotonic()
    deadline = start + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ReadinessTimeout(host, port, timeout)
        if await port_open(host, port, min(interval, remaining)):
            return time.monotonic() - start
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ReadinessTimeout(host, port, timeout)
        await asyncio.sleep(min(interval, remaining))
