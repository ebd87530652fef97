"""Enumerate IPv4 address ranges."""
from ipaddress import IPv4Address
from typing import Iterator, Union

AddressLike = Union[str, int, IPv4Address]

MAX_ADDRESS = int(IPv4Address("255.255.255.255"))


def ip_range(start: AddressLike, end: AddressLike) -> Iterator[IPv4Address]:
    """Yield every address from `start` to `end`, both included. Empty if start > end."""
    first = int(IPv4Address(start))
    last = int(IPv4Address(end))
    for value in range(first, last + 1):
        yield IPv4Address(value)


def ip_range_from(start: AddressLike, length: int) -> Iterator[IPv4Address]:
    """Yield `length` consecutive addresses beginning at `start`."""
    if length < 0:
        raise ValueError(f"Length must not be negative: {length}")
    first = int(IPv4Address(start))
    if length == 0:
        return iter(())
    if first + length - 1 > MAX_ADDRESS:
        raise ValueError(f"{length} addresses from {IPv4Address(first)} overflow the IPv4 space")
    return ip_range(first, first + length - 1)
