"""
Input validation for DNS Speed.

Checks candidate server addresses before any network activity.
"""

from typing import Iterable


class InvalidInputError(ValueError):
    """Raised when the candidate server list is empty or malformed."""

    def __init__(self, message: str, invalid: Iterable[str] = ()):
        super().__init__(message)
        self.invalid = list(invalid)


def is_valid_ip(value) -> bool:
    """
    Check if a value is a canonical dotted-quad IPv4 address.

    Each of the four segments must be a base-10 integer in [0, 255]
    written without leading zeros, so "01.2.3.4" and IPv6 forms fail.
    """
    if not value or not isinstance(value, str):
        return False

    parts = value.split(".")
    if len(parts) != 4:
        return False

    for part in parts:
        if not (part.isascii() and part.isdigit()):
            return False
        number = int(part)
        if number > 255 or str(number) != part:
            return False

    return True


def validate_servers(servers) -> list[str]:
    """
    Validate a candidate server list.

    Args:
        servers: Sequence of IPv4 address strings

    Returns:
        The servers as a new list, in input order

    Raises:
        InvalidInputError: If the list is empty or has invalid entries
    """
    if servers is None or isinstance(servers, str):
        raise InvalidInputError("DNS server list must be a sequence of IP strings")

    servers = list(servers)
    if not servers:
        raise InvalidInputError("DNS server list must not be empty")

    invalid = [ip for ip in servers if not is_valid_ip(ip)]
    if invalid:
        raise InvalidInputError(
            f"Invalid IP address: {', '.join(str(ip) for ip in invalid)}",
            invalid=invalid,
        )

    return servers
