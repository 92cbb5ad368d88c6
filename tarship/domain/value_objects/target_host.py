"""
Target Host Value Object

Architectural Intent:
- Immutable value object representing one remote host of a deployment
- Validates hostname format (DNS, IPv4, IPv6), port bounds, non-empty user
- Supports IPv6 bracket notation in parse() (e.g., user@[::1]:22)
"""

import re
from dataclasses import dataclass, field
from typing import Optional

# RFC 1123 hostname: labels of alnum/hyphens, dot-separated
_HOSTNAME_RE = re.compile(
    r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$"
)

_IPV4_RE = re.compile(
    r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$"
)

# Simplified, accepts ::1, fe80::1, etc.
_IPV6_RE = re.compile(r"^[0-9a-fA-F:]+$")


def _is_valid_hostname(host: str) -> bool:
    """Validate hostname as DNS name, IPv4, or IPv6."""
    if not host:
        return False

    m = _IPV4_RE.match(host)
    if m:
        return all(0 <= int(g) <= 255 for g in m.groups())

    if _IPV6_RE.match(host) and ":" in host:
        return True

    if _HOSTNAME_RE.match(host) and len(host) <= 253:
        return True

    return False


@dataclass(frozen=True)
class TargetHost:
    """
    Value Object representing a remote deployment target and its credentials.
    """
    host: str
    port: int = 22
    user: str = "root"
    password: Optional[str] = field(default=None, repr=False)
    key_filename: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.user:
            raise ValueError("Host user cannot be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        if not _is_valid_hostname(self.host):
            raise ValueError(f"Invalid hostname: {self.host!r}")

    @property
    def label(self) -> str:
        """Name used in logs and summaries."""
        return self.name or self.host

    def __str__(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"

    @staticmethod
    def parse(connection_string: str, name: Optional[str] = None) -> "TargetHost":
        """
        Parses a string like 'user@host:port', 'host', or 'user@[::1]:port'.
        """
        user = "root"
        port = 22
        host = connection_string.strip()

        if "@" in host:
            user, host = host.split("@", 1)

        if host.startswith("["):
            bracket_end = host.find("]")
            if bracket_end == -1:
                raise ValueError(f"Unterminated IPv6 bracket in: {connection_string}")
            ipv6_addr = host[1:bracket_end]
            remainder = host[bracket_end + 1:]
            if remainder.startswith(":"):
                port = int(remainder[1:])
            host = ipv6_addr
        elif ":" in host:
            last_colon = host.rfind(":")
            try:
                port = int(host[last_colon + 1:])
                host = host[:last_colon]
            except ValueError:
                pass

        return TargetHost(host=host, port=port, user=user, name=name)

    @staticmethod
    def from_dict(data: dict) -> "TargetHost":
        """Builds a host from a config mapping, ignoring unknown keys."""
        return TargetHost(
            host=data["host"],
            port=int(data.get("port", 22)),
            user=data.get("user") or data.get("username") or "root",
            password=data.get("password"),
            key_filename=data.get("key_filename") or data.get("private_key_path"),
            name=data.get("name"),
        )
