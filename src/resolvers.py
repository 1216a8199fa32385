"""
Built-in resolver lists.

Provides well-known public DNS resolvers used as the built-in
directory source, as the offline fallback list, and to label
results in the output.
"""

from typing import Optional

from .models import ResolverProfile


# Well-known public resolvers, keyed by short name
RESOLVERS: dict[str, ResolverProfile] = {
    "google": ResolverProfile(
        name="google",
        ipv4="8.8.8.8",
        provider="Google",
        description="Google Public DNS",
    ),
    "google-secondary": ResolverProfile(
        name="google-secondary",
        ipv4="8.8.4.4",
        provider="Google",
        description="Google Public DNS secondary",
    ),
    "cloudflare": ResolverProfile(
        name="cloudflare",
        ipv4="1.1.1.1",
        provider="Cloudflare",
        description="Cloudflare's privacy-focused DNS resolver",
    ),
    "cloudflare-secondary": ResolverProfile(
        name="cloudflare-secondary",
        ipv4="1.0.0.1",
        provider="Cloudflare",
        description="Cloudflare's secondary DNS resolver",
    ),
    "alidns": ResolverProfile(
        name="alidns",
        ipv4="223.5.5.5",
        provider="AliDNS",
        description="Alibaba public DNS",
    ),
    "alidns-secondary": ResolverProfile(
        name="alidns-secondary",
        ipv4="223.6.6.6",
        provider="AliDNS",
        description="Alibaba public DNS secondary",
    ),
    "dnspod": ResolverProfile(
        name="dnspod",
        ipv4="119.29.29.29",
        provider="DNSPod",
        description="Tencent DNSPod public DNS",
    ),
    "baidu": ResolverProfile(
        name="baidu",
        ipv4="180.76.76.76",
        provider="Baidu",
        description="Baidu public DNS",
    ),
    "114dns": ResolverProfile(
        name="114dns",
        ipv4="114.114.114.114",
        provider="114DNS",
        description="114DNS public resolver",
    ),
}

# Resolvers the directory always contributes, whatever the network does
BUILTIN_RESOLVERS = [
    "google",
    "google-secondary",
    "cloudflare",
    "cloudflare-secondary",
    "alidns",
    "alidns-secondary",
    "dnspod",
    "baidu",
    "114dns",
]

# Resolvers tested when neither the list file nor the directory is usable
FALLBACK_RESOLVERS = [
    "google",
    "google-secondary",
    "cloudflare",
    "cloudflare-secondary",
    "alidns",
    "alidns-secondary",
]

_BY_IP = {resolver.ipv4: resolver for resolver in RESOLVERS.values()}


def builtin_servers() -> list[str]:
    """IP addresses of the built-in directory source."""
    return [RESOLVERS[name].ipv4 for name in BUILTIN_RESOLVERS]


def fallback_servers() -> list[str]:
    """IP addresses of the offline fallback list."""
    return [RESOLVERS[name].ipv4 for name in FALLBACK_RESOLVERS]


def lookup_by_ip(ip: str) -> Optional[ResolverProfile]:
    """Get the well-known resolver at an address, if any."""
    return _BY_IP.get(ip)
