"""
Directory service for candidate DNS servers.

Downloads public resolver directories, caches them on disk,
retries failed downloads and merges every source into one
deduplicated list of IPv4 addresses.
"""

import asyncio
import base64
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from .models import DirectoryConfig
from .resolvers import builtin_servers
from .validation import is_valid_ip


logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class DirectoryError(RuntimeError):
    """Raised when a directory cannot be downloaded or yields no servers."""


@dataclass
class DirectorySource:
    """A resolver directory and how to turn its JSON into addresses."""
    name: str
    url: Optional[str]
    transform: Callable[[Any], list[str]]


def _dnscrypt_addresses(data: list) -> list[str]:
    """Every address listed by the DNSCrypt public resolvers directory."""
    addresses = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        for addr in entry.get("addrs") or []:
            if isinstance(addr, str) and ":" not in addr:
                addresses.append(addr)
    return addresses


def _public_dns_info_addresses(data: list) -> list[str]:
    """Reliable IPv4 nameservers from public-dns.info."""
    addresses = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        ip = entry.get("ip")
        if not isinstance(ip, str) or ":" in ip:
            continue
        reliability = entry.get("reliability")
        if isinstance(reliability, (int, float)) and reliability < 0.95:
            continue
        if entry.get("error"):
            continue
        addresses.append(ip)
    return addresses


SOURCES: list[DirectorySource] = [
    DirectorySource(
        name="dnscrypt",
        url="https://download.dnscrypt.info/resolvers-list/json/public-resolvers.json",
        transform=_dnscrypt_addresses,
    ),
    DirectorySource(
        name="public-dns.info",
        url="https://public-dns.info/nameservers.json",
        transform=_public_dns_info_addresses,
    ),
    DirectorySource(
        name="builtin",
        url=None,
        transform=lambda _: builtin_servers(),
    ),
]


class DirectoryService:
    """
    Collects candidate DNS servers from remote directories.

    Downloads are cached under `config.cache_dir` and reused while
    younger than `config.cache_ttl_seconds`.
    """

    def __init__(
        self,
        config: Optional[DirectoryConfig] = None,
        sources: Optional[list[DirectorySource]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the directory service.

        Args:
            config: Proxy, cache and retry configuration
            sources: Directories to merge (default: SOURCES)
            transport: Optional httpx transport (used by tests)
        """
        self.config = config or DirectoryConfig()
        self.sources = SOURCES if sources is None else sources
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DirectoryService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            if self.config.proxy:
                logger.info("Downloading through proxy %s", self.config.proxy)
            try:
                self._client = httpx.AsyncClient(
                    proxy=self.config.proxy,
                    verify=self.config.verify_tls,
                    timeout=httpx.Timeout(self.config.request_timeout),
                    headers={
                        "Accept": "application/json",
                        "User-Agent": USER_AGENT,
                    },
                    follow_redirects=True,
                    transport=self._transport,
                )
            except ValueError as e:
                raise DirectoryError(f"Invalid proxy {self.config.proxy}: {e}") from e
        return self._client

    def cache_path(self, url: str) -> Path:
        """Cache file for a directory URL."""
        key = base64.urlsafe_b64encode(url.encode()).decode()
        return self.config.cache_dir / f"{key}.json"

    def _read_cache(self, url: str) -> Optional[Any]:
        path = self.cache_path(url)
        try:
            age = time.time() - path.stat().st_mtime
            if age >= self.config.cache_ttl_seconds:
                logger.debug("Cache for %s is stale", url)
                return None
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.debug("Cache miss for %s", url)
            return None

        logger.info("Using cached data for %s", url)
        return data

    def _write_cache(self, url: str, data: Any) -> None:
        path = self.cache_path(url)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning("Could not cache %s: %s", url, e)

    async def fetch_json(self, url: str) -> Any:
        """
        Get a directory's JSON, from cache when fresh.

        Args:
            url: Directory URL

        Returns:
            Parsed JSON document (list or object)

        Raises:
            DirectoryError: On non-200 status or a non-JSON body
            httpx.HTTPError: On transport failures
        """
        cached = self._read_cache(url)
        if cached is not None:
            return cached

        client = self._get_client()
        logger.info("Downloading %s", url)
        response = await client.get(url)

        if response.status_code != 200:
            raise DirectoryError(
                f"HTTP {response.status_code} {response.reason_phrase} from {url}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise DirectoryError(f"Response from {url} is not valid JSON") from e

        if not isinstance(data, (list, dict)):
            raise DirectoryError(f"Response from {url} is not a JSON list or object")

        self._write_cache(url, data)
        return data

    async def fetch_with_retry(self, url: str) -> Any:
        """
        Fetch a directory, retrying failed downloads.

        Waits `retry_delay * attempt` seconds between attempts and
        re-raises the last error once all attempts are used.
        """
        attempts = max(self.config.retries, 1)

        for attempt in range(1, attempts + 1):
            try:
                return await self.fetch_json(url)
            except (httpx.HTTPError, DirectoryError) as e:
                logger.warning("Attempt %d/%d for %s failed: %s", attempt, attempts, url, e)
                if attempt == attempts:
                    raise
                await asyncio.sleep(self.config.retry_delay * attempt)

    async def collect(self) -> list[str]:
        """
        Merge every source into one candidate list.

        A failing source is logged and skipped. Only valid IPv4
        addresses are kept, in first-seen order.

        Returns:
            Deduplicated candidate IPv4 addresses

        Raises:
            DirectoryError: If the proxy is invalid or no source produced any server
        """
        self._get_client()
        servers: dict[str, None] = {}

        for source in self.sources:
            if source.url is None:
                data = None
            else:
                try:
                    data = await self.fetch_with_retry(source.url)
                except (httpx.HTTPError, DirectoryError) as e:
                    logger.error("Could not get servers from %s: %s", source.name, e)
                    continue

                if not isinstance(data, list):
                    logger.warning("Data from %s is not a list, skipping", source.name)
                    continue

            addresses = source.transform(data)
            valid = [ip for ip in addresses if is_valid_ip(ip)]
            if len(valid) < len(addresses):
                logger.debug(
                    "Skipped %d invalid addresses from %s",
                    len(addresses) - len(valid),
                    source.name,
                )
            logger.info("Got %d servers from %s", len(valid), source.name)

            for ip in valid:
                servers.setdefault(ip)

        if not servers:
            raise DirectoryError("Could not collect any DNS servers")

        logger.info("Collected %d unique DNS servers", len(servers))
        return list(servers)

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


async def collect_dns_servers(config: Optional[DirectoryConfig] = None) -> list[str]:
    """Collect candidate servers from the default directories."""
    async with DirectoryService(config) as service:
        return await service.collect()
