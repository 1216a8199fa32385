"""
Command-line interface for DNS Speed.

Finds the fastest DNS servers from a collected candidate list
or from addresses given on the command line.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from . import __version__
from .collector import DirectoryError, collect_dns_servers
from .models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CACHE_DIR,
    DEFAULT_TEST_DOMAIN,
    DEFAULT_TIMEOUT_MS,
    DirectoryConfig,
    TestOptions,
)
from .output import CSVOutput, JSONOutput, RichConsoleOutput
from .resolvers import fallback_servers
from .runner import SpeedTestRunner
from .storage import DEFAULT_LIST_FILE, StorageError, read_server_list, write_server_list
from .validation import InvalidInputError


logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def create_progress_callback():
    """Create a rich progress bar and the callback that drives it."""
    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("[dim]{task.fields[ip]}"),
        console=Console(stderr=True),
        transient=True,
    )

    task_id = None

    def callback(completed: int, total: int, ip: str):
        nonlocal task_id
        if task_id is None:
            task_id = progress.add_task("Testing", total=total, ip="")
        progress.update(task_id, completed=completed, ip=ip)

    return progress, callback


def load_servers(list_file: Path, directory_config: DirectoryConfig) -> list[str]:
    """
    Get the candidate list to test.

    Tries the list file, then the directory service (saving what it
    finds), then the built-in fallback list.
    """
    try:
        return read_server_list(list_file)
    except StorageError as e:
        logger.info("%s", e)
        click.echo("No usable DNS list found, collecting a new one...", err=True)

    try:
        servers = asyncio.run(collect_dns_servers(directory_config))
    except DirectoryError as e:
        click.echo(f"Failed to collect DNS list: {e}", err=True)
        click.echo("Using the built-in DNS server list...", err=True)
        return fallback_servers()

    try:
        write_server_list(list_file, servers)
    except StorageError as e:
        logger.warning("%s", e)

    return servers


@click.command()
@click.version_option(__version__)
@click.option(
    "--input", "-i", "input_ips",
    help="Comma-separated IP addresses to test instead of the DNS list",
)
@click.option(
    "--update", "-u",
    is_flag=True,
    help="Update the DNS server list and exit",
)
@click.option(
    "--domain", "-d",
    default=DEFAULT_TEST_DOMAIN,
    show_default=True,
    help="Domain to query",
)
@click.option(
    "--proxy", "-p",
    envvar="DNS_SPEED_PROXY",
    help="HTTP proxy for list downloads, e.g. http://127.0.0.1:7890",
)
@click.option(
    "--top", "-n",
    type=click.IntRange(min=1),
    default=2,
    show_default=True,
    help="Number of fastest servers to show",
)
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=DEFAULT_BATCH_SIZE,
    show_default=True,
    help="Servers probed concurrently per batch",
)
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    default=DEFAULT_TIMEOUT_MS,
    show_default=True,
    help="Reply timeout in milliseconds",
)
@click.option(
    "--list-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_LIST_FILE,
    show_default=True,
    help="Where the DNS server list is stored",
)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_CACHE_DIR,
    show_default=True,
    help="Cache directory for downloaded directories",
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file path (JSON or CSV based on extension)",
)
@click.option(
    "--json", "as_json",
    is_flag=True,
    help="Output results as JSON to stdout",
)
@click.option(
    "--quiet", "-q",
    is_flag=True,
    help="Suppress progress output",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug logging",
)
def main(
    input_ips: Optional[str],
    update: bool,
    domain: str,
    proxy: Optional[str],
    top: int,
    batch_size: int,
    timeout: int,
    list_file: Path,
    cache_dir: Path,
    output: Optional[Path],
    as_json: bool,
    quiet: bool,
    verbose: bool,
):
    """
    DNS Speed - find the fastest DNS servers.

    Sends one UDP query to every candidate server and ranks
    them by the time to the first reply.

    Examples:

    \b
      # Test the stored (or freshly collected) DNS list
      dns-speed

    \b
      # Test specific servers
      dns-speed -i 8.8.8.8,1.1.1.1,223.5.5.5

    \b
      # Refresh the DNS list through a proxy
      dns-speed -u -p http://127.0.0.1:7890
    """
    setup_logging(verbose)

    directory_config = DirectoryConfig(proxy=proxy, cache_dir=cache_dir)

    if update:
        click.echo("Updating DNS server list...", err=True)
        try:
            servers = asyncio.run(collect_dns_servers(directory_config))
            write_server_list(list_file, servers)
        except (DirectoryError, StorageError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        click.echo(f"Saved {len(servers)} DNS servers to {list_file}")
        return

    try:
        options = TestOptions(
            test_domain=domain,
            timeout_ms=timeout,
            batch_size=batch_size,
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if input_ips:
        servers = [ip.strip() for ip in input_ips.split(",")]
    else:
        servers = load_servers(list_file, directory_config)

    if not servers:
        click.echo("Error: no DNS servers to test", err=True)
        sys.exit(1)

    progress_ctx, progress_callback = None, None
    if not quiet and not as_json:
        progress_ctx, progress_callback = create_progress_callback()
        click.echo(f"Testing {len(servers)} DNS servers...", err=True)

    runner = SpeedTestRunner(options=options, progress_callback=progress_callback)

    try:
        if progress_ctx:
            with progress_ctx:
                report = asyncio.run(runner.run_report(servers))
        else:
            report = asyncio.run(runner.run_report(servers))
    except InvalidInputError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(JSONOutput.format(report))
    else:
        RichConsoleOutput.print(report, top=top)

    if output:
        if output.suffix.lower() == ".csv":
            CSVOutput.save(report, output)
        else:
            if output.suffix.lower() != ".json":
                output = output.with_suffix(".json")
            JSONOutput.save(report, output)
        if not quiet:
            click.echo(f"Results saved to {output}", err=True)


if __name__ == "__main__":
    main()
