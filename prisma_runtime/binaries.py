"""Locating and downloading the Prisma CLI and engine binaries."""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tempfile
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path

from prisma_runtime.platform import binary_platform_name, check_for_extension, name

logger = logging.getLogger(__name__)

PRISMA_VERSION = "4.15.0"
"""Version of the Prisma CLI that is used."""

ENGINE_VERSION = "70a9adfd11f836696eca398396544fe07a8d8edb"
"""Commit of the Prisma engines that is used."""

PRISMA_URL = os.environ.get("PRISMA_CLI_URL", "https://packaged-cli.prisma.sh/%s-%s-%s-x64.gz")
ENGINE_URL = os.environ.get("PRISMA_ENGINE_URL", "https://binaries.prisma.sh/all_commits/%s/%s/%s.gz")


@dataclass(frozen=True)
class EngineBinary:
    """An engine binary and the environment variable that can override its path."""

    name: str
    env: str


ENGINES = (
    EngineBinary("query-engine", "PRISMA_QUERY_ENGINE_BINARY"),
    EngineBinary("migration-engine", "PRISMA_MIGRATION_ENGINE_BINARY"),
)

_BASE_DIR = os.path.join("prisma", "binaries")


def prisma_cli_name() -> str:
    """Return the file name of the CLI for this platform."""
    return f"prisma-cli-{name()}-x64"


def global_temp_dir(version: str) -> str:
    """Return the directory in the global temp dir where engines live."""
    temp = tempfile.gettempdir()
    logger.debug("temp dir: %s", temp)
    return os.path.join(temp, _BASE_DIR, "engines", version)


def global_unpack_dir(version: str) -> str:
    """Return the directory where bundled engines are unpacked."""
    return os.path.join(global_temp_dir(version), "unpacked", "v2")


def _user_cache_dir() -> str:
    system = name()
    if system == "windows":
        local = os.environ.get("LocalAppData", "")
        if not local:
            raise RuntimeError("%LocalAppData% is not defined")
        return local
    home = os.environ.get("HOME", "")
    if system == "darwin":
        if not home:
            raise RuntimeError("$HOME is not defined")
        return os.path.join(home, "Library", "Caches")
    xdg = os.environ.get("XDG_CACHE_HOME", "")
    if xdg:
        return xdg
    if not home:
        raise RuntimeError("neither $XDG_CACHE_HOME nor $HOME are defined")
    return os.path.join(home, ".cache")


def global_cache_dir() -> str:
    """Return the directory in the user cache where the CLI lives."""
    try:
        cache = _user_cache_dir()
    except RuntimeError as exc:
        raise RuntimeError(f"could not read user cache dir: {exc}") from exc
    logger.debug("global cache dir: %s", cache)
    return os.path.join(cache, _BASE_DIR, "cli", PRISMA_VERSION)


def get_engine_path(directory: str, engine: str, binary_name: str) -> str:
    """Return where an engine binary for the given platform flavour is stored."""
    return check_for_extension(
        binary_name, os.path.join(directory, ENGINE_VERSION, f"prisma-{engine}-{binary_name}")
    )


def fetch_engine(to_dir: str, engine_name: str, binary_platform_name: str) -> None:
    """Download one engine for a given platform flavour unless it is cached."""
    logger.debug("checking %s...", engine_name)

    to = get_engine_path(to_dir, engine_name, binary_platform_name)

    remote_name = "linux-static-x64" if binary_platform_name == "linux" else binary_platform_name
    url = check_for_extension(binary_platform_name, ENGINE_URL % (ENGINE_VERSION, remote_name, engine_name))
    logger.debug("download url %s", url)

    if os.path.exists(to):
        logger.debug("%s is cached", to)
        return

    logger.debug("%s is missing, downloading...", engine_name)
    try:
        download(url, to)
    except (OSError, RuntimeError) as exc:
        raise RuntimeError(f"could not download {url} to {to}: {exc}") from exc
    logger.debug("%s done", engine_name)


def fetch_native(to_dir: str) -> None:
    """Fetch the CLI and all engines this platform needs into an absolute directory."""
    if not to_dir:
        raise ValueError("toDir must be provided")
    if not os.path.isabs(to_dir):
        raise ValueError("toDir must be absolute")

    try:
        download_cli(to_dir)
        for engine in ENGINES:
            download_engine(engine.name, to_dir)
    except RuntimeError as exc:
        raise RuntimeError(f"could not download engines: {exc}") from exc


def download_cli(to_dir: str) -> None:
    """Download the Prisma CLI into a directory unless it is cached."""
    system = name()
    cli = prisma_cli_name()
    to = check_for_extension(system, os.path.join(to_dir, cli))
    url = check_for_extension(system, PRISMA_URL % ("prisma-cli", PRISMA_VERSION, system))

    logger.debug("ensuring CLI %s from %s to %s", cli, url, to)

    if os.path.exists(to):
        logger.debug("prisma cli is cached")
        return

    logger.info("prisma cli doesn't exist, fetching... (this might take a few minutes)")
    try:
        download(url, to)
    except (OSError, RuntimeError) as exc:
        raise RuntimeError(f"could not download {url} to {to}: {exc}") from exc
    logger.info("prisma cli fetched successfully.")


def download_engine(name: str, to_dir: str) -> str:
    """Download an engine for this platform unless it is cached; return its path."""
    binary_name = binary_platform_name()
    logger.debug("checking %s...", name)

    to = get_engine_path(to_dir, name, binary_name)
    url = check_for_extension(binary_name, ENGINE_URL % (ENGINE_VERSION, binary_name, name))
    logger.debug("download url %s", url)

    if os.path.exists(to):
        logger.debug("%s is cached", to)
        return to

    logger.debug("%s is missing, downloading...", name)
    started = time.monotonic()
    try:
        download(url, to)
    except (OSError, RuntimeError) as exc:
        raise RuntimeError(f"could not download {url} to {to}: {exc}") from exc
    logger.debug("%s engine download took %.3fs", name, time.monotonic() - started)
    logger.debug("%s done", name)
    return to


def download(url: str, to: str) -> None:
    """Download a gzip-compressed file from a URL and store it unpacked at a path."""
    Path(to).parent.mkdir(parents=True, exist_ok=True)

    dest = f"{to}.tmp"

    try:
        response = urllib.request.urlopen(url)  # noqa: S310
    except urllib.error.HTTPError as exc:
        body = exc.read().decode(errors="replace")
        raise RuntimeError(f"received code {exc.code} from {url}: {body}") from exc
    except urllib.error.URLError as exc:
        raise RuntimeError(f"could not get {url}: {exc.reason}") from exc

    with response:
        if response.status != 200:
            body = response.read().decode(errors="replace")
            raise RuntimeError(f"received code {response.status} from {url}: {body}")

        with open(dest, "wb") as out:
            os.chmod(dest, 0o777)
            with gzip.GzipFile(fileobj=response) as archive:
                shutil.copyfileobj(archive, out)

    _copy_file(dest, to)


def _copy_file(source: str, target: str) -> None:
    data = Path(source).read_bytes()
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_BINARY", 0)
    descriptor = os.open(target, flags, 0o777)
    with os.fdopen(descriptor, "wb") as out:
        out.write(data)