"""Running the Prisma CLI with the engines it needs."""

from __future__ import annotations

import logging
import os
import subprocess
import sys

from prisma_runtime.binaries import (
    ENGINE_VERSION,
    ENGINES,
    fetch_native,
    global_cache_dir,
    prisma_cli_name,
)
from prisma_runtime.platform import binary_platform_name, check_for_extension, name

logger = logging.getLogger(__name__)


def build_environment(directory: str) -> dict[str, str]:
    """Return the environment for the CLI, pointing it at the engines in a directory."""
    binary_name = check_for_extension(name(), binary_platform_name())

    env = dict(os.environ)
    env["PRISMA_HIDE_UPDATE_MESSAGE"] = "true"
    env["PRISMA_CLI_QUERY_ENGINE_TYPE"] = "binary"

    for engine in ENGINES:
        override = os.environ.get(engine.env, "")
        if override:
            logger.debug("overriding %s to %s", engine.name, override)
            env[engine.env] = override
        else:
            env[engine.env] = os.path.join(directory, ENGINE_VERSION, f"prisma-{engine.name}-{binary_name}")

    return env


def run(arguments: list[str], output: bool) -> None:
    """Run the Prisma CLI with the given arguments, fetching binaries first."""
    logger.debug("running cli with args %s", arguments)

    directory = global_cache_dir()
    try:
        fetch_native(directory)
    except (RuntimeError, ValueError) as exc:
        raise RuntimeError(f"could not fetch binaries: {exc}") from exc

    executable = os.path.join(directory, prisma_cli_name())
    logger.debug("running %s %s", executable, arguments)

    sink = None if output else subprocess.DEVNULL
    try:
        subprocess.run(
            [executable, *arguments],
            env=build_environment(directory),
            stdout=sink,
            stderr=sink,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise RuntimeError(f"could not run {arguments}: {exc}") from exc


def main(argv: list[str] | None = None) -> int:
    """Pass the command line on to the Prisma CLI."""
    arguments = list(sys.argv[1:] if argv is None else argv)
    try:
        run(arguments, True)
    except RuntimeError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())