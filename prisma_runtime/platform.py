"""Detection of the host platform and of the matching engine binary name."""

from __future__ import annotations

import re
import subprocess
import sys
from pathlib import Path

_OS_RELEASE = Path("/etc/os-release")

_ID_PATTERN = re.compile(r'^ID="?([^"\n]*)"?', re.MULTILINE)
_ID_LIKE_PATTERN = re.compile(r'^ID_LIKE="?([^"\n]*)"?', re.MULTILINE)
_OPENSSL_PATTERN = re.compile(r"^OpenSSL\s(\d+\.\d+)\.\d+")

_binary_name_cache: dict[str, str] = {}


def name() -> str:
    """Return the operating system name, e.g. "linux", "darwin" or "windows"."""
    system = sys.platform
    if system == "win32":
        return "windows"
    if system.startswith("linux"):
        return "linux"
    for prefix in ("freebsd", "openbsd", "netbsd"):
        if system.startswith(prefix):
            return prefix
    return system


def binary_platform_name() -> str:
    """Return the engine binary flavour, e.g. "darwin" or "debian-openssl-1.1.x"."""
    cached = _binary_name_cache.get("name")
    if cached:
        return cached

    system = name()
    if system != "linux":
        return system

    distro = _linux_distro()
    if distro == "alpine":
        return "linux-static-x64"

    result = f"{distro}-openssl-{_openssl_version()}"
    _binary_name_cache["name"] = result
    return result


def check_for_extension(platform: str, path: str) -> str:
    """Add an .exe extension on windows (e.g. .gz becomes .exe.gz)."""
    if platform == "windows":
        if ".gz" in path:
            return path.replace(".gz", ".exe.gz", 1)
        return path + ".exe"
    return path


def _linux_distro() -> str:
    try:
        text = _OS_RELEASE.read_text(errors="replace")
    except OSError:
        return "debian"
    return parse_linux_distro(text)


def parse_linux_distro(text: str) -> str:
    """Map the contents of an os-release file to "alpine", "rhel" or "debian"."""
    id_match = _ID_PATTERN.search(text)
    distro_id = id_match.group(1) if id_match else ""

    like_match = _ID_LIKE_PATTERN.search(text)
    id_like = like_match.group(1) if like_match else ""

    if distro_id == "alpine":
        return "alpine"

    if any(word in id_like for word in ("centos", "fedora", "rhel")) or distro_id == "fedora":
        return "rhel"

    if any(word in id_like for word in ("debian", "ubuntu")) or distro_id == "debian":
        return "debian"

    # debian is the most common choice
    return "debian"


def _openssl_version() -> str:
    try:
        completed = subprocess.run(
            ["openssl", "version", "-v"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            check=False,
        )
    except OSError:
        return ""
    return parse_openssl_version(completed.stdout)


def parse_openssl_version(text: str) -> str:
    """Return the OpenSSL version without its patch level, e.g. "1.1.x"."""
    match = _OPENSSL_PATTERN.match(text)
    if match:
        return match.group(1) + ".x"
    return "1.1.x"