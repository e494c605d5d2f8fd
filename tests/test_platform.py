import sys

import pytest

from prisma_runtime.platform import (
    binary_platform_name,
    check_for_extension,
    name,
    parse_linux_distro,
    parse_openssl_version,
)


@pytest.mark.parametrize(
    ("platform", "path", "expected"),
    [
        ("linux", "/some", "/some"),
        ("windows", "/some", "/some.exe"),
        ("windows", "/some.gz", "/some.exe.gz"),
    ],
    ids=["linux", "windows", "windows with extension"],
)
def test_check_for_extension(platform, path, expected):
    assert check_for_extension(platform, path) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("OpenSSL 1.1.0d  1 Feb 2014", "1.1.x"),
        ("OpenSSL 1.0.2g  1 Mar 2016", "1.0.x"),
        ("", "1.1.x"),
    ],
    ids=["1.1", "1.0", "default to 1.1"],
)
def test_parse_openssl_version(text, expected):
    assert parse_openssl_version(text) == expected


DISTRO_CASES = [
    ("default to debian", "", "debian"),
    ("custom without quotes", "\nID=fedora\n", "rhel"),
    ("custom with quotes", '\nID="fedora"\n', "rhel"),
    ("debian", 'NAME="Debian"\nVERSION_ID="10"\nID=debian\n', "debian"),
    ("ubuntu", 'NAME="Ubuntu"\nID=ubuntu\nID_LIKE=debian\n', "debian"),
    ("linux mint", 'NAME="Linux Mint"\nID=linuxmint\nID_LIKE=ubuntu\n', "debian"),
    ("centos", 'NAME="CentOS"\nID="centos"\nID_LIKE="rhel fedora"\n\nVERSION_ID="8"\n', "rhel"),
    ("arch", 'NAME="Arch"\nID=arch\nBUILD_ID=rolling\n', "debian"),
    ("amazon linux 1", 'NAME="Amazon"\nID="amzn"\nID_LIKE="rhel fedora"\n', "rhel"),
    ("amazon linux 2", 'NAME="Amazon"\nID="amzn"\nID_LIKE="centos rhel fedora"\n', "rhel"),
    ("fedora", 'NAME=Fedora\nID=fedora\nVERSION_CODENAME=""\nVARIANT_ID=container\n', "rhel"),
]


@pytest.mark.parametrize(
    ("text", "expected"),
    [(text, expected) for _, text, expected in DISTRO_CASES],
    ids=[case_name for case_name, _, _ in DISTRO_CASES],
)
def test_parse_linux_distro(text, expected):
    assert parse_linux_distro(text) == expected


def test_parse_linux_distro_alpine():
    assert parse_linux_distro("ID=alpine\nVERSION_ID=3.17.0\n") == "alpine"


def test_name_matches_running_system():
    if sys.platform.startswith("linux"):
        assert name() == "linux"
    elif sys.platform == "darwin":
        assert name() == "darwin"
    elif sys.platform == "win32":
        assert name() == "windows"
    else:
        assert name() == name().lower()


def test_binary_platform_name_matches_system():
    result = binary_platform_name()
    if name() == "linux":
        assert result == "linux-static-x64" or "-openssl-" in result
    else:
        assert result == name()


def test_binary_platform_name_with_extension():
    result = check_for_extension(name(), binary_platform_name())
    assert result.endswith(".exe") == (name() == "windows")