"""Closed enumerations of engines, architectures and operating systems.

Each engine spells architectures and operating systems its own way in its
artifact filenames. Those spellings live in static tables here rather than
in the URL logic, so adding an engine means adding rows, not branches.
"""

from __future__ import annotations

from enum import Enum


class Engine(str, Enum):
    """A search engine distribution whose release artifacts are pinned."""

    ELASTICSEARCH = "elasticsearch"
    OPENSEARCH = "opensearch"
    QUICKWIT = "quickwit"


class Architecture(str, Enum):
    """CPU architecture of a release artifact."""

    X86_64 = "x86_64"
    AARCH64 = "aarch64"


class OperatingSystem(str, Enum):
    """Operating system of a release artifact."""

    LINUX = "linux"
    DARWIN = "darwin"


def declaration_rank(member: Enum) -> int:
    """Position of *member* in its enum's declaration order.

    ``str`` enums compare lexicographically, which would put ``aarch64``
    before ``x86_64``; serialization orders by declaration instead.
    """
    return list(type(member)).index(member)


# (engine, architecture) -> spelling used in artifact filenames
ARCH_NAMES: dict[tuple[Engine, Architecture], str] = {
    (Engine.ELASTICSEARCH, Architecture.X86_64): "x86_64",
    (Engine.ELASTICSEARCH, Architecture.AARCH64): "aarch64",
    (Engine.OPENSEARCH, Architecture.X86_64): "x64",
    (Engine.OPENSEARCH, Architecture.AARCH64): "arm64",
    (Engine.QUICKWIT, Architecture.X86_64): "x86_64",
    (Engine.QUICKWIT, Architecture.AARCH64): "aarch64",
}

# (engine, operating system) -> spelling used in artifact filenames
OS_NAMES: dict[tuple[Engine, OperatingSystem], str] = {
    (Engine.ELASTICSEARCH, OperatingSystem.LINUX): "linux",
    (Engine.ELASTICSEARCH, OperatingSystem.DARWIN): "darwin",
    (Engine.OPENSEARCH, OperatingSystem.LINUX): "linux",
    (Engine.OPENSEARCH, OperatingSystem.DARWIN): "darwin",
    (Engine.QUICKWIT, OperatingSystem.LINUX): "unknown-linux-gnu",
    (Engine.QUICKWIT, OperatingSystem.DARWIN): "apple-darwin",
}


def arch_name(engine: Engine, arch: Architecture) -> str:
    """Return *engine*'s filename spelling of *arch*."""
    return ARCH_NAMES[(engine, arch)]


def os_name(engine: Engine, os: OperatingSystem) -> str:
    """Return *engine*'s filename spelling of *os*."""
    return OS_NAMES[(engine, os)]
