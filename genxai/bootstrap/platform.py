from __future__ import annotations

import platform
import re
import sys
from dataclasses import dataclass, field

from genxai.errors import UnsupportedPlatformError

_RELEASE_NUMBER = re.compile(r"^(\d+(?:\.\d+)?)")

# server releases by their client equivalent
_SERVER_RELEASES = {
    "2003server": 5.2,
    "2008server": 6.0,
    "2008serverr2": 7.0,
    "2012server": 8.0,
    "2012serverr2": 8.1,
    "post2008server": 7.0,
    "post2012serverr2": 10.0,
}


@dataclass(frozen=True, slots=True)
class PlatformInfo:
    system: str
    release: str
    version: str
    python: tuple[int, int]

    def describe(self) -> str:
        return f"{self.system} {self.release} (Python {self.python[0]}.{self.python[1]})"


@dataclass(frozen=True, slots=True)
class PlatformRequirement:
    systems: tuple[str, ...] = ("Windows", "Linux", "Darwin")
    min_windows_release: float = 10
    min_python: tuple[int, int] = (3, 10)

    def describe(self) -> str:
        parts = [", ".join(self.systems)]
        if "Windows" in self.systems:
            parts.append(f"Windows {self.min_windows_release:g} or later")
        parts.append(f"Python {self.min_python[0]}.{self.min_python[1]} or later")
        return "; ".join(parts)


def current_platform() -> PlatformInfo:
    return PlatformInfo(
        system=platform.system(),
        release=platform.release(),
        version=platform.version(),
        python=(sys.version_info.major, sys.version_info.minor),
    )


def windows_release_number(release: str) -> float | None:
    key = release.strip().lower()
    if key in _SERVER_RELEASES:
        return _SERVER_RELEASES[key]
    if "server" in key:
        # 2016Server and later share the Windows 10 kernel
        year = _RELEASE_NUMBER.match(key)
        return 10.0 if year and float(year.group(1)) >= 2016 else None
    match = _RELEASE_NUMBER.match(release.strip())
    return float(match.group(1)) if match else None


def ensure_supported(module: str, requirement: PlatformRequirement, info: PlatformInfo | None = None) -> PlatformInfo:
    info = info or current_platform()

    def fail(problem: str) -> UnsupportedPlatformError:
        return UnsupportedPlatformError(
            f"{module} cannot be loaded on {info.describe()}: {problem}. Requires {requirement.describe()}."
        )

    if info.system not in requirement.systems:
        raise fail(f"operating system {info.system or 'unknown'} is not supported")
    if info.system == "Windows":
        release = windows_release_number(info.release)
        if release is None or release < requirement.min_windows_release:
            raise fail(f"Windows release {info.release} is too old")
    if tuple(info.python) < tuple(requirement.min_python):
        raise fail("Python version is too old")
    return info
