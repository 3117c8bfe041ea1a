"""Dynamic SuperLU library detection.

Detects an installed ``libsuperlu`` shared library using multiple methods in
priority order:
1. pkg-config
2. ldconfig cache
3. Environment variables (SUPERLU_DIR, SUPERLU_ROOT)
4. ctypes.util.find_library
5. Filesystem search
"""

from __future__ import annotations

import ctypes.util
import glob
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass, field


@dataclass
class SuperLULibraryInfo:
    """Detected SuperLU library information."""

    path: str
    detection_method: str
    version: str = ""
    details: dict[str, str] = field(default_factory=dict)


def _library_name() -> str:
    if sys.platform == "darwin":
        return "libsuperlu.dylib"
    if sys.platform == "win32":
        return "superlu.dll"
    return "libsuperlu.so"


def _run_cmd(cmd: list[str], timeout: int = 5) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr)."""
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, timeout=timeout
        )
        return result.returncode, result.stdout.strip(), result.stderr.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        return -1, "", ""


def _has_pkg_config() -> bool:
    return shutil.which("pkg-config") is not None


def _has_ldconfig() -> bool:
    return shutil.which("ldconfig") is not None


def _first_file(patterns: list[str]) -> str | None:
    for pattern in patterns:
        for match in sorted(glob.glob(pattern)):
            if os.path.isfile(match):
                return match
    return None


_PKG_CONFIG_NAMES = ["superlu"]

_ENV_PREFIXES = ["SUPERLU_DIR", "SUPERLU_ROOT"]

_FILESYSTEM_PATHS = [
    "/usr/lib/x86_64-linux-gnu",
    "/usr/lib/aarch64-linux-gnu",
    "/usr/lib64",
    "/usr/lib",
    "/usr/local/lib",
    "/usr/local/lib64",
    "/opt/homebrew/lib",
    "/opt/local/lib",
]


def detect_pkg_config() -> SuperLULibraryInfo | None:
    """Ask pkg-config for the SuperLU library directory."""
    if not _has_pkg_config():
        return None
    name = _library_name()
    for pkg in _PKG_CONFIG_NAMES:
        rc, libdir, _ = _run_cmd(["pkg-config", "--variable=libdir", pkg])
        if rc != 0 or not libdir:
            continue
        lib_path = _first_file([os.path.join(libdir, name), os.path.join(libdir, name + ".*")])
        if lib_path:
            _, version, _ = _run_cmd(["pkg-config", "--modversion", pkg])
            return SuperLULibraryInfo(
                path=lib_path,
                detection_method=f"pkg-config ({pkg})",
                version=version,
            )
    return None


def detect_ldconfig() -> SuperLULibraryInfo | None:
    """Search the ldconfig cache."""
    if not _has_ldconfig():
        return None
    rc, stdout, _ = _run_cmd(["ldconfig", "-p"])
    if rc != 0:
        return None
    name = _library_name()
    for line in stdout.splitlines():
        if name in line and "=>" in line:
            path = line.split("=>")[-1].strip()
            if os.path.isfile(path):
                return SuperLULibraryInfo(path=path, detection_method="ldconfig")
    return None


def detect_environment() -> SuperLULibraryInfo | None:
    """Look under SUPERLU_DIR / SUPERLU_ROOT installation prefixes."""
    name = _library_name()
    for var in _ENV_PREFIXES:
        prefix = os.environ.get(var)
        if not prefix:
            continue
        patterns = []
        for subdir in ["lib", "lib64", ""]:
            base = os.path.join(prefix, subdir, name)
            patterns += [base, base + ".*"]
        lib_path = _first_file(patterns)
        if lib_path:
            return SuperLULibraryInfo(
                path=lib_path,
                detection_method=f"{var} environment",
                details={var: prefix},
            )
    return None


def detect_find_library() -> SuperLULibraryInfo | None:
    """Use the platform loader search from ctypes.util."""
    found = ctypes.util.find_library("superlu")
    if not found:
        return None
    return SuperLULibraryInfo(path=found, detection_method="ctypes.util.find_library")


def detect_filesystem() -> SuperLULibraryInfo | None:
    """Search standard library directories, including versioned sonames."""
    name = _library_name()
    patterns = []
    for path in _FILESYSTEM_PATHS:
        patterns += [os.path.join(path, name), os.path.join(path, name + ".*")]
    lib_path = _first_file(patterns)
    if lib_path:
        return SuperLULibraryInfo(path=lib_path, detection_method="filesystem")
    return None


_DETECTORS = {
    "pkg-config": detect_pkg_config,
    "ldconfig": detect_ldconfig,
    "environment": detect_environment,
    "find_library": detect_find_library,
    "filesystem": detect_filesystem,
}


def detect_all() -> dict[str, SuperLULibraryInfo]:
    """Run every detection method.

    Returns a dict mapping method name to the library it found.
    """
    found: dict[str, SuperLULibraryInfo] = {}
    for method, detector in _DETECTORS.items():
        result = detector()
        if result is not None:
            found[method] = result
    return found


def find_superlu() -> SuperLULibraryInfo | None:
    """Return the first library found, in priority order."""
    for detector in _DETECTORS.values():
        result = detector()
        if result is not None:
            return result
    return None
