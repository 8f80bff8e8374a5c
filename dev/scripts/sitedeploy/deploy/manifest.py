"""
Drush make file handling.

Parses the ``projects[...]`` declarations of a make file to find the
distribution profile, and rewrites that declaration so the build runs against
either a named remote branch or the local profile checkout. The rewritten
file is always restored byte for byte once the build is over.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from sitedeploy.core.errors import ManifestUnavailable
from sitedeploy.core.utils import log
from sitedeploy.deploy.models import Profile

PROFILE_DOWNLOAD_TYPES = ("git", "copy")

_KEY_PATTERN = re.compile(r"^([^\[\s=]+)((?:\[[^\]]*\])*)\s*=\s*(.*)$")
_SUBKEY_PATTERN = re.compile(r"\[([^\]]*)\]")


# =============================================================================
# Parsing
# =============================================================================


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    # Trailing comments are only recognised on unquoted values.
    return value.split(" ;", 1)[0].rstrip()


def parse_make(text: str) -> dict[str, Any]:
    """Parse drush make INI syntax into nested dicts.

    ``projects[views][version] = 3.0`` becomes
    ``{"projects": {"views": {"version": "3.0"}}}``; ``[]`` appends a list
    entry keyed by the next free integer index.
    """
    data: dict[str, Any] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(";") or line.startswith("#"):
            continue
        match = _KEY_PATTERN.match(line)
        if not match:
            continue
        key, subkeys, value = match.groups()
        path = [key] + _SUBKEY_PATTERN.findall(subkeys)
        _assign(data, path, _unquote(value))
    return data


def _assign(data: dict[str, Any], path: list[str], value: str) -> None:
    node = data
    for i, part in enumerate(path):
        if part == "":
            part = str(_next_index(node))
        if i == len(path) - 1:
            node[part] = value
            return
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child


def _next_index(node: dict[str, Any]) -> int:
    indices = [int(k) for k in node if k.isdigit()]
    return max(indices) + 1 if indices else 0


def extract_profile_declaration(manifest_text: str) -> Optional[Profile]:
    """Return the first ``type = profile`` project fetched by git or copy."""
    projects = parse_make(manifest_text).get("projects")
    if not isinstance(projects, dict):
        return None

    for name, info in projects.items():
        if not isinstance(info, dict) or info.get("type") != "profile":
            continue
        download = info.get("download")
        if not isinstance(download, dict):
            continue
        if download.get("type") not in PROFILE_DOWNLOAD_TYPES:
            continue
        return Profile(
            name=name,
            url=download.get("url", ""),
            download_type=download["type"],
            branch=download.get("branch"),
            tag=download.get("tag"),
        )
    return None


def read_profile(manifest_path: Path) -> Optional[Profile]:
    """Profile declared by the make file at ``manifest_path``, if any."""
    if not manifest_path.exists():
        return None
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestUnavailable(f"Could not read {manifest_path}: {e}") from e
    return extract_profile_declaration(text)


# =============================================================================
# Patching
# =============================================================================


@dataclass(frozen=True)
class BranchOverride:
    """Build against a remote branch of the profile."""

    ref: str


@dataclass(frozen=True)
class LocalCopy:
    """Build against the local checkout of the profile."""

    path: Path


PatchMode = Union[BranchOverride, LocalCopy]


def _download_line(name: str, field_name: str) -> re.Pattern[str]:
    key = rf"projects\[{re.escape(name)}\]\[download\]\[{re.escape(field_name)}\]"
    return re.compile(rf"^([ \t]*{key}[ \t]*=)[ \t]*([^\r\n]*)", re.MULTILINE)


def _set_download_value(text: str, name: str, field_name: str, value: str) -> str:
    return _download_line(name, field_name).sub(lambda m: f"{m.group(1)} {value}", text)


def patch_for_local_build(manifest_text: str, profile: Profile, mode: PatchMode) -> str:
    """Rewrite the profile's download declaration for ``mode``.

    ``BranchOverride`` only replaces the branch value. ``LocalCopy`` blanks the
    branch line and points a ``copy`` download at the local checkout.
    """
    if isinstance(mode, BranchOverride):
        return _set_download_value(manifest_text, profile.name, "branch", mode.ref)

    text = _download_line(profile.name, "branch").sub("", manifest_text)
    text = _set_download_value(text, profile.name, "url", str(mode.path))
    return _set_download_value(text, profile.name, "type", "copy")


def restore(manifest_path: Path, original: bytes) -> None:
    """Write the original make file content back, unconditionally."""
    manifest_path.write_bytes(original)


@contextmanager
def patched_manifest(manifest_path: Path, profile: Profile, mode: PatchMode) -> Iterator[str]:
    """Patch the make file for the duration of the block.

    The original bytes are captured before anything is written and restored
    on every exit path, including build failures and interrupts.
    """
    try:
        original = manifest_path.read_bytes()
        text = original.decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestUnavailable(f"Could not read {manifest_path}: {e}") from e

    patched = patch_for_local_build(text, profile, mode)
    try:
        manifest_path.write_bytes(patched.encode("utf-8"))
        if isinstance(mode, BranchOverride):
            log.info(f"Make file points {profile.name} at branch {mode.ref}")
        else:
            log.info(f"Make file points {profile.name} at {mode.path}")
        yield patched
    finally:
        restore(manifest_path, original)
        log.debug(f"Restored {manifest_path}")
