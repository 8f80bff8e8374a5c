"""
Profile symlinks inside a built web root.

After a build against a local profile checkout, the profile files copied into
``<www>/profiles/<name>`` are replaced by relative symlinks into the checkout
under the profiles root, so edits in the checkout are live on the site.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from sitedeploy.core.errors import SymlinkApplyError
from sitedeploy.core.utils import log

PROFILE_FILE_EXTENSIONS = (".info", ".profile", ".install", ".make")
LINKED_DIRECTORIES = ("modules", "themes")
# Contributed code comes from the build itself and is never shadowed.
EXCLUDED_ENTRIES = frozenset({".", "..", "contrib"})

RESOURCES_DIR = "resources"
SETTINGS_DIR = "settings"
TEST_OBJECT_FILE = "sureroute-test-object.html"
HUMANS_FILE = "humans.txt"

SymlinkMap = dict[Path, Path]


# =============================================================================
# Planning
# =============================================================================


def plan_profile_symlinks(profile_name: str, profiles_root: Path, www_dir: Path) -> SymlinkMap:
    """Map web root paths to the profile checkout paths they should link to.

    Keys are the paths to remove from the built tree; values are the files in
    the checkout that replace them.
    """
    checkout = profiles_root / profile_name
    in_tree = www_dir / "profiles" / profile_name
    link_map: SymlinkMap = {}

    for ext in PROFILE_FILE_EXTENSIONS:
        filename = f"{profile_name}{ext}"
        link_map[in_tree / filename] = checkout / filename

    # e.g. modules/custom, modules/features, themes/<theme>
    for category in LINKED_DIRECTORIES:
        source_dir = checkout / category
        if not source_dir.is_dir():
            continue
        for entry in sorted(os.listdir(source_dir)):
            if entry in EXCLUDED_ENTRIES:
                continue
            link_map[in_tree / category / entry] = source_dir / entry

    # Older profiles keep their resources at the top level of the profile.
    resource_root = Path(RESOURCES_DIR) if (in_tree / RESOURCES_DIR).is_dir() else Path()

    link_map[in_tree / resource_root / SETTINGS_DIR] = checkout / resource_root / SETTINGS_DIR
    for filename in (TEST_OBJECT_FILE, HUMANS_FILE):
        target = checkout / resource_root / filename
        link_map[in_tree / resource_root / filename] = target
        link_map[www_dir / filename] = target

    return link_map


# =============================================================================
# Applying
# =============================================================================


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree; missing paths are fine."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def relative_link(original: Path, target: Path) -> str:
    """Path from ``original``'s real parent directory to ``target``."""
    return os.path.relpath(os.path.realpath(target), os.path.realpath(original.parent))


def apply_symlinks(link_map: SymlinkMap) -> int:
    """Replace every key of ``link_map`` with a relative symlink to its value.

    Not atomic: a failure leaves earlier links in place. Re-running with a
    freshly planned map converges to the same tree.
    """
    for original in link_map:
        try:
            remove_path(original)
        except OSError as e:
            raise SymlinkApplyError(original, str(e)) from e

    for original, target in link_map.items():
        link = relative_link(original, target)
        try:
            os.symlink(link, original)
        except OSError as e:
            raise SymlinkApplyError(original, e.strerror or str(e)) from e
        log.debug(f"{original} -> {link}")

    return len(link_map)
