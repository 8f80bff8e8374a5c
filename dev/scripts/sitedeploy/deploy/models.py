"""
Data model for a deployment run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from sitedeploy.core.utils import slugify


@dataclass(frozen=True)
class Project:
    """A remote-hosted project. Read-only for the duration of a run."""

    id: str
    title: str = ""
    region: str = ""
    site_code: str = ""
    git_url: Optional[str] = None
    github_url: Optional[str] = None

    @property
    def code(self) -> str:
        """Internal short code naming the project's directory."""
        return self.site_code or self.id

    @property
    def label(self) -> str:
        return f"{self.title} ({self.id})" if self.title else self.id

    def db_slug(self) -> str:
        """Title slug usable in a database name, falling back to the id."""
        if self.title:
            return slugify(self.title).replace("-", "_")
        return self.id


@dataclass(frozen=True)
class Environment:
    id: str
    title: str = ""


@dataclass(frozen=True)
class Profile:
    """A distribution profile declared in the project's make file."""

    name: str
    url: str = ""
    download_type: str = "git"
    branch: Optional[str] = None
    tag: Optional[str] = None


@dataclass(frozen=True)
class AppInfo:
    """The application inside a project, as the data-sync step needs it."""

    name: str
    repository_dir: Path
    www_dir: Path


@dataclass
class DeploymentContext:
    """Mutable record of one run. Built up step by step, never persisted."""

    project: Project
    root_dir: Path
    repository_dir: Optional[Path] = None
    www_dir: Optional[Path] = None
    legacy: bool = False
    site_just_fetched: bool = False
    profile_just_fetched: bool = False
    profile: Optional[Profile] = None
    indices_created: list[str] = field(default_factory=list)
