"""Version utility module for the arena server."""

import re
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as distribution_version

from loguru import logger
from pydantic import BaseModel

DISTRIBUTION_NAME = "arena-server"
DEVELOPMENT_VERSION = "0.1.0-dev"


class VersionInfo(BaseModel):
    """Version information model."""

    full_version: str
    version: str
    post_count: str | None = None
    git_commit: str | None = None
    is_dirty: bool = False


def get_version() -> VersionInfo:
    """Get the installed distribution version, with a fallback for source checkouts.

    Returns:
        VersionInfo with the base version (e.g. "0.1.0") and, for
        setuptools-scm style versions such as "0.1.0.post5+gae22386.dirty",
        the post count, commit and dirty flag.
    """
    try:
        full_version = distribution_version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        logger.debug(f"Distribution {DISTRIBUTION_NAME} not installed, using {DEVELOPMENT_VERSION}")
        full_version = DEVELOPMENT_VERSION

    base_version, post_count, git_commit, is_dirty = parse_version(full_version)
    return VersionInfo(
        version=base_version,
        full_version=full_version,
        post_count=post_count,
        git_commit=git_commit,
        is_dirty=is_dirty,
    )


def parse_version(version: str) -> tuple[str, str | None, str | None, bool]:
    """Split a version string into base version, post count, commit and dirty flag.

    >>> parse_version("0.1.0.post11+ga524f7b.dirty")
    ('0.1.0', '11', 'a524f7b', True)
    >>> parse_version("1.2.3")
    ('1.2.3', None, None, False)
    """
    base_match = re.match(r"^(\d+\.\d+\.\d+)", version)
    post_match = re.search(r"\.post(\d+)", version)
    git_match = re.search(r"\+g([a-f0-9]+)", version)

    return (
        base_match.group(1) if base_match else version,
        post_match.group(1) if post_match else None,
        git_match.group(1) if git_match else None,
        ".dirty" in version,
    )
