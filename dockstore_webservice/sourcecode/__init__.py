"""Source-control capability consumed by refresh."""

from .base import (
    GitCoordinates,
    SourceCodeRepo,
    SourceCodeRepoFactory,
    build_git_url,
    parse_git_url,
)

__all__ = [
    "GitCoordinates",
    "SourceCodeRepo",
    "SourceCodeRepoFactory",
    "build_git_url",
    "parse_git_url",
]
