"""
Scope — Applicability of catalog entries to the current directory

An entry with no scopes applies everywhere. Otherwise any one scope token
must be satisfied:
- laravel / project:laravel / framework:laravel: an 'artisan' file in cwd
  or an ancestor
- composer / project:composer / tool:composer: a 'composer.json' in cwd or
  an ancestor
- anything else: a glob pattern matched against cwd and the detected
  project roots (fnmatch, '*' crosses directory separators)
"""

import fnmatch
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional


LARAVEL_SCOPES = ("laravel", "project:laravel", "framework:laravel")
COMPOSER_SCOPES = ("composer", "project:composer", "tool:composer")

# Lets "**/app/**" match a Laravel root even though app/ itself is a directory
SCOPE_MARKER = "__fzc_scope_marker__"


def find_upwards(start: Path, marker: str) -> Optional[Path]:
    """First directory from start upwards containing a file named marker."""
    start = Path(start)
    for directory in [start, *start.parents]:
        if (directory / marker).is_file():
            return directory
    return None


def detect_laravel_root(start: Path) -> Optional[Path]:
    return find_upwards(start, "artisan")


def detect_composer_root(start: Path) -> Optional[Path]:
    return find_upwards(start, "composer.json")


@dataclass(frozen=True)
class ScopeEnvironment:
    """Directory facts scope tokens are tested against."""
    cwd: Path
    laravel_root: Optional[Path] = None
    composer_root: Optional[Path] = None

    @classmethod
    def detect(cls, cwd: Path) -> 'ScopeEnvironment':
        cwd = Path(cwd)
        return cls(
            cwd=cwd,
            laravel_root=detect_laravel_root(cwd),
            composer_root=detect_composer_root(cwd),
        )

    def candidates(self) -> List[str]:
        """Paths glob scopes are matched against, as POSIX strings."""
        paths = [self.cwd]
        if self.laravel_root is not None:
            paths.extend([
                self.laravel_root,
                self.laravel_root / "app",
                self.laravel_root / "app" / SCOPE_MARKER,
                self.laravel_root / "artisan",
            ])
        if self.composer_root is not None:
            paths.extend([self.composer_root, self.composer_root / "composer.json"])
        return [path.as_posix() for path in paths]

    def satisfies(self, token: str) -> bool:
        """Whether a single scope token holds here."""
        normalized = token.strip().lower()
        if not normalized:
            return False
        if normalized in LARAVEL_SCOPES:
            return self.laravel_root is not None
        if normalized in COMPOSER_SCOPES:
            return self.composer_root is not None
        pattern = token.strip()
        return any(fnmatch.fnmatchcase(candidate, pattern) for candidate in self.candidates())


def matches_scope(scopes: Iterable[str], environment: ScopeEnvironment) -> bool:
    """True when scopes is empty or any token is satisfied."""
    scopes = list(scopes)
    if not scopes:
        return True
    return any(environment.satisfies(token) for token in scopes)
