"""Semantic version parsing and precedence (SemVer 2.0)."""

import re
from dataclasses import dataclass, field
from functools import total_ordering
from typing import Any, Tuple, Union

_SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)

_Identifier = Tuple[int, Union[int, str]]


@total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """A parsed semantic version.

    Ordering follows SemVer precedence: numeric comparison of
    major/minor/patch, a release outranks any of its pre-releases, and
    pre-release identifiers compare numerically when both are numeric,
    lexically otherwise. Build metadata is ignored for ordering and
    equality.

    Example:
        >>> SemanticVersion.parse("3.1.9") < SemanticVersion.parse("3.1.10")
        True
    """

    major: int
    minor: int
    patch: int
    prerelease: Tuple[str, ...] = ()
    build: Tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def parse(cls, text: str) -> "SemanticVersion":
        """Parse a version string.

        Raises:
            ValueError: If text is not a valid semantic version
        """
        match = _SEMVER_RE.match(text.strip())
        if match is None:
            raise ValueError(f"Invalid semantic version: {text!r}")

        prerelease = match.group("prerelease")
        build = match.group("build")
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            prerelease=tuple(prerelease.split(".")) if prerelease else (),
            build=tuple(build.split(".")) if build else (),
        )

    @classmethod
    def try_parse(cls, text: str) -> "SemanticVersion | None":
        """Parse a version string, returning None when it is invalid."""
        try:
            return cls.parse(text)
        except ValueError:
            return None

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def _precedence_key(self) -> Tuple[Any, ...]:
        if not self.prerelease:
            # (1,) sorts above any (0, ...) pre-release tuple
            release_key: Tuple[Any, ...] = (1,)
        else:
            ids: Tuple[_Identifier, ...] = tuple(
                (0, int(part)) if part.isdigit() else (1, part)
                for part in self.prerelease
            )
            release_key = (0, ids)
        return (self.major, self.minor, self.patch, release_key)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._precedence_key() < other._precedence_key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._precedence_key() == other._precedence_key()

    def __hash__(self) -> int:
        return hash(self._precedence_key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text
