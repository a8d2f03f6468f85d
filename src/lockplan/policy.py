"""Gate policy: explicit license and package allow-lists."""

from __future__ import annotations

import re
from dataclasses import dataclass

from lockplan.errors import RestrictedPackageError
from lockplan.manifest.model import PackageNode

DEFAULT_ALLOWED_LICENSES = frozenset(
    {
        "0BSD",
        "Apache-2.0",
        "Apache-2.0 WITH LLVM-exception",
        "BlueOak-1.0.0",
        "BSD-2-Clause",
        "BSD-3-Clause",
        "BSL-1.0",
        "CC0-1.0",
        "ISC",
        "MIT",
        "MPL-2.0",
        "Unicode-DFS-2016",
        "Unlicense",
        "Zlib",
    }
)

_OR_SPLIT = re.compile(r"\s+OR\s+|/")
_AND_SPLIT = re.compile(r"\s+AND\s+")


@dataclass(frozen=True, slots=True)
class GatePolicy:
    allowed_licenses: frozenset[str] = DEFAULT_ALLOWED_LICENSES
    allowed_packages: frozenset[str] = frozenset()

    def permits(self, node: PackageNode) -> bool:
        if node.name in self.allowed_packages:
            return True
        if node.license is None:
            return False
        if node.license in self.allowed_licenses:
            return True
        return any(
            all(term in self.allowed_licenses for term in alternative)
            for alternative in license_alternatives(node.license)
        )

    def ensure_permitted(self, node: PackageNode) -> None:
        if self.permits(node):
            return
        raise RestrictedPackageError(
            "Package is restricted by the gate policy.",
            package=node.name,
            license=node.license,
            hint="Add the license tag to allowed_licenses or the package to allowed_packages.",
            context={"version": node.version},
        )

    def allowing(self, *licenses: str) -> GatePolicy:
        return GatePolicy(
            allowed_licenses=self.allowed_licenses | frozenset(licenses),
            allowed_packages=self.allowed_packages,
        )

    def without(self, *licenses: str) -> GatePolicy:
        return GatePolicy(
            allowed_licenses=self.allowed_licenses - frozenset(licenses),
            allowed_packages=self.allowed_packages,
        )


def license_alternatives(tag: str) -> list[tuple[str, ...]]:
    """Split an SPDX-style expression into alternatives of required terms.

    ``MIT OR Apache-2.0`` and ``MIT/Apache-2.0`` give two alternatives;
    ``MIT AND Zlib`` gives one alternative with two terms. Parentheses are
    ignored; ``AND`` binds tighter than ``OR``.
    """
    stripped = tag.replace("(", " ").replace(")", " ").strip()
    if not stripped:
        return []
    alternatives: list[tuple[str, ...]] = []
    for alternative in _OR_SPLIT.split(stripped):
        terms = tuple(term.strip() for term in _AND_SPLIT.split(alternative) if term.strip())
        if terms:
            alternatives.append(terms)
    return alternatives
