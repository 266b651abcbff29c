from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from packaging.specifiers import SpecifierSet
from packaging.utils import canonicalize_name
from pydantic import BaseModel, ConfigDict, Field, field_validator

SUPPORTED_HASH_ALGORITHMS = ("md5", "sha1", "sha224", "sha256", "sha384", "sha512")


class BuildConstraint(BaseModel):
    """A single constraint entry: name, version specifier and allowed hashes."""

    model_config = ConfigDict(frozen=True)

    name: str
    specifier: str = ""
    hashes: List[str] = Field(default_factory=list)

    @field_validator("specifier")
    @classmethod
    def valid_specifier(cls, value: str) -> str:
        return str(SpecifierSet(value))

    @field_validator("hashes")
    @classmethod
    def valid_hashes(cls, value: List[str]) -> List[str]:
        """Validate `<algorithm>:<hex>` digests and lowercase them."""
        normalized = []
        for digest in value:
            algorithm, sep, hexdigest = digest.partition(":")
            if not sep or not hexdigest:
                raise ValueError(f"hash `{digest}` must have the form <algorithm>:<hex>")
            algorithm = algorithm.lower()
            if algorithm not in SUPPORTED_HASH_ALGORITHMS:
                raise ValueError(
                    f"unsupported hash algorithm `{algorithm}`; expected one of: "
                    f"{', '.join(SUPPORTED_HASH_ALGORITHMS)}"
                )
            normalized.append(f"{algorithm}:{hexdigest.lower()}")
        return normalized

    @property
    def normalized_name(self) -> str:
        return canonicalize_name(self.name)

    @property
    def specifier_set(self) -> SpecifierSet:
        return SpecifierSet(self.specifier)

    @property
    def pinned_version(self) -> Optional[str]:
        """The version of a single `==` clause, if this constraint is an exact pin."""
        specs = list(self.specifier_set)
        if len(specs) == 1 and specs[0].operator in ("==", "===") and "*" not in specs[0].version:
            return specs[0].version
        return None

    def __str__(self) -> str:
        return f"{self.name}{self.specifier}"


@dataclass
class BuildConstraints:
    """Constraints keyed by normalized package name."""

    entries: Dict[str, BuildConstraint] = field(default_factory=dict)

    @classmethod
    def from_entries(cls, entries: Iterable[BuildConstraint]) -> "BuildConstraints":
        merged: Dict[str, BuildConstraint] = {}
        for entry in entries:
            key = entry.normalized_name
            existing = merged.get(key)
            if existing is None:
                merged[key] = entry
                continue
            specifier = SpecifierSet(existing.specifier) & SpecifierSet(entry.specifier)
            hashes = list(dict.fromkeys([*existing.hashes, *entry.hashes]))
            merged[key] = BuildConstraint(
                name=existing.name, specifier=str(specifier), hashes=hashes
            )
        return cls(entries=merged)

    def get(self, name: str) -> Optional[BuildConstraint]:
        return self.entries.get(canonicalize_name(name))

    def hashes_for(self, name: str) -> List[str]:
        entry = self.get(name)
        return list(entry.hashes) if entry else []

    def __iter__(self):
        return iter(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)
