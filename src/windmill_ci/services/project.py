"""Project identity."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Project:
    """A source repository the daemon builds. Two projects are equal when name and origin match."""

    name: str
    scheme: str = field(default="", compare=False)
    origin: str = ""
    is_workspace: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name or "/" in self.name:
            raise ValueError(f"Invalid project name: {self.name!r}")
        if not self.scheme:
            object.__setattr__(self, "scheme", self.name)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "scheme": self.scheme,
            "origin": self.origin,
            "is_workspace": self.is_workspace,
        }
