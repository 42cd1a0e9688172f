"""The caller identity threaded explicitly through every service call."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Actor:
    id: str
    role: str

    def has_role(self, *roles: str) -> bool:
        return self.role in roles
