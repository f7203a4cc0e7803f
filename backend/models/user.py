import uuid
from dataclasses import dataclass
import enum


class UserRole(str, enum.Enum):
    reporter = "reporter"
    fixer = "fixer"
    arbiter = "arbiter"


# Accounts live in the auth service; the workflow only sees who is acting.
@dataclass(frozen=True)
class Actor:
    id: uuid.UUID
    role: UserRole
    username: str = ""

    @property
    def label(self) -> str:
        return self.username or str(self.id)
