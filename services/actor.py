from dataclasses import dataclass
from typing import Optional

ROLE_STUDENT = "student"
ROLE_TUTOR = "tutor"


@dataclass(frozen=True)
class Actor:
    """Who is calling into the core. Built by the web layer, never read from globals."""

    user_id: int
    role: str
    tutor_id: Optional[int] = None

    @property
    def is_tutor(self) -> bool:
        return self.role == ROLE_TUTOR

    @property
    def is_student(self) -> bool:
        return self.role == ROLE_STUDENT
