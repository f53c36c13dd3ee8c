from pydantic import BaseModel
from typing import List, Literal, Optional


class ModerationResult(BaseModel):
    status: Literal["OK", "BLOCKED"] = "OK"
    reason: Optional[str] = None
    blocked_words: List[str] = []

    @property
    def blocked(self) -> bool:
        return self.status == "BLOCKED"
