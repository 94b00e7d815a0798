from typing import List, Optional

from pydantic import BaseModel, Field

from session_service import SetEntry


class SetEntryIn(BaseModel):
    lift_id: int
    set_number: int = Field(1, ge=1)
    weight: Optional[float] = None
    reps: Optional[int] = None
    duration_seconds: Optional[int] = None

    def to_entry(self) -> SetEntry:
        return SetEntry(
            self.lift_id, self.set_number, self.weight, self.reps, self.duration_seconds
        )


class LogSetsRequest(BaseModel):
    sets: List[SetEntryIn] = []
    finish: bool = False


class SanityCheckRequest(BaseModel):
    sets: List[SetEntryIn] = []


class StartSessionRequest(BaseModel):
    workout_id: int


class AddLiftRequest(BaseModel):
    lift_id: int
