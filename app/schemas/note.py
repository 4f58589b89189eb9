from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator


class NoteCreate(BaseModel):
    note: str = Field(min_length=1, max_length=10000)

    @field_validator("note")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Note must not be empty")
        return v


class NoteDeleteIn(BaseModel):
    ids: list[int] = Field(min_length=1)


class NoteOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    note: str
    created_at: datetime | None = Field(default=None, alias="createdAt")


class NoteCreatedOut(BaseModel):
    message: str
    note: NoteOut


class NoteListOut(BaseModel):
    message: str
    notes: list[NoteOut]


class NoteFetchOut(BaseModel):
    message: str
    body: list[NoteOut]


class NoteDeletedOut(BaseModel):
    message: str
    deleted: int
