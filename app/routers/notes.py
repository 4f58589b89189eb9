import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_user
from app.core.permissions import require_note_owned
from app.db.session import get_db
from app.models.note import Note
from app.models.user import User
from app.schemas.note import (
    NoteCreate,
    NoteCreatedOut,
    NoteDeleteIn,
    NoteDeletedOut,
    NoteFetchOut,
    NoteListOut,
    NoteOut,
)

router = APIRouter(prefix="/notes", tags=["notes"])
logger = logging.getLogger("app.notes")


def _note_out(n: Note) -> NoteOut:
    return NoteOut(id=n.id, note=n.note, created_at=n.created_at)


@router.post("", response_model=NoteCreatedOut, status_code=201)
@router.post("/create", response_model=NoteCreatedOut, status_code=201, include_in_schema=False)
def create_note(
    payload: NoteCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    note = Note(user_id=user.id, note=payload.note)
    db.add(note)
    db.commit()
    db.refresh(note)

    return NoteCreatedOut(message="Note created successfully", note=_note_out(note))


def _own_notes(db: Session, user: User) -> list[NoteOut]:
    notes = (
        db.query(Note)
        .filter(Note.user_id == user.id)
        .order_by(Note.created_at.desc(), Note.id.desc())
        .all()
    )
    return [_note_out(n) for n in notes]


@router.get("", response_model=NoteListOut)
def list_notes(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return NoteListOut(message="Fetched notes successfully", notes=_own_notes(db, user))


# older clients read the list from "body"
@router.get("/fetch", response_model=NoteFetchOut, include_in_schema=False)
def fetch_notes(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return NoteFetchOut(message="Fetched notes successfully", body=_own_notes(db, user))


@router.delete("", response_model=NoteDeletedOut)
@router.delete("/delete", response_model=NoteDeletedOut, include_in_schema=False)
def delete_notes(
    payload: NoteDeleteIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    # ids owned by someone else are silently skipped
    deleted = (
        db.query(Note)
        .filter(Note.id.in_(payload.ids), Note.user_id == user.id)
        .delete(synchronize_session=False)
    )
    if deleted == 0:
        db.rollback()
        raise HTTPException(status_code=404, detail="No notes found to delete")

    db.commit()
    logger.info("Deleted %s note(s) user=%s", deleted, user.id)
    return NoteDeletedOut(
        message=f"{deleted} note(s) deleted successfully", deleted=deleted
    )


@router.delete("/{note_id}", status_code=204)
def delete_note(
    note_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    note = require_note_owned(db, user.id, note_id)
    db.delete(note)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
