from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.note import Note


def require_note_owned(db: Session, user_id, note_id: int) -> Note:
    note = db.query(Note).filter(Note.id == note_id, Note.user_id == user_id).first()
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note
