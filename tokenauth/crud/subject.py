# tokenauth/crud/subject.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from tokenauth.core.passwords import hasher
from tokenauth.models.subject import Subject, SUBJECT_ACTIVE, SUBJECT_DISABLED


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


class CRUDSubject:
    def get(self, db: Session, id: int) -> Optional[Subject]:
        return db.get(Subject, id)

    def get_by_username(self, db: Session, username: str) -> Optional[Subject]:
        return db.execute(
            select(Subject).where(Subject.username == normalize_username(username))
        ).scalar_one_or_none()

    def get_by_external_id(self, db: Session, external_id: str) -> Optional[Subject]:
        return db.execute(select(Subject).where(Subject.external_id == external_id)).scalar_one_or_none()

    def create(self, db: Session, *, username: str, password: str) -> Subject:
        subject = Subject(
            username=normalize_username(username),
            hashed_password=hasher.hash(password),
            status=SUBJECT_ACTIVE,
        )
        db.add(subject); db.commit(); db.refresh(subject)
        return subject

    def set_password_hash(self, db: Session, subject: Subject, new_hash: str) -> None:
        subject.hashed_password = new_hash
        db.add(subject); db.commit()

    def disable(self, db: Session, subject: Subject) -> Subject:
        subject.status = SUBJECT_DISABLED
        db.add(subject); db.commit(); db.refresh(subject)
        return subject


subject_crud = CRUDSubject()
