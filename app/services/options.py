from __future__ import annotations

import copy
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import PersistenceError
from app.models.option import Option


class OptionStore:
    """Host configuration storage: one JSON value per option name.

    Reads always hit the database (``populate_existing``) so a value written by
    another request is never served from this session's identity map.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, name: str, default: Any = None) -> Any:
        row = self.db.get(Option, name, populate_existing=True)
        if row is None:
            return copy.deepcopy(default)
        return copy.deepcopy(row.value)

    def exists(self, name: str) -> bool:
        return self.db.get(Option, name, populate_existing=True) is not None

    def set(self, name: str, value: Any, *, commit: bool = True) -> None:
        row = self.db.get(Option, name)
        if row is None:
            row = Option(name=name, value=value)
        else:
            row.value = copy.deepcopy(value)
        self.db.add(row)
        if commit:
            self.commit()

    def delete(self, name: str, *, commit: bool = True) -> bool:
        row = self.db.get(Option, name)
        if row is None:
            return False
        self.db.delete(row)
        if commit:
            self.commit()
        return True

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Option write failed: {exc.__class__.__name__}") from exc
