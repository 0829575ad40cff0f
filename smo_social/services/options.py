# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

from datetime import timedelta
from typing import Any
from sqlalchemy.orm import Session

from smo_social.models import Option, Transient
from smo_social.services.dates import utcnow, as_utc

class OptionStore:
    """
    Persistent site options plus expiring transients.

    Options hold admin-editable settings (e.g. the memory monitor config).
    Transients are short-lived cache entries: analytics results, rate-limit
    counters, permission lookups.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_option(self, name: str, default: Any = None) -> Any:
        row = self.db.query(Option).filter(Option.name == name).first()
        if row is None:
            return default
        return row.value

    def update_option(self, name: str, value: Any) -> bool:
        row = self.db.query(Option).filter(Option.name == name).first()
        if row is None:
            self.db.add(Option(name=name, value=value))
        elif row.value == value:
            return False
        else:
            row.value = value
        self.db.commit()
        return True

    def delete_option(self, name: str) -> bool:
        deleted = self.db.query(Option).filter(Option.name == name).delete()
        self.db.commit()
        return deleted > 0

    def get_transient(self, name: str, default: Any = None) -> Any:
        row = self.db.query(Transient).filter(Transient.name == name).first()
        if row is None:
            return default
        if row.expires_at is not None and as_utc(row.expires_at) <= utcnow():
            self.db.delete(row)
            self.db.commit()
            return default
        return row.value

    def set_transient(self, name: str, value: Any, ttl: int = 0) -> None:
        expires_at = utcnow() + timedelta(seconds=ttl) if ttl > 0 else None
        row = self.db.query(Transient).filter(Transient.name == name).first()
        if row is None:
            self.db.add(Transient(name=name, value=value, expires_at=expires_at))
        else:
            row.value = value
            row.expires_at = expires_at
        self.db.commit()

    def delete_transient(self, name: str) -> bool:
        deleted = self.db.query(Transient).filter(Transient.name == name).delete()
        self.db.commit()
        return deleted > 0

    def increment_counter(self, name: str, ttl: int) -> int:
        """Bump a cache-based counter; the window starts on the first hit and is not extended."""
        row = self.db.query(Transient).filter(Transient.name == name).first()
        now = utcnow()
        if row is None or (row.expires_at is not None and as_utc(row.expires_at) <= now):
            if row is not None:
                self.db.delete(row)
                self.db.flush()
            self.db.add(Transient(name=name, value=1, expires_at=now + timedelta(seconds=ttl)))
            self.db.commit()
            return 1

        row.value = int(row.value or 0) + 1
        self.db.commit()
        return row.value

    def purge_expired_transients(self) -> int:
        now = utcnow()
        expired = [
            t for t in self.db.query(Transient).filter(Transient.expires_at != None).all()
            if as_utc(t.expires_at) <= now
        ]
        for t in expired:
            self.db.delete(t)
        self.db.commit()
        return len(expired)
