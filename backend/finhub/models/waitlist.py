"""
waitlist.py — ORM Model for Waitlist Signups

One row per email address collected from the public signup page.
"""

import datetime

from sqlalchemy import Column, DateTime, Integer, String

from finhub.models.base import Base


class WaitlistEmail(Base):
    __tablename__ = "waitlist_emails"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.datetime.now(datetime.timezone.utc),
    )

    def __repr__(self):
        return f"<WaitlistEmail {self.email}>"
