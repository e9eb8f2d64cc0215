"""
waitlist.py — Public waitlist signup.

POST /waitlist {"email": "..."} → 201 on insert, 409 when already registered.
"""

import re
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from finhub.core.database import get_db
from finhub.core.errors import ApiError
from finhub.core.logging import get_logger
from finhub.models.waitlist import WaitlistEmail

logger = get_logger(__name__)

router = APIRouter(tags=["waitlist"])

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class WaitlistRequest(BaseModel):
    email: Optional[str] = None


@router.post("/waitlist", status_code=status.HTTP_201_CREATED)
def join_waitlist(body: WaitlistRequest, db: Session = Depends(get_db)):
    email = (body.email or "").strip().lower()
    if not _EMAIL.match(email):
        raise ApiError(400, "A valid email is required")

    db.add(WaitlistEmail(email=email))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ApiError(409, "Email already registered")

    logger.info("New waitlist signup")
    return {"success": True, "email": email}
