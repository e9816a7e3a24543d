"""Submission store backed by the ``Submission`` table."""
from __future__ import annotations

from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError
from django.db import DatabaseError

from accounts.exceptions import StoreUnreachable, SubmissionNotFound

from .models import Submission


class DjangoSubmissionStore:
    def get(self, submission_id) -> Optional[Submission]:
        try:
            return Submission.objects.filter(id=submission_id).first()
        except ValidationError:
            return None
        except DatabaseError as exc:
            raise StoreUnreachable() from exc

    def update(self, submission_id, fields: Dict[str, Any]) -> None:
        try:
            updated = Submission.objects.filter(id=submission_id).update(**fields)
        except DatabaseError as exc:
            raise StoreUnreachable() from exc
        if not updated:
            raise SubmissionNotFound()
