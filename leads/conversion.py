"""Promotion of captured leads to accounts."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from accounts import policy
from accounts.exceptions import AlreadyConverted, SubmissionNotFound
from accounts.models import Account
from accounts.provisioning import AccountProvisioner

logger = logging.getLogger(__name__)


class SubmissionConverter:
    """Pre-fills account fields from a submission and hands off to the provisioner.

    The account is always created before the submission is flagged. If an
    earlier attempt created the account but could not flag the submission,
    converting again only sets the flag.
    """

    def __init__(self, provisioner: AccountProvisioner, submissions, profiles) -> None:
        self.provisioner = provisioner
        self.submissions = submissions
        self.profiles = profiles

    def convert(
        self,
        requester_role: str,
        submission_id,
        overrides: Dict[str, Any],
        requester_id: Optional[str] = None,
    ) -> str:
        policy.require(requester_role, policy.CONVERT_SUBMISSION, actor_id=requester_id)
        submission = self.submissions.get(submission_id)
        if submission is None:
            raise SubmissionNotFound()
        if submission.converted:
            raise AlreadyConverted()

        existing = self.profiles.query_by_field("created_from", submission.id)
        if existing:
            identity_id = existing[0].uid
            logger.info("Submission %s already has account %s; flagging only", submission.id, identity_id)
            self.provisioner.mark_converted(submission.id, identity_id)
            return identity_id

        fields = {
            "email": submission.email,
            "username": submission.name,
            "role": Account.USER,
            "phone": submission.phone,
            "company": submission.company,
        }
        fields.update({key: value for key, value in overrides.items() if value is not None})
        return self.provisioner.convert_submission(
            requester_role, submission.id, fields, requester_id=requester_id
        )
