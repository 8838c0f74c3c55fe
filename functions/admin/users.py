# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""Admin-only user management: password changes and welcome links."""

import logging
from dataclasses import asdict

from firebase_functions import https_fn
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from admin.authz import Caller, require_admin
from shared.constants import MIN_PASSWORD_LENGTH
from shared.errors import (
    internal_errors,
    invalid_argument,
    require_object,
    require_string,
)
from shared.firebase_constants import AUDIT_LOGS_COLLECTION, USERS_COLLECTION
from shared.json_utils import convert_keys
from shared.types import AuditAction, AuditLogEntry, User, from_snapshot

logger = logging.getLogger(__name__)


def append_audit_log(
    db,
    action: AuditAction,
    caller: Caller,
    target_user_id: str,
    target_user_email: str | None,
) -> None:
    """Appends one entry to the audit log. Entries are never updated."""
    entry = AuditLogEntry(
        action=action.value,
        performed_by=caller.uid,
        performed_by_email=caller.email,
        target_user_id=target_user_id,
        target_user_email=target_user_email,
        timestamp=SERVER_TIMESTAMP,
    )
    db.collection(AUDIT_LOGS_COLLECTION).add(
        convert_keys(asdict(entry), "snake_to_camel")
    )


@internal_errors("change password")
def change_user_password(db, auth_client, caller: Caller, data: dict) -> dict:
    """
    Sets a new password on another user's Firebase Auth account.

    Args:
        db: Firestore client.
        auth_client: The `firebase_admin.auth` module (or a stand-in).
        caller (Caller): The authenticated admin making the request.
        data (dict): Request data with `userId` and `newPassword`.

    Returns:
        `{"success": True, "message": ...}`
    """
    require_admin(db, caller, "Only administrators can change user passwords")
    require_object(data)

    user_id = require_string(data, "userId")
    new_password = require_string(data, "newPassword")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise invalid_argument(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    target = from_snapshot(
        User, db.collection(USERS_COLLECTION).document(user_id).get()
    )
    if target is None:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.NOT_FOUND, "User not found"
        )

    auth_client.update_user(user_id, password=new_password)
    append_audit_log(db, AuditAction.PASSWORD_CHANGE, caller, user_id, target.email)
    logger.info("Password changed for user %s by %s", user_id, caller.uid)

    return {"success": True, "message": "Password changed successfully"}


@internal_errors("send welcome email")
def send_welcome_email(db, auth_client, caller: Caller, data: dict) -> dict:
    """
    Generates a password reset link that doubles as a welcome link.

    The link is returned to the app, which is responsible for emailing it.
    """
    require_admin(db, caller, "Only administrators can send welcome emails")
    require_object(data)

    user_id = require_string(data, "userId")
    email = require_string(data, "email")

    reset_link = auth_client.generate_password_reset_link(email)
    append_audit_log(db, AuditAction.WELCOME_EMAIL_SENT, caller, user_id, email)

    return {
        "success": True,
        "message": "Welcome email prepared",
        "resetLink": reset_link,
    }
