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

"""Caller identity and role checks shared by the callable endpoints."""

from dataclasses import dataclass
from typing import Optional

from firebase_functions import https_fn

from shared.firebase_constants import USERS_COLLECTION
from shared.types import User, from_snapshot


@dataclass
class Caller:
    """The authenticated identity behind a callable request."""

    uid: str
    email: Optional[str] = None


def require_caller(req: https_fn.CallableRequest) -> Caller:
    """Returns the caller of `req`, or raises UNAUTHENTICATED."""
    if req.auth is None or not req.auth.uid:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.UNAUTHENTICATED,
            "Must be authenticated to call this function",
        )
    token = req.auth.token or {}
    return Caller(uid=req.auth.uid, email=token.get("email"))


def is_admin(user: Optional[User]) -> bool:
    """The admin policy: the caller's stored user record has role `admin`."""
    return user is not None and user.is_admin


def require_admin(db, caller: Caller, message: str) -> User:
    """
    Loads the caller's user record and checks it against the admin policy.

    Raises:
        HttpsError: PERMISSION_DENIED with `message` if the record is missing
            or not an admin.
    """
    snapshot = db.collection(USERS_COLLECTION).document(caller.uid).get()
    user = from_snapshot(User, snapshot)
    if not is_admin(user):
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.PERMISSION_DENIED, message
        )
    return user
