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

"""Looks up device push tokens for a set of users."""

import concurrent.futures
import logging
from typing import Iterable, List, Optional

from shared.constants import EXPO_PUSH_TOKEN_PREFIX
from shared.firebase_constants import USERS_COLLECTION
from shared.types import User, from_snapshot

logger = logging.getLogger(__name__)

MAX_LOOKUP_WORKERS = 8


def is_valid_push_token(token: Optional[str]) -> bool:
    return isinstance(token, str) and token.startswith(EXPO_PUSH_TOKEN_PREFIX)


def _fetch_user(db, user_id: str) -> Optional[User]:
    try:
        snapshot = db.collection(USERS_COLLECTION).document(user_id).get()
        return from_snapshot(User, snapshot)
    except Exception as e:
        logger.warning("[Notification] Could not load user %s: %s", user_id, e)
        return None


def fetch_users(db, user_ids: List[str]) -> List[User]:
    """
    Reads the user documents for `user_ids` in parallel.

    Users that do not exist, or whose read fails, are left out; one bad
    lookup never aborts the batch. The result keeps the order of `user_ids`.
    """
    if not user_ids:
        return []
    workers = min(MAX_LOOKUP_WORKERS, len(user_ids))
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        users = list(executor.map(lambda user_id: _fetch_user(db, user_id), user_ids))
    return [user for user in users if user is not None]


def tokens_from_users(users: Iterable[User]) -> List[str]:
    """
    One token per user; users without a token are skipped.

    Two users signed in on the same device share a token, so repeats are
    dropped, keeping the first occurrence.
    """
    return list(
        dict.fromkeys(user.expo_push_token for user in users if user.expo_push_token)
    )


def collect_push_tokens(db, user_ids: List[str]) -> List[str]:
    return tokens_from_users(fetch_users(db, user_ids))
