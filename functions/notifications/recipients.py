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

"""Works out which users should hear about a newly created document."""

from typing import Iterable, List, Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from shared.constants import ADMIN_ROLE
from shared.firebase_constants import PROJECTS_COLLECTION, USERS_COLLECTION
from shared.types import Message, Project, User, from_firestore, from_snapshot


def _unique_excluding(ids: Iterable[Optional[str]], actor_id: Optional[str]) -> List[str]:
    """Drops empty ids and the actor, keeping first-seen order."""
    recipients = []
    for user_id in ids:
        if not user_id or user_id == actor_id or user_id in recipients:
            continue
        recipients.append(user_id)
    return recipients


def get_project(db, project_id: Optional[str]) -> Optional[Project]:
    if not project_id:
        return None
    snapshot = db.collection(PROJECTS_COLLECTION).document(project_id).get()
    return from_snapshot(Project, snapshot)


def find_admins(db) -> List[User]:
    """Returns every user whose stored role is admin."""
    query = db.collection(USERS_COLLECTION).where(
        filter=FieldFilter("role", "==", ADMIN_ROLE)
    )
    return [from_firestore(User, doc.id, doc.to_dict()) for doc in query.stream()]


def resolve_message_recipients(message: Message, project: Project) -> List[str]:
    """
    Everyone on the project except the sender: the client first, then each
    assigned contractor in stored order.
    """
    candidates = [project.client_id, *(project.contractor_ids or [])]
    return _unique_excluding(candidates, message.sender_id)


def resolve_estimate_recipients(project: Project) -> List[str]:
    """Estimates are only announced to the project's client."""
    return _unique_excluding([project.client_id], actor_id=None)


def resolve_project_recipients(project: Project, admins: List[User]) -> List[str]:
    """New projects go to every admin other than the one who created it."""
    return _unique_excluding((admin.id for admin in admins), project.created_by)
