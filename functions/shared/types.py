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

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from dacite import Config, from_dict

from shared.constants import ADMIN_ROLE
from shared.json_utils import convert_keys

T = TypeVar("T")


class DeliveryStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class AuditAction(str, Enum):
    PASSWORD_CHANGE = "password_change"
    WELCOME_EMAIL_SENT = "welcome_email_sent"


@dataclass
class User:
    """A user record from the `users` collection."""

    id: str
    role: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    expo_push_token: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass
class Project:
    """A project record from the `projects` collection."""

    id: str
    title: Optional[str] = None
    status: Optional[str] = None
    client_id: Optional[str] = None
    created_by: Optional[str] = None
    contractor_ids: List[str] = field(default_factory=list)


@dataclass
class Message:
    """A message posted on a project conversation."""

    id: str
    project_id: Optional[str] = None
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    message: Optional[str] = None
    text: Optional[str] = None

    @property
    def body(self) -> Optional[str]:
        return self.message or self.text


@dataclass
class Estimate:
    id: str
    project_id: Optional[str] = None


@dataclass
class AuditLogEntry:
    """Schema for privileged actions appended to the `audit_logs` collection."""

    action: str
    performed_by: str
    performed_by_email: Optional[str]
    target_user_id: str
    target_user_email: Optional[str]
    timestamp: Any  # Firestore timestamp (firestore_v1.SERVER_TIMESTAMP)


@dataclass
class PushNotification:
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryOutcome:
    """
    The result of a best-effort push delivery.

    Delivery never raises; callers log the outcome instead.
    """

    status: DeliveryStatus
    token_count: int = 0
    reason: Optional[str] = None
    receipt: Any = None

    @classmethod
    def skipped(cls, reason: str) -> "DeliveryOutcome":
        return cls(status=DeliveryStatus.SKIPPED, reason=reason)


def from_firestore(data_class: Type[T], doc_id: str, data: dict | None) -> T:
    """
    Builds a dataclass instance from a camelCase Firestore document.

    Args:
        data_class: The dataclass to build.
        doc_id (str): The Firestore document id, stored as `id`.
        data (dict): The document contents, as returned by `to_dict()`.
    """
    fields = convert_keys(data or {}, "camel_to_snake")
    fields["id"] = doc_id
    return from_dict(
        data_class=data_class,
        data=fields,
        config=Config(check_types=False),
    )


def from_snapshot(data_class: Type[T], snapshot) -> Optional[T]:
    """Returns the dataclass for a DocumentSnapshot, or None if it does not exist."""
    if snapshot is None or not snapshot.exists:
        return None
    return from_firestore(data_class, snapshot.id, snapshot.to_dict())
