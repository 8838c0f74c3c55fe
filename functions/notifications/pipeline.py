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

"""
Push notification fan-out for newly created Firestore documents.

Each `notify_*` function resolves the recipients of an event, collects their
push tokens and hands them to the push client. They always return a
`DeliveryOutcome`: a missing parent record or an empty recipient set is a
skip, and unexpected errors are reported as a failure rather than raised,
since nothing is waiting on the result.
"""

import logging
from typing import Callable, List

from notifications import recipients, tokens
from notifications.push import ExpoPushClient
from shared.types import (
    DeliveryOutcome,
    DeliveryStatus,
    Estimate,
    Message,
    Project,
    PushNotification,
)

logger = logging.getLogger(__name__)

UNKNOWN_SENDER = "a team member"


def _deliver(
    push_client: ExpoPushClient,
    push_tokens: List[str],
    notification: PushNotification,
) -> DeliveryOutcome:
    if not push_tokens:
        logger.info("[Notification] No push tokens found for recipients")
        return DeliveryOutcome.skipped("No push tokens found for recipients")
    return push_client.send(push_tokens, notification)


def _best_effort(label: str, run: Callable[[], DeliveryOutcome]) -> DeliveryOutcome:
    try:
        return run()
    except Exception as e:
        logger.exception("[Notification] Error sending %s notification", label)
        return DeliveryOutcome(status=DeliveryStatus.FAILED, reason=str(e))


def message_notification(message: Message, project: Project) -> PushNotification:
    return PushNotification(
        title=f"New message from {message.sender_name or UNKNOWN_SENDER}",
        body=message.body or "Tap to view",
        data={
            "type": "message",
            "messageId": message.id,
            "projectId": message.project_id,
            "projectTitle": project.title,
        },
    )


def estimate_notification(estimate: Estimate, project: Project) -> PushNotification:
    return PushNotification(
        title="New Estimate Available",
        body=f'An estimate for "{project.title}" is ready to review',
        data={
            "type": "estimate",
            "estimateId": estimate.id,
            "projectId": estimate.project_id,
            "projectTitle": project.title,
        },
    )


def project_notification(project: Project) -> PushNotification:
    return PushNotification(
        title="New Project Created",
        body=project.title or "A new project has been submitted",
        data={
            "type": "project",
            "projectId": project.id,
            "projectTitle": project.title,
            "status": project.status,
        },
    )


def notify_message_created(
    db, push_client: ExpoPushClient, message: Message
) -> DeliveryOutcome:
    """Notifies the project's client and contractors, except the sender."""

    def run() -> DeliveryOutcome:
        project = recipients.get_project(db, message.project_id)
        if project is None:
            logger.info("[Notification] Project not found for message %s", message.id)
            return DeliveryOutcome.skipped("Project not found")

        recipient_ids = recipients.resolve_message_recipients(message, project)
        if not recipient_ids:
            logger.info("[Notification] No recipients to notify")
            return DeliveryOutcome.skipped("No recipients")

        push_tokens = tokens.collect_push_tokens(db, recipient_ids)
        return _deliver(push_client, push_tokens, message_notification(message, project))

    return _best_effort("message", run)


def notify_estimate_created(
    db, push_client: ExpoPushClient, estimate: Estimate
) -> DeliveryOutcome:
    """Notifies the client of the estimate's project."""

    def run() -> DeliveryOutcome:
        project = recipients.get_project(db, estimate.project_id)
        if project is None:
            logger.info("[Notification] Project not found for estimate %s", estimate.id)
            return DeliveryOutcome.skipped("Project not found")

        recipient_ids = recipients.resolve_estimate_recipients(project)
        if not recipient_ids:
            logger.info("[Notification] No client ID on project %s", project.id)
            return DeliveryOutcome.skipped("No recipients")

        push_tokens = tokens.collect_push_tokens(db, recipient_ids)
        return _deliver(
            push_client, push_tokens, estimate_notification(estimate, project)
        )

    return _best_effort("estimate", run)


def notify_project_created(
    db, push_client: ExpoPushClient, project: Project
) -> DeliveryOutcome:
    """Notifies every admin about a newly submitted project."""

    def run() -> DeliveryOutcome:
        admins = recipients.find_admins(db)
        recipient_ids = recipients.resolve_project_recipients(project, admins)
        if not recipient_ids:
            logger.info("[Notification] No admins found")
            return DeliveryOutcome.skipped("No recipients")

        # The admin query already returned the user documents.
        notified = [admin for admin in admins if admin.id in recipient_ids]
        push_tokens = tokens.tokens_from_users(notified)
        return _deliver(push_client, push_tokens, project_notification(project))

    return _best_effort("project", run)
