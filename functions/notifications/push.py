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

"""Client for the Expo push notification service."""

import logging
from typing import Any, Dict, List

import requests

from notifications.tokens import is_valid_push_token
from shared.constants import REQUEST_TIMEOUT
from shared.types import DeliveryOutcome, DeliveryStatus, PushNotification

logger = logging.getLogger(__name__)

DEFAULT_EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


class ExpoPushClient:
    """
    Sends notifications through Expo's push API.

    One valid token is sent as a single message object; several are sent as
    an array in one request. Invalid and repeated tokens are dropped before
    sending.
    Failures are reported in the returned `DeliveryOutcome`, never raised.
    """

    def __init__(
        self,
        push_url: str = DEFAULT_EXPO_PUSH_URL,
        access_token: str | None = None,
        session: requests.Session | None = None,
    ):
        self.push_url = push_url
        self.access_token = access_token
        self._session = session or requests.Session()

    @staticmethod
    def build_message(token: str, notification: PushNotification) -> Dict[str, Any]:
        return {
            "to": token,
            "sound": "default",
            "title": notification.title,
            "body": notification.body,
            "data": notification.data or {},
            "priority": "high",
            "channelId": "default",
        }

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def send(self, tokens: List[str], notification: PushNotification) -> DeliveryOutcome:
        unique_tokens = dict.fromkeys(token for token in tokens if is_valid_push_token(token))
        messages = [self.build_message(token, notification) for token in unique_tokens]
        if not messages:
            logger.info("No valid push tokens to send to")
            return DeliveryOutcome.skipped("No valid push tokens")

        payload = messages[0] if len(messages) == 1 else messages
        try:
            response = self._session.post(
                self.push_url,
                headers=self._headers(),
                json=payload,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Error sending push notifications: %s", e)
            return DeliveryOutcome(
                status=DeliveryStatus.FAILED,
                token_count=len(messages),
                reason=str(e),
            )

        if not response.ok:
            reason = f"Push gateway returned {response.status_code}: {response.text}"
            logger.error(reason)
            return DeliveryOutcome(
                status=DeliveryStatus.FAILED,
                token_count=len(messages),
                reason=reason,
            )

        try:
            receipt = response.json()
        except ValueError:
            receipt = response.text
        logger.info("Push notifications sent to %d devices: %s", len(messages), receipt)
        return DeliveryOutcome(
            status=DeliveryStatus.SENT,
            token_count=len(messages),
            receipt=receipt,
        )
