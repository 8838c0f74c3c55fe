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

import unittest
from unittest.mock import MagicMock

import requests

from notifications.push import DEFAULT_EXPO_PUSH_URL, ExpoPushClient
from shared.types import DeliveryStatus, PushNotification
from testing_utils import expo_token


def _response(status_code=200, json_body=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = json_body if json_body is not None else {"data": []}
    response.text = "gateway says no"
    return response


class ExpoPushClientTest(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.session.post.return_value = _response(json_body={"data": [{"status": "ok"}]})
        self.client = ExpoPushClient(session=self.session)
        self.notification = PushNotification(
            title="Hello", body="World", data={"type": "message"}
        )

    def test_single_token_sends_one_message_object(self):
        outcome = self.client.send([expo_token("a")], self.notification)

        self.session.post.assert_called_once()
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], DEFAULT_EXPO_PUSH_URL)
        self.assertEqual(
            kwargs["json"],
            {
                "to": expo_token("a"),
                "sound": "default",
                "title": "Hello",
                "body": "World",
                "data": {"type": "message"},
                "priority": "high",
                "channelId": "default",
            },
        )
        self.assertEqual(kwargs["headers"]["Content-Type"], "application/json")
        self.assertEqual(outcome.status, DeliveryStatus.SENT)
        self.assertEqual(outcome.token_count, 1)
        self.assertEqual(outcome.receipt, {"data": [{"status": "ok"}]})

    def test_many_tokens_sent_in_one_batch(self):
        outcome = self.client.send(
            [expo_token("a"), expo_token("b"), expo_token("c")], self.notification
        )

        self.session.post.assert_called_once()
        payload = self.session.post.call_args.kwargs["json"]
        self.assertIsInstance(payload, list)
        self.assertEqual(
            [message["to"] for message in payload],
            [expo_token("a"), expo_token("b"), expo_token("c")],
        )
        self.assertEqual(outcome.token_count, 3)

    def test_invalid_tokens_dropped_before_sending(self):
        self.client.send(
            [expo_token("a"), "not-a-token", None, "", expo_token("b")],
            self.notification,
        )

        payload = self.session.post.call_args.kwargs["json"]
        self.assertEqual(
            [message["to"] for message in payload], [expo_token("a"), expo_token("b")]
        )

    def test_repeated_token_sent_once(self):
        outcome = self.client.send(
            [expo_token("shared"), expo_token("shared")], self.notification
        )

        payload = self.session.post.call_args.kwargs["json"]
        self.assertIsInstance(payload, dict)
        self.assertEqual(payload["to"], expo_token("shared"))
        self.assertEqual(outcome.token_count, 1)

    def test_no_valid_tokens_skips_network_call(self):
        outcome = self.client.send(["fcm-token", ""], self.notification)

        self.session.post.assert_not_called()
        self.assertEqual(outcome.status, DeliveryStatus.SKIPPED)

    def test_network_error_is_reported_not_raised(self):
        self.session.post.side_effect = requests.exceptions.ConnectionError("down")

        outcome = self.client.send([expo_token("a")], self.notification)

        self.assertEqual(outcome.status, DeliveryStatus.FAILED)
        self.assertIn("down", outcome.reason)

    def test_gateway_error_is_reported_not_raised(self):
        self.session.post.return_value = _response(status_code=500)

        outcome = self.client.send([expo_token("a")], self.notification)

        self.assertEqual(outcome.status, DeliveryStatus.FAILED)
        self.assertIn("500", outcome.reason)

    def test_access_token_is_sent_as_bearer(self):
        client = ExpoPushClient(access_token="secret", session=self.session)

        client.send([expo_token("a")], self.notification)

        headers = self.session.post.call_args.kwargs["headers"]
        self.assertEqual(headers["Authorization"], "Bearer secret")


if __name__ == "__main__":
    unittest.main()
