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
from datetime import datetime, timezone
from unittest.mock import MagicMock

from firebase_functions import https_fn
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from admin import freshbooks
from admin.authz import Caller
from shared.api_client import ApiError
from shared.config import Settings
from testing_utils import FakeFirestore

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
INVOICES_PATH = "/accounting/account/acct1/invoices/invoices"

INVOICE = {
    "id": 501,
    "invoice_number": "INV-0042",
    "customerid": 77,
    "fname": "Dana",
    "lname": "Lee",
    "organization": "Lee Homes",
    "amount": {"amount": "1250.00", "code": "USD"},
    "v3_status": "paid",
    "create_date": "2025-11-03",
    "due_date": "2025-12-03",
    "notes": "Deck rebuild",
    "lines": [
        {
            "name": "Labor",
            "description": "Framing",
            "qty": "10",
            "unit_cost": {"amount": "100.00"},
            "amount": {"amount": "1000.00"},
        },
        {"name": "Stain", "qty": None, "amount": {"amount": "250.00"}},
    ],
}


def _db(fb_settings=None):
    data = {
        "users": {"admin1": {"role": "admin"}, "client1": {"role": "client"}},
        "clients": {"c1": {"name": "Dana Lee"}},
    }
    if fb_settings is not None:
        data["settings"] = {"freshbooks": fb_settings}
    return FakeFirestore(data)


def _connected_settings(**overrides):
    fb_settings = {
        "enabled": True,
        "accountId": "acct1",
        "clientId": "fb-id",
        "clientSecret": "fb-secret",
        "apiVersion": "2023-02-20",
        "accessToken": "access",
        "refreshToken": "refresh",
        "tokenExpiry": "2026-02-01T00:00:00.000Z",
    }
    fb_settings.update(overrides)
    return fb_settings


def _token_response():
    return {
        "access_token": "new-access",
        "refresh_token": "new-refresh",
        "expires_in": 7200,
    }


class FreshBooksTestCase(unittest.TestCase):

    def setUp(self):
        self.db = _db(_connected_settings())
        self.api = MagicMock()
        self.api.post.return_value = _token_response()
        self.api.get.side_effect = self._api_get
        self.admin = Caller(uid="admin1")

    def _api_get(self, path, token=None, headers=None):
        if path.startswith(INVOICES_PATH + "/"):
            return {"response": {"result": {"invoice": INVOICE}}}
        return {"response": {"result": {"invoices": [INVOICE], "total": 1, "pages": 1}}}

    def _settings(self):
        return self.db.documents("settings")["freshbooks"]

    def assertHttpsError(self, code, func, *args, **kwargs):
        with self.assertRaises(https_fn.HttpsError) as cm:
            func(*args, **kwargs)
        self.assertEqual(cm.exception.code, code)
        return cm.exception


class ConnectTest(FreshBooksTestCase):

    def setUp(self):
        super().setUp()
        self.config = Settings(
            freshbooks_client_id="env-id",
            freshbooks_client_secret="env-secret",
            freshbooks_account_id="acct1",
        )

    def test_first_connect_seeds_settings_and_returns_auth_url(self):
        db = _db()

        result = freshbooks.connect_freshbooks(
            db, self.admin, {"redirectUri": "https://app.test/cb"}, self.config
        )

        self.assertEqual(
            result["authUrl"],
            "https://auth.freshbooks.com/oauth/authorize?client_id=env-id"
            "&response_type=code&redirect_uri=https%3A%2F%2Fapp.test%2Fcb",
        )
        stored = db.documents("settings")["freshbooks"]
        self.assertEqual(stored["clientSecret"], "env-secret")
        self.assertEqual(stored["redirectUri"], "https://app.test/cb")
        self.assertIsNone(stored["accessToken"])

    def test_reconnect_updates_redirect_uri(self):
        freshbooks.connect_freshbooks(
            self.db, self.admin, {"redirectUri": "https://app.test/new"}, self.config
        )

        self.assertEqual(self._settings()["redirectUri"], "https://app.test/new")
        self.assertEqual(self._settings()["clientId"], "fb-id")

    def test_missing_credentials_fail_precondition(self):
        self.assertHttpsError(
            https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
            freshbooks.connect_freshbooks,
            _db(),
            self.admin,
            {"redirectUri": "https://app.test/cb"},
            Settings(),
        )

    def test_redirect_uri_is_required(self):
        for data in [{}, ["https://app.test/cb"]]:
            with self.subTest(data=data):
                self.assertHttpsError(
                    https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                    freshbooks.connect_freshbooks,
                    self.db,
                    self.admin,
                    data,
                    self.config,
                )

    def test_complete_oauth_stores_tokens(self):
        self._settings()["redirectUri"] = "https://app.test/cb"

        freshbooks.complete_oauth(
            self.db, self.api, "the-code", "https://default/cb", now=NOW
        )

        self.api.post.assert_called_once_with(
            "/auth/oauth/token",
            {
                "client_id": "fb-id",
                "client_secret": "fb-secret",
                "grant_type": "authorization_code",
                "code": "the-code",
                "redirect_uri": "https://app.test/cb",
            },
        )
        stored = self._settings()
        self.assertEqual(stored["accessToken"], "new-access")
        self.assertEqual(stored["tokenExpiry"], "2026-01-15T14:00:00.000Z")
        self.assertTrue(stored["connected"])


class RefreshTokenTest(FreshBooksTestCase):

    def test_refreshes_and_stores_tokens(self):
        result = freshbooks.refresh_freshbooks_token(
            self.db, self.api, self.admin, now=NOW
        )

        self.assertEqual(
            result,
            {
                "success": True,
                "tokenExpiry": "2026-01-15T14:00:00.000Z",
                "message": "FreshBooks token refreshed successfully",
            },
        )
        self.assertEqual(self.api.post.call_args.args[1]["grant_type"], "refresh_token")
        self.assertEqual(self.api.post.call_args.args[1]["refresh_token"], "refresh")
        stored = self._settings()
        self.assertEqual(stored["refreshToken"], "new-refresh")
        self.assertIs(stored["lastRefresh"], SERVER_TIMESTAMP)

    def test_non_admin_is_denied(self):
        self.assertHttpsError(
            https_fn.FunctionsErrorCode.PERMISSION_DENIED,
            freshbooks.refresh_freshbooks_token,
            self.db,
            self.api,
            Caller(uid="client1"),
        )
        self.api.post.assert_not_called()

    def test_not_configured(self):
        error = self.assertHttpsError(
            https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
            freshbooks.refresh_freshbooks_token,
            _db(),
            self.api,
            self.admin,
        )
        self.assertEqual(error.message, "FreshBooks is not configured")

    def test_missing_refresh_token(self):
        self._settings()["refreshToken"] = None

        error = self.assertHttpsError(
            https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
            freshbooks.refresh_freshbooks_token,
            self.db,
            self.api,
            self.admin,
        )
        self.assertEqual(
            error.message, "No refresh token available. Please reconnect FreshBooks."
        )

    def test_rejected_refresh_is_internal(self):
        self.api.post.side_effect = ApiError("HTTP 401: Unauthorized", status_code=401)

        error = self.assertHttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            freshbooks.refresh_freshbooks_token,
            self.db,
            self.api,
            self.admin,
        )
        self.assertEqual(
            error.message, "Failed to refresh FreshBooks token: HTTP 401: Unauthorized"
        )


class GetInvoicesTest(FreshBooksTestCase):

    def test_lists_invoices_with_filters(self):
        result = freshbooks.get_freshbooks_invoices(
            self.db,
            self.api,
            self.admin,
            {
                "startDate": "2025-01-01",
                "endDate": "2025-12-31",
                "page": 2,
                "perPage": 500,
            },
            now=NOW,
        )

        path = self.api.get.call_args.args[0]
        self.assertEqual(
            path,
            INVOICES_PATH + "?page=2&per_page=100"
            "&search%5Bdate_min%5D=2025-01-01&search%5Bdate_max%5D=2025-12-31",
        )
        self.assertEqual(self.api.get.call_args.kwargs["token"], "access")
        self.assertEqual(
            self.api.get.call_args.kwargs["headers"], {"Api-Version": "2023-02-20"}
        )
        self.assertEqual(
            result["pagination"], {"page": 2, "perPage": 100, "total": 1, "pages": 1}
        )
        (invoice,) = result["invoices"]
        self.assertEqual(invoice["invoiceNumber"], "INV-0042")
        self.assertEqual(invoice["customerName"], "Dana Lee")
        self.assertEqual(invoice["amount"], "1250.00")
        self.assertEqual(invoice["lines"][1]["unitCost"], "0")
        self.api.post.assert_not_called()

    def test_stale_token_is_refreshed_first(self):
        self._settings()["tokenExpiry"] = "2026-01-15T12:30:00.000Z"

        freshbooks.get_freshbooks_invoices(self.db, self.api, self.admin, {}, now=NOW)

        self.api.post.assert_called_once()
        self.assertEqual(self.api.get.call_args.kwargs["token"], "new-access")
        self.assertEqual(self._settings()["accessToken"], "new-access")

    def test_not_connected(self):
        self._settings()["accessToken"] = None

        error = self.assertHttpsError(
            https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
            freshbooks.get_freshbooks_invoices,
            self.db,
            self.api,
            self.admin,
            {},
        )
        self.assertEqual(
            error.message, "FreshBooks is not connected. Please connect first."
        )

    def test_invalid_paging(self):
        for data in [{"page": 0}, {"perPage": "ten"}, {"page": True}, ["page"]]:
            with self.subTest(data=data):
                self.assertHttpsError(
                    https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                    freshbooks.get_freshbooks_invoices,
                    self.db,
                    self.api,
                    self.admin,
                    data,
                )


class ImportInvoiceTest(FreshBooksTestCase):

    def test_imports_project_and_estimate(self):
        result = freshbooks.import_freshbooks_invoice(
            self.db,
            self.api,
            self.admin,
            {
                "invoiceId": 501,
                "clientId": "c1",
                "locationId": "loc1",
                "locationName": "Main St",
            },
            now=NOW,
        )

        self.assertEqual(self.api.get.call_args.args[0], INVOICES_PATH + "/501")
        project = self.db.documents("projects")[result["projectId"]]
        self.assertEqual(project["title"], "INV-0042 - Lee Homes")
        self.assertEqual(project["status"], "COMPLETE")
        self.assertEqual(project["clientName"], "Dana Lee")
        self.assertEqual(project["source"], "freshbooks")
        self.assertEqual(project["importedBy"], "admin1")
        self.assertEqual(project["locationName"], "Main St")
        self.assertEqual(
            project["createdAt"], datetime(2025, 11, 3, tzinfo=timezone.utc)
        )

        estimate = self.db.documents("estimates")[result["estimateId"]]
        self.assertEqual(estimate["projectId"], result["projectId"])
        self.assertEqual(estimate["status"], "approved")
        self.assertEqual(estimate["total"], 1250.0)
        self.assertEqual(
            estimate["items"],
            [
                {
                    "name": "Labor",
                    "description": "Framing",
                    "quantity": 10.0,
                    "unitPrice": 100.0,
                    "total": 1000.0,
                },
                {
                    "name": "Stain",
                    "description": "",
                    "quantity": 1.0,
                    "unitPrice": 0.0,
                    "total": 250.0,
                },
            ],
        )
        self.assertIs(self._settings()["lastImport"], SERVER_TIMESTAMP)

    def test_estimate_can_be_skipped(self):
        result = freshbooks.import_freshbooks_invoice(
            self.db,
            self.api,
            self.admin,
            {"invoiceId": "501", "clientId": "c1", "createEstimate": False},
            now=NOW,
        )

        self.assertIsNone(result["estimateId"])
        self.assertEqual(self.db.documents("estimates"), {})

    def test_ids_are_required(self):
        for data in [{}, {"invoiceId": "501"}, {"clientId": "c1"}, ["501"]]:
            with self.subTest(data=data):
                self.assertHttpsError(
                    https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                    freshbooks.import_freshbooks_invoice,
                    self.db,
                    self.api,
                    self.admin,
                    data,
                )
        self.api.get.assert_not_called()

    def test_unknown_client(self):
        self.assertHttpsError(
            https_fn.FunctionsErrorCode.NOT_FOUND,
            freshbooks.import_freshbooks_invoice,
            self.db,
            self.api,
            self.admin,
            {"invoiceId": "501", "clientId": "ghost"},
            now=NOW,
        )
        self.assertEqual(self.db.documents("projects"), {})


class BulkImportTest(FreshBooksTestCase):

    def test_failures_are_reported_per_invoice(self):
        result = freshbooks.bulk_import_freshbooks_invoices(
            self.db,
            self.api,
            self.admin,
            {
                "invoices": [
                    {"invoiceId": "501", "clientId": "c1"},
                    {"invoiceId": "502", "clientId": "ghost"},
                    "not-an-invoice",
                ],
                "createEstimates": False,
            },
            now=NOW,
        )

        self.assertEqual(result["imported"], 1)
        self.assertEqual(result["failed"], 2)
        self.assertEqual(result["results"]["success"][0]["invoiceId"], "501")
        self.assertEqual(
            result["results"]["failed"],
            [
                {"invoiceId": "502", "error": "Client not found"},
                {"invoiceId": None, "error": "invoiceId and clientId are required"},
            ],
        )
        self.assertEqual(len(self.db.documents("projects")), 1)
        self.assertEqual(self.db.documents("estimates"), {})

    def test_invoices_list_is_required(self):
        for data in [{}, {"invoices": []}, {"invoices": "501"}]:
            with self.subTest(data=data):
                self.assertHttpsError(
                    https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                    freshbooks.bulk_import_freshbooks_invoices,
                    self.db,
                    self.api,
                    self.admin,
                    data,
                )


class DisconnectAndClearTest(FreshBooksTestCase):

    def test_disconnect_clears_tokens(self):
        result = freshbooks.disconnect_freshbooks(self.db, self.admin)

        self.assertTrue(result["success"])
        stored = self._settings()
        self.assertIsNone(stored["accessToken"])
        self.assertIsNone(stored["refreshToken"])
        self.assertFalse(stored["connected"])

    def test_disconnect_requires_admin(self):
        self.assertHttpsError(
            https_fn.FunctionsErrorCode.PERMISSION_DENIED,
            freshbooks.disconnect_freshbooks,
            self.db,
            Caller(uid="client1"),
        )
        self.assertEqual(self._settings()["accessToken"], "access")

    def test_clear_deletes_only_imported_records(self):
        self.db.data["projects"] = {
            "p1": {"source": "freshbooks"},
            "p2": {"title": "Manual"},
            "p3": {"source": "freshbooks"},
        }
        self.db.data["estimates"] = {"e1": {"source": "freshbooks"}, "e2": {}}

        result = freshbooks.clear_imported_freshbooks_data(self.db, self.admin)

        self.assertEqual(result["projectsDeleted"], 2)
        self.assertEqual(result["estimatesDeleted"], 1)
        self.assertEqual(result["message"], "Cleared 2 projects and 1 estimates")
        self.assertEqual(list(self.db.documents("projects")), ["p2"])
        self.assertEqual(list(self.db.documents("estimates")), ["e2"])
        self.assertEqual(self.db.commits, [3])

    def test_clear_with_nothing_imported_commits_nothing(self):
        result = freshbooks.clear_imported_freshbooks_data(self.db, self.admin)

        self.assertEqual(result["projectsDeleted"], 0)
        self.assertEqual(self.db.commits, [])


if __name__ == "__main__":
    unittest.main()
