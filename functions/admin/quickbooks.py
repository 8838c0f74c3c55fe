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

"""Refreshes the stored QuickBooks OAuth tokens."""

import base64
import logging
from datetime import datetime, timedelta, timezone

import requests
from firebase_functions import https_fn
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from admin.authz import Caller, require_admin
from shared.constants import REQUEST_TIMEOUT
from shared.errors import failed_precondition, internal_errors
from shared.firebase_constants import QUICKBOOKS_SETTINGS_DOC, SETTINGS_COLLECTION
from shared.json_utils import to_iso_timestamp

logger = logging.getLogger(__name__)


@internal_errors("refresh QuickBooks token")
def refresh_quickbooks_token(
    db,
    caller: Caller,
    token_url: str,
    session=requests,
    now: datetime | None = None,
) -> dict:
    """
    Exchanges the stored refresh token for a new QuickBooks access token.

    QuickBooks rotates the refresh token too, so both are written back to
    `settings/quickbooks` along with the access token expiry.
    """
    require_admin(db, caller, "Only administrators can refresh QuickBooks tokens")

    settings_ref = db.collection(SETTINGS_COLLECTION).document(QUICKBOOKS_SETTINGS_DOC)
    settings_doc = settings_ref.get()
    if not settings_doc.exists:
        raise failed_precondition("QuickBooks is not configured")

    qb_settings = settings_doc.to_dict() or {}
    if not qb_settings.get("enabled"):
        raise failed_precondition("QuickBooks integration is not enabled")

    refresh_token = qb_settings.get("refreshToken")
    client_id = qb_settings.get("clientId")
    client_secret = qb_settings.get("clientSecret")
    if not (refresh_token and client_id and client_secret):
        raise failed_precondition("QuickBooks credentials are incomplete")

    credentials = base64.b64encode(f"{client_id}:{client_secret}".encode()).decode()
    response = session.post(
        token_url,
        headers={
            "Authorization": f"Basic {credentials}",
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        },
        data={"grant_type": "refresh_token", "refresh_token": refresh_token},
        timeout=REQUEST_TIMEOUT,
    )
    if not response.ok:
        logger.error("QuickBooks token refresh failed: %s", response.text)
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            f"Token refresh failed: {response.status_code} - {response.text}",
        )

    token_data = response.json()
    now = now or datetime.now(timezone.utc)
    token_expiry = to_iso_timestamp(now + timedelta(seconds=token_data["expires_in"]))

    settings_ref.update(
        {
            "accessToken": token_data["access_token"],
            "refreshToken": token_data.get("refresh_token", refresh_token),
            "tokenExpiry": token_expiry,
            "lastRefresh": SERVER_TIMESTAMP,
        }
    )
    logger.info("QuickBooks token refreshed successfully")

    return {
        "success": True,
        "tokenExpiry": token_expiry,
        "message": "QuickBooks token refreshed successfully",
    }
