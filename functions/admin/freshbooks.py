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
FreshBooks integration: OAuth connection, token upkeep and invoice import.

Client credentials and OAuth tokens live in `settings/freshbooks`. Every
callable here is admin-only. Imported invoices become a completed project
plus, optionally, an approved estimate, both tagged `source: "freshbooks"`
so they can be cleared again.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from firebase_functions import https_fn
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from admin.authz import Caller, require_admin
from shared.api_client import ApiClient
from shared.config import Settings
from shared.errors import (
    failed_precondition,
    internal_errors,
    invalid_argument,
    require_object,
    require_string,
)
from shared.firebase_constants import (
    CLIENTS_COLLECTION,
    ESTIMATES_COLLECTION,
    FRESHBOOKS_SETTINGS_DOC,
    PROJECTS_COLLECTION,
    SETTINGS_COLLECTION,
)
from shared.json_utils import parse_iso_timestamp, to_iso_timestamp

logger = logging.getLogger(__name__)

FRESHBOOKS_SOURCE = "freshbooks"
TOKEN_PATH = "/auth/oauth/token"
# Access tokens are refreshed once they are this close to expiring.
TOKEN_REFRESH_MARGIN = timedelta(hours=1)
MAX_PER_PAGE = 100
# Firestore allows at most 500 writes in one batch.
MAX_BATCH_WRITES = 500
IMPORTED_PROJECT_STATUS = "COMPLETE"
IMPORTED_ESTIMATE_STATUS = "approved"


def _settings_ref(db):
    return db.collection(SETTINGS_COLLECTION).document(FRESHBOOKS_SETTINGS_DOC)


def _load_settings(db) -> Tuple[Any, dict]:
    ref = _settings_ref(db)
    snapshot = ref.get()
    if not snapshot.exists:
        raise failed_precondition("FreshBooks is not configured")
    return ref, snapshot.to_dict() or {}


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _request_tokens(api: ApiClient, fb_settings: dict, **grant) -> dict:
    return api.post(
        TOKEN_PATH,
        {
            "client_id": fb_settings.get("clientId"),
            "client_secret": fb_settings.get("clientSecret"),
            **grant,
        },
    )


def _store_tokens(ref, fb_settings: dict, tokens: dict, now: datetime, **fields) -> str:
    token_expiry = to_iso_timestamp(now + timedelta(seconds=tokens["expires_in"]))
    stored = {
        "accessToken": tokens["access_token"],
        "refreshToken": tokens["refresh_token"],
        "tokenExpiry": token_expiry,
    }
    ref.update({**stored, **fields, "updatedAt": SERVER_TIMESTAMP})
    fb_settings.update(stored)
    return token_expiry


def _refresh_tokens(api: ApiClient, ref, fb_settings: dict, now: datetime) -> str:
    refresh_token = fb_settings.get("refreshToken")
    if not refresh_token:
        raise failed_precondition(
            "No refresh token available. Please reconnect FreshBooks."
        )
    tokens = _request_tokens(
        api, fb_settings, grant_type="refresh_token", refresh_token=refresh_token
    )
    token_expiry = _store_tokens(
        ref, fb_settings, tokens, now, lastRefresh=SERVER_TIMESTAMP
    )
    logger.info("FreshBooks token refreshed, expires %s", token_expiry)
    return token_expiry


def _needs_refresh(fb_settings: dict, now: datetime) -> bool:
    expiry = parse_iso_timestamp(fb_settings.get("tokenExpiry"))
    return expiry is None or now >= expiry - TOKEN_REFRESH_MARGIN


def _connected_settings(db, api: ApiClient, now: datetime) -> Tuple[Any, dict]:
    """Loads the settings of a connected account, refreshing a stale access token."""
    ref, fb_settings = _load_settings(db)
    if not fb_settings.get("accessToken"):
        raise failed_precondition("FreshBooks is not connected. Please connect first.")
    if _needs_refresh(fb_settings, now):
        _refresh_tokens(api, ref, fb_settings, now)
    return ref, fb_settings


def _invoices_path(fb_settings: dict, invoice_id: Optional[str] = None) -> str:
    account_id = fb_settings.get("accountId")
    if not account_id:
        raise failed_precondition("FreshBooks account ID is not configured")
    path = f"/accounting/account/{account_id}/invoices/invoices"
    if invoice_id is not None:
        path += f"/{invoice_id}"
    return path


def _get(api: ApiClient, fb_settings: dict, path: str) -> dict:
    response = api.get(
        path,
        token=fb_settings["accessToken"],
        headers={"Api-Version": fb_settings.get("apiVersion") or ""},
    )
    return response["response"]["result"]


def _amount(money: Optional[dict]) -> str:
    return (money or {}).get("amount") or "0"


def _to_float(value: Any, default: float) -> float:
    try:
        return float(value) or default
    except (TypeError, ValueError):
        return default


def _error_message(error: Exception) -> str:
    if isinstance(error, https_fn.HttpsError):
        return error.message
    return str(error)


def summarize_invoice(invoice: dict) -> dict:
    """The fields of a FreshBooks invoice the app lists for import."""
    customer_name = " ".join(
        name for name in (invoice.get("fname"), invoice.get("lname")) if name
    )
    return {
        "id": invoice.get("id"),
        "invoiceNumber": invoice.get("invoice_number"),
        "clientId": invoice.get("customerid"),
        "customerName": customer_name,
        "organization": invoice.get("organization"),
        "amount": _amount(invoice.get("amount")),
        "currency": (invoice.get("amount") or {}).get("code") or "USD",
        "status": invoice.get("v3_status"),
        "date": invoice.get("create_date"),
        "dueDate": invoice.get("due_date"),
        "description": invoice.get("notes") or "",
        "lines": [
            {
                "name": line.get("name"),
                "description": line.get("description"),
                "quantity": line.get("qty"),
                "unitCost": _amount(line.get("unit_cost")),
                "amount": _amount(line.get("amount")),
            }
            for line in invoice.get("lines") or []
        ],
    }


def _positive_int(data: dict, name: str, default: int) -> int:
    value = data.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise invalid_argument(f"{name} must be a positive integer")
    return value


def _optional_string(data: dict, name: str) -> Optional[str]:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise invalid_argument(f"{name} must be a string")
    return value or None


@internal_errors("connect FreshBooks")
def connect_freshbooks(db, caller: Caller, data: dict, config: Settings) -> dict:
    """
    Returns the FreshBooks authorization URL for the admin to open.

    The first connection seeds `settings/freshbooks` with the client
    credentials from the function configuration.
    """
    require_admin(db, caller, "Only administrators can connect FreshBooks")
    require_object(data)
    redirect_uri = require_string(data, "redirectUri")

    ref = _settings_ref(db)
    snapshot = ref.get()
    if snapshot.exists:
        fb_settings = snapshot.to_dict() or {}
        ref.update({"redirectUri": redirect_uri, "updatedAt": SERVER_TIMESTAMP})
    else:
        if not (config.freshbooks_client_id and config.freshbooks_client_secret):
            raise failed_precondition("FreshBooks credentials are not configured")
        fb_settings = {
            "enabled": True,
            "accountId": config.freshbooks_account_id,
            "clientId": config.freshbooks_client_id,
            "clientSecret": config.freshbooks_client_secret,
            "apiVersion": config.freshbooks_api_version,
            "accessToken": None,
            "refreshToken": None,
            "tokenExpiry": None,
            "redirectUri": redirect_uri,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }
        ref.set(fb_settings)

    query = urlencode(
        {
            "client_id": fb_settings.get("clientId"),
            "response_type": "code",
            "redirect_uri": redirect_uri,
        }
    )
    return {"success": True, "authUrl": f"{config.freshbooks_authorize_url}?{query}"}


def complete_oauth(
    db,
    api: ApiClient,
    code: str,
    default_redirect_uri: str,
    now: datetime | None = None,
) -> None:
    """
    Exchanges the authorization code from the OAuth redirect for tokens.

    The redirect URI sent with the exchange must be the one the
    authorization URL was built with, so the stored one is preferred.
    """
    ref, fb_settings = _load_settings(db)
    tokens = _request_tokens(
        api,
        fb_settings,
        grant_type="authorization_code",
        code=code,
        redirect_uri=fb_settings.get("redirectUri") or default_redirect_uri,
    )
    _store_tokens(
        ref,
        fb_settings,
        tokens,
        _now(now),
        connected=True,
        connectedAt=SERVER_TIMESTAMP,
    )
    logger.info("FreshBooks connected")


@internal_errors("refresh FreshBooks token")
def refresh_freshbooks_token(
    db, api: ApiClient, caller: Caller, now: datetime | None = None
) -> dict:
    require_admin(db, caller, "Only administrators can refresh FreshBooks token")
    ref, fb_settings = _load_settings(db)
    token_expiry = _refresh_tokens(api, ref, fb_settings, _now(now))
    return {
        "success": True,
        "tokenExpiry": token_expiry,
        "message": "FreshBooks token refreshed successfully",
    }


@internal_errors("fetch FreshBooks invoices")
def get_freshbooks_invoices(
    db, api: ApiClient, caller: Caller, data: dict, now: datetime | None = None
) -> dict:
    """
    Lists one page of FreshBooks invoices, optionally within a date range.

    Args:
        data (dict): Optional `startDate` / `endDate` (YYYY-MM-DD), `page`
            (default 1) and `perPage` (default and maximum 100).

    Returns:
        `{"success": True, "invoices": [...], "pagination": {...}}`
    """
    require_admin(db, caller, "Only administrators can fetch FreshBooks invoices")
    require_object(data)
    page = _positive_int(data, "page", 1)
    per_page = min(_positive_int(data, "perPage", MAX_PER_PAGE), MAX_PER_PAGE)
    params = {"page": page, "per_page": per_page}
    start_date = _optional_string(data, "startDate")
    end_date = _optional_string(data, "endDate")
    if start_date:
        params["search[date_min]"] = start_date
    if end_date:
        params["search[date_max]"] = end_date

    _, fb_settings = _connected_settings(db, api, _now(now))
    path = f"{_invoices_path(fb_settings)}?{urlencode(params)}"
    result = _get(api, fb_settings, path)
    invoices = result.get("invoices") or []

    return {
        "success": True,
        "invoices": [summarize_invoice(invoice) for invoice in invoices],
        "pagination": {
            "page": page,
            "perPage": per_page,
            "total": result.get("total") or 0,
            "pages": result.get("pages") or 1,
        },
    }


def _import_request(item: Any) -> Tuple[str, str, Dict[str, str]]:
    if not isinstance(item, dict):
        raise invalid_argument("invoiceId and clientId are required")
    invoice_id = item.get("invoiceId")
    client_id = item.get("clientId")
    if not invoice_id or not client_id or not isinstance(client_id, str):
        raise invalid_argument("invoiceId and clientId are required")

    location = {}
    if item.get("locationId") and item.get("locationName"):
        location = {
            "locationId": item["locationId"],
            "locationName": item["locationName"],
        }
    return str(invoice_id), client_id, location


def _import_invoice(
    db,
    api: ApiClient,
    caller: Caller,
    fb_settings: dict,
    item: Any,
    create_estimate: bool,
) -> dict:
    invoice_id, client_id, location = _import_request(item)

    client_doc = db.collection(CLIENTS_COLLECTION).document(client_id).get()
    if not client_doc.exists:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.NOT_FOUND, "Client not found"
        )
    client_name = (client_doc.to_dict() or {}).get("name")

    invoice = _get(api, fb_settings, _invoices_path(fb_settings, invoice_id))["invoice"]
    invoice_number = invoice.get("invoice_number")
    created_at = parse_iso_timestamp(invoice.get("create_date")) or SERVER_TIMESTAMP
    imported = {
        "clientId": client_id,
        "clientName": client_name,
        "createdAt": created_at,
        "updatedAt": SERVER_TIMESTAMP,
        "source": FRESHBOOKS_SOURCE,
        "freshbooksInvoiceId": invoice.get("id"),
        "importedAt": SERVER_TIMESTAMP,
        "importedBy": caller.uid,
        **location,
    }

    _, project_ref = db.collection(PROJECTS_COLLECTION).add(
        {
            "title": f"{invoice_number} - {invoice.get('organization') or 'Invoice'}",
            "description": invoice.get("notes") or "Imported from FreshBooks",
            "status": IMPORTED_PROJECT_STATUS,
            "freshbooksInvoiceNumber": invoice_number,
            **imported,
        }
    )

    estimate_id = None
    if create_estimate:
        total = _to_float(_amount(invoice.get("amount")), 0.0)
        _, estimate_ref = db.collection(ESTIMATES_COLLECTION).add(
            {
                "projectId": project_ref.id,
                "title": f"{invoice_number} - Estimate",
                "items": [
                    {
                        "name": line.get("name"),
                        "description": line.get("description") or "",
                        "quantity": _to_float(line.get("qty"), 1.0),
                        "unitPrice": _to_float(_amount(line.get("unit_cost")), 0.0),
                        "total": _to_float(_amount(line.get("amount")), 0.0),
                    }
                    for line in invoice.get("lines") or []
                ],
                "subtotal": total,
                "tax": 0,
                "total": total,
                "notes": invoice.get("notes") or "",
                "status": IMPORTED_ESTIMATE_STATUS,
                **imported,
            }
        )
        estimate_id = estimate_ref.id

    logger.info(
        "Imported FreshBooks invoice %s as project %s", invoice_id, project_ref.id
    )
    return {"projectId": project_ref.id, "estimateId": estimate_id}


@internal_errors("import FreshBooks invoice")
def import_freshbooks_invoice(
    db, api: ApiClient, caller: Caller, data: dict, now: datetime | None = None
) -> dict:
    """
    Imports one FreshBooks invoice as a completed project for a client.

    Args:
        data (dict): `invoiceId`, `clientId`, optional `locationId` and
            `locationName`, and `createEstimate` (default True).

    Returns:
        `{"success": True, "projectId": ..., "estimateId": ..., "message": ...}`
    """
    require_admin(db, caller, "Only administrators can import FreshBooks invoices")
    require_object(data)
    _import_request(data)

    ref, fb_settings = _connected_settings(db, api, _now(now))
    ids = _import_invoice(
        db, api, caller, fb_settings, data, bool(data.get("createEstimate", True))
    )
    ref.update({"lastImport": SERVER_TIMESTAMP})

    return {"success": True, **ids, "message": "Invoice imported successfully"}


@internal_errors("bulk import FreshBooks invoices")
def bulk_import_freshbooks_invoices(
    db, api: ApiClient, caller: Caller, data: dict, now: datetime | None = None
) -> dict:
    """
    Imports several invoices. A failing invoice is reported, not raised.

    Args:
        data (dict): `invoices`, a list of `{invoiceId, clientId,
            locationId?, locationName?}`, and `createEstimates` (default True).
    """
    require_admin(
        db, caller, "Only administrators can bulk import FreshBooks invoices"
    )
    require_object(data)
    invoices = data.get("invoices")
    if not isinstance(invoices, list) or not invoices:
        raise invalid_argument("invoices array is required and must not be empty")
    create_estimates = bool(data.get("createEstimates", True))

    ref, fb_settings = _connected_settings(db, api, _now(now))
    succeeded: List[dict] = []
    failed: List[dict] = []
    for item in invoices:
        invoice_id = item.get("invoiceId") if isinstance(item, dict) else None
        try:
            ids = _import_invoice(db, api, caller, fb_settings, item, create_estimates)
        except Exception as e:
            logger.warning("Could not import FreshBooks invoice %s: %s", invoice_id, e)
            failed.append({"invoiceId": invoice_id, "error": _error_message(e)})
            continue
        succeeded.append({"invoiceId": invoice_id, **ids})

    if succeeded:
        ref.update({"lastImport": SERVER_TIMESTAMP})

    return {
        "success": True,
        "imported": len(succeeded),
        "failed": len(failed),
        "results": {"success": succeeded, "failed": failed},
    }


@internal_errors("disconnect FreshBooks")
def disconnect_freshbooks(db, caller: Caller) -> dict:
    require_admin(db, caller, "Only administrators can disconnect FreshBooks")
    ref, _ = _load_settings(db)
    ref.update(
        {
            "accessToken": None,
            "refreshToken": None,
            "tokenExpiry": None,
            "connected": False,
            "disconnectedAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }
    )
    return {"success": True, "message": "FreshBooks disconnected successfully"}


@internal_errors("clear imported FreshBooks data")
def clear_imported_freshbooks_data(db, caller: Caller) -> dict:
    """Deletes every project and estimate that was imported from FreshBooks."""
    require_admin(
        db, caller, "Only administrators can clear imported FreshBooks data"
    )
    ref, _ = _load_settings(db)

    imported_filter = FieldFilter("source", "==", FRESHBOOKS_SOURCE)
    projects = list(
        db.collection(PROJECTS_COLLECTION).where(filter=imported_filter).stream()
    )
    estimates = list(
        db.collection(ESTIMATES_COLLECTION).where(filter=imported_filter).stream()
    )

    references = [snapshot.reference for snapshot in projects + estimates]
    for start in range(0, len(references), MAX_BATCH_WRITES):
        batch = db.batch()
        for reference in references[start : start + MAX_BATCH_WRITES]:
            batch.delete(reference)
        batch.commit()

    ref.update({"lastClear": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP})
    logger.info(
        "Cleared %d FreshBooks projects and %d estimates", len(projects), len(estimates)
    )
    return {
        "success": True,
        "projectsDeleted": len(projects),
        "estimatesDeleted": len(estimates),
        "message": f"Cleared {len(projects)} projects and {len(estimates)} estimates",
    }
