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

# Cloud functions for Carben Connect - push notifications, admin user
# management, accounting integrations, photo processing and the voice
# project assistant.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
import html
from functools import lru_cache

# Third-party library imports
from firebase_admin import auth, firestore, initialize_app, storage
from firebase_functions import https_fn, logger, options, storage_fn
from firebase_functions.firestore_fn import (
    DocumentSnapshot,
    Event,
    on_document_created,
)
from openai import OpenAI

# Local application imports
from admin import authz, freshbooks, quickbooks, users
from assistant import assistant
from notifications import pipeline
from notifications.push import ExpoPushClient
from shared.api_client import ApiClient, get_api_client
from shared.config import get_settings
from shared.firebase_constants import (
    ESTIMATES_COLLECTION,
    MESSAGES_COLLECTION,
    PROJECTS_COLLECTION,
)
from shared.types import (
    DeliveryOutcome,
    DeliveryStatus,
    Estimate,
    Message,
    Project,
    from_firestore,
)
from uploads import photos

AI_FUNCTION_TIMEOUT = 120
BULK_IMPORT_TIMEOUT = 300

initialize_app()


@lru_cache(maxsize=1)
def _push_client() -> ExpoPushClient:
    settings = get_settings()
    return ExpoPushClient(
        push_url=settings.expo_push_url,
        access_token=settings.expo_access_token,
    )


@lru_cache(maxsize=1)
def _openai_client() -> OpenAI:
    return OpenAI(api_key=get_settings().openai_api_key)


@lru_cache(maxsize=1)
def _freshbooks_api() -> ApiClient:
    return get_api_client(get_settings().freshbooks_api_url)


def _log_outcome(kind: str, doc_id: str, outcome: DeliveryOutcome) -> None:
    if outcome.status == DeliveryStatus.FAILED:
        logger.error(
            f"[Notification] {kind} {doc_id}: delivery failed: {outcome.reason}"
        )
    elif outcome.status == DeliveryStatus.SKIPPED:
        logger.info(f"[Notification] {kind} {doc_id}: skipped: {outcome.reason}")
    else:
        logger.info(
            f"[Notification] {kind} {doc_id}: sent to {outcome.token_count} devices"
        )


@on_document_created(document=MESSAGES_COLLECTION + "/{messageId}")
def on_message_created(event: Event[DocumentSnapshot | None]) -> None:
    """Notifies everyone on the project except the sender about a new message."""
    if event.data is None:
        return
    message_id = event.params["messageId"]
    logger.info(f"[Notification] New message created: {message_id}")

    message = from_firestore(Message, message_id, event.data.to_dict())
    outcome = pipeline.notify_message_created(
        firestore.client(), _push_client(), message
    )
    _log_outcome("message", message_id, outcome)


@on_document_created(document=ESTIMATES_COLLECTION + "/{estimateId}")
def on_estimate_created(event: Event[DocumentSnapshot | None]) -> None:
    """Notifies the project's client that an estimate is ready."""
    if event.data is None:
        return
    estimate_id = event.params["estimateId"]
    logger.info(f"[Notification] New estimate created: {estimate_id}")

    estimate = from_firestore(Estimate, estimate_id, event.data.to_dict())
    outcome = pipeline.notify_estimate_created(
        firestore.client(), _push_client(), estimate
    )
    _log_outcome("estimate", estimate_id, outcome)


@on_document_created(document=PROJECTS_COLLECTION + "/{projectId}")
def on_project_created(event: Event[DocumentSnapshot | None]) -> None:
    """Notifies all admins about a newly submitted project."""
    if event.data is None:
        return
    project_id = event.params["projectId"]
    logger.info(f"[Notification] New project created: {project_id}")

    project = from_firestore(Project, project_id, event.data.to_dict())
    outcome = pipeline.notify_project_created(
        firestore.client(), _push_client(), project
    )
    _log_outcome("project", project_id, outcome)


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def change_user_password(req: https_fn.CallableRequest) -> dict:
    """
    Changes another user's password. Admin only.

    Args:
        req (https_fn.CallableRequest): The request, containing `userId` and
            `newPassword` (at least 6 characters).

    Returns:
        `{"success": True, "message": ...}`
    """
    caller = authz.require_caller(req)
    return users.change_user_password(firestore.client(), auth, caller, req.data or {})


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def send_welcome_email(req: https_fn.CallableRequest) -> dict:
    """
    Prepares a welcome (password reset) link for a new user. Admin only.

    Args:
        req (https_fn.CallableRequest): The request, containing `userId` and
            `email`.

    Returns:
        `{"success": True, "message": ..., "resetLink": ...}`
    """
    caller = authz.require_caller(req)
    return users.send_welcome_email(firestore.client(), auth, caller, req.data or {})


@https_fn.on_call(timeout_sec=AI_FUNCTION_TIMEOUT, memory=options.MemoryOption.MB_512)
def transcribe_audio(req: https_fn.CallableRequest) -> dict:
    """Transcribes base64 `audioData` (of `mimeType`, default audio/m4a)."""
    authz.require_caller(req)
    return assistant.transcribe_audio(_openai_client(), get_settings(), req.data or {})


@https_fn.on_call(timeout_sec=AI_FUNCTION_TIMEOUT, memory=options.MemoryOption.MB_512)
def generate_project(req: https_fn.CallableRequest) -> dict:
    """Builds a project title, description and spoken summary from a voice note."""
    authz.require_caller(req)
    return assistant.generate_project(_openai_client(), get_settings(), req.data or {})


@https_fn.on_call(timeout_sec=AI_FUNCTION_TIMEOUT, memory=options.MemoryOption.MB_512)
def text_to_speech(req: https_fn.CallableRequest) -> dict:
    authz.require_caller(req)
    return assistant.text_to_speech(_openai_client(), get_settings(), req.data or {})


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def refresh_quickbooks_token(req: https_fn.CallableRequest) -> dict:
    """Refreshes the stored QuickBooks OAuth tokens. Admin only."""
    caller = authz.require_caller(req)
    return quickbooks.refresh_quickbooks_token(
        firestore.client(),
        caller,
        token_url=get_settings().quickbooks_token_url,
    )


@storage_fn.on_object_finalized(memory=options.MemoryOption.MB_512)
def on_photo_uploaded(
    event: storage_fn.CloudEvent[storage_fn.StorageObjectData],
) -> None:
    """Writes a compressed copy and a thumbnail of each uploaded project photo."""
    upload = event.data
    bucket = photos.GcsStorageClient(storage.bucket(upload.bucket))
    outputs = photos.process_project_photo(bucket, upload.name, upload.content_type)
    if outputs is not None:
        logger.info(f"[Photos] Processed photo for project {outputs.project_id}")


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def freshbooks_connect(req: https_fn.CallableRequest) -> dict:
    """
    Starts the FreshBooks OAuth flow. Admin only.

    Args:
        req (https_fn.CallableRequest): The request, containing `redirectUri`.

    Returns:
        `{"success": True, "authUrl": ...}`
    """
    caller = authz.require_caller(req)
    return freshbooks.connect_freshbooks(
        firestore.client(), caller, req.data or {}, get_settings()
    )


def _html_page(status: int, title: str, message: str) -> https_fn.Response:
    body = (
        "<!DOCTYPE html><html><head>"
        f"<title>{html.escape(title)}</title></head><body>"
        f"<h1>{html.escape(title)}</h1><p>{html.escape(message)}</p>"
        "</body></html>"
    )
    return https_fn.Response(body, status=status, mimetype="text/html")


@https_fn.on_request(
    cors=options.CorsOptions(cors_origins="*", cors_methods=["get"]),
    memory=options.MemoryOption.MB_256,
)
def freshbooks_callback(req: https_fn.Request) -> https_fn.Response:
    """OAuth redirect target: stores the FreshBooks tokens for `?code=`."""
    code = req.args.get("code")
    if not code:
        return _html_page(
            400,
            "Connection Failed",
            "Authorization code is missing. Please try connecting again from the app.",
        )
    try:
        freshbooks.complete_oauth(
            firestore.client(),
            _freshbooks_api(),
            code,
            get_settings().freshbooks_redirect_uri,
        )
    except Exception as e:
        logger.error(f"Error handling FreshBooks callback: {e}")
        return _html_page(
            500,
            "Connection Failed",
            "Failed to complete FreshBooks connection. Please try again from the app.",
        )
    return _html_page(
        200,
        "FreshBooks Connected!",
        "You can now close this window and return to the app to import invoices.",
    )


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def freshbooks_refresh_token(req: https_fn.CallableRequest) -> dict:
    """Refreshes the stored FreshBooks OAuth tokens. Admin only."""
    caller = authz.require_caller(req)
    return freshbooks.refresh_freshbooks_token(
        firestore.client(), _freshbooks_api(), caller
    )


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def freshbooks_get_invoices(req: https_fn.CallableRequest) -> dict:
    """Lists FreshBooks invoices (`startDate`, `endDate`, `page`, `perPage`)."""
    caller = authz.require_caller(req)
    return freshbooks.get_freshbooks_invoices(
        firestore.client(), _freshbooks_api(), caller, req.data or {}
    )


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def freshbooks_import_invoice(req: https_fn.CallableRequest) -> dict:
    caller = authz.require_caller(req)
    return freshbooks.import_freshbooks_invoice(
        firestore.client(), _freshbooks_api(), caller, req.data or {}
    )


@https_fn.on_call(timeout_sec=BULK_IMPORT_TIMEOUT, memory=options.MemoryOption.MB_256)
def freshbooks_bulk_import(req: https_fn.CallableRequest) -> dict:
    """Imports a list of FreshBooks invoices; failures are reported per invoice."""
    caller = authz.require_caller(req)
    return freshbooks.bulk_import_freshbooks_invoices(
        firestore.client(), _freshbooks_api(), caller, req.data or {}
    )


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def freshbooks_disconnect(req: https_fn.CallableRequest) -> dict:
    caller = authz.require_caller(req)
    return freshbooks.disconnect_freshbooks(firestore.client(), caller)


@https_fn.on_call(memory=options.MemoryOption.MB_256)
def freshbooks_clear_imported(req: https_fn.CallableRequest) -> dict:
    """Deletes all projects and estimates imported from FreshBooks. Admin only."""
    caller = authz.require_caller(req)
    return freshbooks.clear_imported_freshbooks_data(firestore.client(), caller)
