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

import functools
import logging

from firebase_functions import https_fn

logger = logging.getLogger(__name__)


def invalid_argument(message: str) -> https_fn.HttpsError:
    return https_fn.HttpsError(https_fn.FunctionsErrorCode.INVALID_ARGUMENT, message)


def failed_precondition(message: str) -> https_fn.HttpsError:
    return https_fn.HttpsError(
        https_fn.FunctionsErrorCode.FAILED_PRECONDITION, message
    )


def require_object(data) -> dict:
    """Returns `data` if the payload is a JSON object, else raises INVALID_ARGUMENT."""
    if not isinstance(data, dict):
        raise invalid_argument("Request data must be an object")
    return data


def require_string(data: dict, name: str) -> str:
    """Returns `data[name]` if it is a non-empty string, else raises INVALID_ARGUMENT."""
    value = require_object(data).get(name)
    if not value or not isinstance(value, str):
        raise invalid_argument(f"{name} must be a valid string")
    return value


def internal_errors(action: str):
    """
    Re-raises unexpected exceptions as INTERNAL HttpsErrors.

    HttpsErrors raised by the wrapped function pass through unchanged, so
    validation and authorization failures keep their error code.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except https_fn.HttpsError:
                raise
            except Exception as e:
                logger.exception("Error trying to %s", action)
                raise https_fn.HttpsError(
                    https_fn.FunctionsErrorCode.INTERNAL,
                    f"Failed to {action}: {e}",
                ) from e

        return wrapper

    return decorator
