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

ADMIN_ROLE = "admin"

MIN_PASSWORD_LENGTH = 6

# Expo push tokens look like "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]".
EXPO_PUSH_TOKEN_PREFIX = "ExponentPushToken"

DEFAULT_API_BASE_URL = "https://www.carbenconnect.com"
DEFAULT_API_TIMEOUT_MS = 15000
REQUEST_TIMEOUT = 30  # seconds

UPLOAD_IMAGE_MAX_WIDTH = 1600
UPLOAD_IMAGE_QUALITY = 75
THUMBNAIL_MAX_WIDTH = 400
THUMBNAIL_QUALITY = 60
JPEG_CONTENT_TYPE = "image/jpeg"
