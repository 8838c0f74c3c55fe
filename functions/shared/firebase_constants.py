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

USERS_COLLECTION = "users"
PROJECTS_COLLECTION = "projects"
MESSAGES_COLLECTION = "messages"
ESTIMATES_COLLECTION = "estimates"
AUDIT_LOGS_COLLECTION = "audit_logs"
SETTINGS_COLLECTION = "settings"
CLIENTS_COLLECTION = "clients"

QUICKBOOKS_SETTINGS_DOC = "quickbooks"
FRESHBOOKS_SETTINGS_DOC = "freshbooks"
