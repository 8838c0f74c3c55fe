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
Environment-backed configuration for the Cloud Functions.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import DEFAULT_API_TIMEOUT_MS


class Settings(BaseSettings):
    """Settings read from the function environment or a local `.env` file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    openai_chat_model: str = Field(default="gpt-4o", env="OPENAI_CHAT_MODEL")
    openai_transcription_model: str = Field(
        default="whisper-1", env="OPENAI_TRANSCRIPTION_MODEL"
    )
    openai_tts_model: str = Field(default="tts-1", env="OPENAI_TTS_MODEL")
    openai_tts_voice: str = Field(default="alloy", env="OPENAI_TTS_VOICE")

    # Outbound API wrapper
    api_timeout_ms: int = Field(default=DEFAULT_API_TIMEOUT_MS, env="API_TIMEOUT_MS")

    # Push gateway
    expo_push_url: str = Field(
        default="https://exp.host/--/api/v2/push/send", env="EXPO_PUSH_URL"
    )
    expo_access_token: Optional[str] = Field(default=None, env="EXPO_ACCESS_TOKEN")

    # QuickBooks
    quickbooks_token_url: str = Field(
        default="https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer",
        env="QUICKBOOKS_TOKEN_URL",
    )

    # FreshBooks. The client credentials seed `settings/freshbooks` the first
    # time an admin connects.
    freshbooks_api_url: str = Field(
        default="https://api.freshbooks.com", env="FRESHBOOKS_API_URL"
    )
    freshbooks_authorize_url: str = Field(
        default="https://auth.freshbooks.com/oauth/authorize",
        env="FRESHBOOKS_AUTHORIZE_URL",
    )
    freshbooks_redirect_uri: str = Field(
        default="https://us-central1-carben-connect.cloudfunctions.net/freshbooks_callback",
        env="FRESHBOOKS_REDIRECT_URI",
    )
    freshbooks_client_id: Optional[str] = Field(
        default=None, env="FRESHBOOKS_CLIENT_ID"
    )
    freshbooks_client_secret: Optional[str] = Field(
        default=None, env="FRESHBOOKS_CLIENT_SECRET"
    )
    freshbooks_account_id: Optional[str] = Field(
        default=None, env="FRESHBOOKS_ACCOUNT_ID"
    )
    freshbooks_api_version: str = Field(
        default="2023-02-20", env="FRESHBOOKS_API_VERSION"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
