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

"""Callable logic for the voice-driven project assistant."""

import base64
import binascii
from dataclasses import asdict

from openai import OpenAI

from models import openai_models
from shared.config import Settings
from shared.errors import (
    internal_errors,
    invalid_argument,
    require_object,
    require_string,
)


@internal_errors("transcribe audio")
def transcribe_audio(client: OpenAI, settings: Settings, data: dict) -> dict:
    require_object(data)
    audio_data = data.get("audioData")
    mime_type = data.get("mimeType") or "audio/m4a"
    if not audio_data:
        raise invalid_argument("audioData is required")
    try:
        audio_bytes = base64.b64decode(audio_data, validate=True)
    except (binascii.Error, TypeError, ValueError):
        raise invalid_argument("audioData must be base64 encoded")

    text = openai_models.transcribe_audio(
        client,
        audio_bytes,
        mime_type=mime_type,
        model=settings.openai_transcription_model,
    )
    return {"success": True, "text": text}


@internal_errors("generate project")
def generate_project(client: OpenAI, settings: Settings, data: dict) -> dict:
    require_object(data)
    transcription = require_string(data, "transcription")
    existing_description = data.get("existingDescription")

    project = openai_models.generate_project(
        client,
        transcription,
        existing_description=existing_description,
        model=settings.openai_chat_model,
    )
    return {"success": True, **asdict(project)}


@internal_errors("generate speech")
def text_to_speech(client: OpenAI, settings: Settings, data: dict) -> dict:
    require_object(data)
    text = require_string(data, "text")
    audio = openai_models.text_to_speech(
        client,
        text,
        model=settings.openai_tts_model,
        voice=settings.openai_tts_voice,
    )
    return {"success": True, "audioData": base64.b64encode(audio).decode("ascii")}
