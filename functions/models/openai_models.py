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

import json
from dataclasses import dataclass
from typing import Optional

from openai import OpenAI

from models import prompts

TRANSCRIPTION_LANGUAGE = "en"
PROJECT_TEMPERATURE = 0.7
PROJECT_MAX_OUTPUT_TOKENS = 500
SPEECH_SPEED = 1.0


class OpenAIInvalidResponseException(Exception):
    pass


@dataclass
class GeneratedProject:
    title: Optional[str]
    description: Optional[str]
    summary: Optional[str]


def audio_extension(mime_type: str) -> str:
    """Maps an audio MIME type to the file extension Whisper expects."""
    if "webm" in mime_type:
        return "webm"
    if "mp4" in mime_type:
        return "m4a"
    if "wav" in mime_type:
        return "wav"
    return "m4a"


def transcribe_audio(
    client: OpenAI,
    audio_bytes: bytes,
    mime_type: str = "audio/m4a",
    model: str = "whisper-1",
) -> str:
    """Transcribes English speech to text with Whisper."""
    filename = f"audio.{audio_extension(mime_type)}"
    transcription = client.audio.transcriptions.create(
        file=(filename, audio_bytes),
        model=model,
        language=TRANSCRIPTION_LANGUAGE,
    )
    return transcription.text


def generate_project(
    client: OpenAI,
    transcription: str,
    existing_description: str | None = None,
    model: str = "gpt-4o",
) -> GeneratedProject:
    """
    Turns a contractor's voice note into a project title and description.

    When `existing_description` is given the model is asked to merge the new
    details into it instead of starting over.
    """
    if existing_description:
        prompt = prompts.UPDATE_PROJECT_PROMPT.format(
            existing_description=existing_description,
            transcription=transcription,
        )
    else:
        prompt = prompts.NEW_PROJECT_PROMPT.format(transcription=transcription)

    completion = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": prompts.PROJECT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        response_format={"type": "json_object"},
        temperature=PROJECT_TEMPERATURE,
        max_tokens=PROJECT_MAX_OUTPUT_TOKENS,
    )
    content = completion.choices[0].message.content
    if not content:
        raise OpenAIInvalidResponseException("Empty completion")
    try:
        result = json.loads(content)
    except json.JSONDecodeError as e:
        raise OpenAIInvalidResponseException(f"Completion was not JSON: {e}") from e

    return GeneratedProject(
        title=result.get("title"),
        description=result.get("description"),
        summary=result.get("summary"),
    )


def text_to_speech(
    client: OpenAI,
    text: str,
    model: str = "tts-1",
    voice: str = "alloy",
) -> bytes:
    """Returns MP3 audio of `text`."""
    speech = client.audio.speech.create(
        model=model,
        voice=voice,
        input=text,
        speed=SPEECH_SPEED,
    )
    return speech.content
