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

PROJECT_SYSTEM_PROMPT = (
    "You are a helpful assistant that converts contractor voice notes into "
    "structured project descriptions. Always respond with valid JSON."
)

_DESCRIPTION_FORMAT = """Format the description with:
Location: [if mentioned]

[Project overview]

Scope of Work:
• Category 1
  - Detail 1
  - Detail 2
• Category 2
  - Detail 1
  - Detail 2

Notes: [Special considerations]"""

NEW_PROJECT_PROMPT = (
    """A contractor is describing a new project:

"{transcription}"

Please extract and structure this information. Return a JSON object with:
- title: A short, professional project title (3-5 words)
- description: A well-formatted project description
- summary: A brief conversational response to speak back to the user

"""
    + _DESCRIPTION_FORMAT
)

UPDATE_PROJECT_PROMPT = (
    """A contractor is describing a project. They've already provided this description:

"{existing_description}"

Now they've added more details:
"{transcription}"

Please update the project information incorporating both the old and new details. Return a JSON object with:
- title: A short, professional project title (3-5 words, update if needed)
- description: The complete updated description formatted with sections
- summary: A brief conversational response acknowledging what was added

"""
    + _DESCRIPTION_FORMAT
)
