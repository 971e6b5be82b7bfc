"""
Best Moment Extractor
Uses Google Gemini to pick the standout moments of a transcript
"""

import asyncio
import json
import re
from typing import List, Optional

from pydantic import ValidationError

from ..config import Settings, get_settings
from ..models.moment import MomentDescriptor
from ..models.transcription import MomentsResult
from ..utils.exceptions import CollaboratorError
from ..utils.logger import get_logger

logger = get_logger()

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def build_prompt(transcript_text: str) -> str:
    """Build the prompt for Gemini analysis"""
    return f"""I have a transcript from a video. Please identify the 5-8 best moments or highlights from this transcript.

For each moment, provide:
1. The content/quote of the moment
2. A start timestamp (in format MM:SS)
3. An end timestamp (in format MM:SS)
4. A brief reason why this is a standout moment (compelling, funny, insightful, etc.)

Format your response as a JSON array of objects with properties 'content', 'startTimestamp', 'endTimestamp', and 'reason'. Do not add any commentary before or after the JSON.

Here is the transcript:
{transcript_text}
"""


def extract_json_array(text: str) -> str:
    """Pull the JSON array out of a model reply, with or without a markdown fence."""
    block = _CODE_BLOCK.search(text)
    if block:
        text = block.group(1)

    start = text.find("[")
    end = text.rfind("]")
    if start >= 0 and end > start:
        return text[start:end + 1].strip()
    return text.strip()


def parse_moments(text: str) -> List[MomentDescriptor]:
    """Parse a Gemini reply into moments; entries that are not objects are dropped."""
    data = json.loads(extract_json_array(text))
    if isinstance(data, dict):
        data = data.get("moments", [])
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of moments")

    moments = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            moments.append(MomentDescriptor.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Ignoring malformed moment: {e.errors()[0].get('msg')}")
    return moments


class MomentExtractor:
    """Given transcript text, return the best moments"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client = None

    def _ensure_client(self):
        """Lazy load the Gemini client"""
        if self._client is not None:
            return

        if not self.settings.gemini_api_key:
            raise CollaboratorError("Gemini", "API key is not configured (set GEMINI_API_KEY)")

        from google import genai
        self._client = genai.Client(api_key=self.settings.gemini_api_key)
        logger.info("Gemini client initialized")

    async def extract_moments(self, transcript_text: str) -> MomentsResult:
        """Ask Gemini for the best moments of ``transcript_text``."""
        if not transcript_text.strip():
            return MomentsResult(success=False, error_message="Transcript is empty")

        logger.info("Extracting best moments from transcript using Gemini API")

        try:
            self._ensure_client()
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self._client.models.generate_content(
                    model=self.settings.gemini_model,
                    contents=build_prompt(transcript_text)
                )
            )
        except CollaboratorError as e:
            logger.error(e.message)
            return MomentsResult(success=False, error_message=e.message)
        except Exception as e:
            logger.error(f"Failed to extract best moments: {e}")
            return MomentsResult(success=False, error_message=f"Failed to extract best moments: {e}")

        text = getattr(response, "text", None)
        if not text:
            logger.error("Gemini returned empty response (possibly blocked)")
            return MomentsResult(success=False, error_message="No response candidates found in Gemini API response")

        try:
            moments = parse_moments(text)
        except ValueError as e:
            logger.error(f"Failed to parse Gemini response: {e}")
            return MomentsResult(success=False, error_message=f"Failed to parse Gemini response: {e}")

        logger.info(f"Extracted {len(moments)} moments")
        return MomentsResult(success=True, moments=moments)
