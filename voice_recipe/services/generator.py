from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from pathlib import Path
from typing import Any

from opentelemetry import trace

from voice_recipe.core.config import Settings, require_api_token
from voice_recipe.core.errors import JobDriverError
from voice_recipe.jobs.driver import JobDriver, ProgressFn
from voice_recipe.parsing.recovery import extract_recipe, minimal_fallback
from voice_recipe.schemas.recipes import RecipeRecord
from voice_recipe.services.prediction_client import PredictionClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SYSTEM_PROMPT = "You are a helpful assistant"
STOP_SEQUENCES = "<|end_of_text|>,<|eot_id|>"
PROMPT_TEMPLATE = (
    "<|begin_of_text|><|start_header_id|>system<|end_header_id|>\n\n{system_prompt}<|eot_id|>"
    "<|start_header_id|>user<|end_header_id|>\n\n{prompt}<|eot_id|>"
    "<|start_header_id|>assistant<|end_header_id|>\n\n"
)
RECIPE_PROMPT = """You are a skilled chef who converts spoken cooking instructions into structured recipes.
Extract the title, ingredients with quantities, and step-by-step instructions from the following text.
Format your response as a JSON object with fields: title, ingredients (array of strings with quantities),
and steps (array of strings).{language_clause}

Do not write any other comments or explanations in the JSON object.

Here is the transcribed cooking instruction:
{text}"""


def build_recipe_payload(text: str, settings: Settings) -> dict[str, Any]:
    language_clause = ""
    if settings.recipe_language:
        language_clause = f"\nWrite the title, ingredients and steps in {settings.recipe_language}."
    return {
        "version": settings.recipe_model,
        "input": {
            "prompt": RECIPE_PROMPT.format(text=text, language_clause=language_clause),
            "system_prompt": SYSTEM_PROMPT,
            "max_tokens": settings.max_tokens,
            "max_new_tokens": settings.max_tokens,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "top_k": settings.top_k,
            "length_penalty": settings.length_penalty,
            "presence_penalty": settings.presence_penalty,
            "stop_sequences": STOP_SEQUENCES,
            "prompt_template": PROMPT_TEMPLATE,
        },
    }


def build_transcription_payload(audio: bytes, settings: Settings, *, mime_type: str = "audio/m4a") -> dict[str, Any]:
    encoded = base64.b64encode(audio).decode("ascii")
    return {
        "version": settings.transcription_model_version,
        "input": {"audio_file": f"data:{mime_type};base64,{encoded}"},
    }


class RecipeGenerator:
    """Turns narration text (or an audio file) into a :class:`RecipeRecord`.

    Holds no per-request state; a single instance can serve concurrent calls.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: PredictionClient | None = None,
        driver: JobDriver | None = None,
        on_progress: ProgressFn | None = None,
    ) -> None:
        self.settings = settings
        if driver is None:
            if client is None:
                client = PredictionClient(
                    settings.replicate_base_url,
                    require_api_token(settings),
                    timeout_seconds=settings.request_timeout_seconds,
                )
            driver = JobDriver(
                client,
                poll_interval_seconds=settings.poll_interval_seconds,
                max_attempts=settings.max_poll_attempts,
                on_progress=on_progress,
            )
        self.driver = driver

    async def transcribe(self, audio_path: Path, *, cancel_event: asyncio.Event | None = None) -> str:
        mime_type = mimetypes.guess_type(audio_path.name)[0] or "audio/m4a"
        payload = build_transcription_payload(audio_path.read_bytes(), self.settings, mime_type=mime_type)
        job = await self.driver.submit_and_await(payload, cancel_event=cancel_event)
        return job.output_text.strip()

    async def generate(
        self,
        text: str = "",
        *,
        audio_path: Path | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RecipeRecord:
        with tracer.start_as_current_span("recipe.generate") as span:
            try:
                if audio_path is not None:
                    transcript = await self.transcribe(audio_path, cancel_event=cancel_event)
                    logger.info("transcription finished chars=%s", len(transcript))
                    text = transcript or text
                job = await self.driver.submit_and_await(build_recipe_payload(text, self.settings), cancel_event=cancel_event)
            except JobDriverError as exc:
                span.set_attribute("recipe.strategy", "minimal_fallback")
                logger.exception("recipe generation failed kind=%s; falling back to input text", exc.kind)
                return minimal_fallback(text)

            span.set_attribute("recipe.strategy", "recovery_parser")
            span.set_attribute("recipe.fragments", len(job.output_fragments))
            return extract_recipe(job.output_fragments)
