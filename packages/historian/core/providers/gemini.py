"""Gemini implementation of GenerationService (google-genai SDK).

Every remote call goes through ResilientCall. Structured answers are
requested as JSON against a response schema and validated with pydantic.
"""

from __future__ import annotations

import base64
from collections.abc import Sequence
import json
import logging
from typing import Any, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel, TypeAdapter, ValidationError

from historian.core.config.models import ProviderConfig
from historian.core.errors import EmptyResponseError, MalformedResponseError
from historian.core.models.journey import Citation, SceneHotspot, TimelineEvent
from historian.core.providers.base import (
    Identification,
    RelevanceVerdict,
    ResearchFindings,
    TimelinePlan,
)
from historian.core.retry.resilient import ResilientCall

logger = logging.getLogger(__name__)

T = TypeVar("T")

IMAGE_MIME_TYPE = "image/jpeg"
RECORDING_MIME_TYPE = "audio/webm"


# Response schemas sent to the model. Kept free of validation constraints,
# which the schema converter does not carry over.


class _PlannedEvent(BaseModel):
    year: int
    title: str
    description: str
    visual_prompt: str


class _LocatedFeature(BaseModel):
    name: str
    description: str
    x: float
    y: float


class _Dossier(BaseModel):
    approved: bool
    reason: str | None = None
    title: str | None = None
    topic: str | None = None
    report: str | None = None
    image_prompts: list[str] | None = None


_PLAN_ADAPTER = TypeAdapter(list[_PlannedEvent])
_FEATURES_ADAPTER = TypeAdapter(list[_LocatedFeature])


def _clamp_unit(value: float) -> float:
    return min(1.0, max(0.0, value))


class GeminiProvider:
    """GenerationService backed by the Gemini API."""

    def __init__(
        self,
        config: ProviderConfig,
        retry: ResilientCall | None = None,
        client: genai.Client | None = None,
    ) -> None:
        """
        Args:
            config: Model names, voice and credentials
            retry: Retry wrapper applied to every remote call
            client: Pre-built SDK client (built from ``config.api_key`` if None)
        """
        self.config = config
        self.retry = retry or ResilientCall()
        self._client = client or genai.Client(api_key=config.api_key)

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    async def _generate(
        self,
        label: str,
        model: str,
        contents: Any,
        config: types.GenerateContentConfig | None = None,
    ) -> types.GenerateContentResponse:
        logger.debug(f"Gemini {label} request (model={model})")
        return await self.retry.execute(
            lambda: self._client.aio.models.generate_content(
                model=model, contents=contents, config=config
            ),
            label=f"gemini.{label}",
        )

    def _json_config(self, schema: Any) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )

    def _grounded_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            tools=[types.Tool(google_search=types.GoogleSearch())],
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )

    @staticmethod
    def _parse(label: str, text: str | None, adapter: TypeAdapter[T], fallback: str) -> T:
        try:
            return adapter.validate_json(text or fallback)
        except (ValidationError, ValueError) as e:
            raise MalformedResponseError(
                f"Unexpected {label} response: {e}", operation=label
            ) from e

    @staticmethod
    def _parts(response: types.GenerateContentResponse) -> Sequence[types.Part]:
        candidates = response.candidates or []
        if not candidates or candidates[0].content is None:
            return []
        return candidates[0].content.parts or []

    @classmethod
    def _inline_data_b64(cls, response: types.GenerateContentResponse) -> str | None:
        for part in cls._parts(response):
            if part.inline_data is not None and part.inline_data.data:
                return base64.b64encode(part.inline_data.data).decode("ascii")
        return None

    @staticmethod
    def _grounding_sources(response: types.GenerateContentResponse) -> list[Citation]:
        candidates = response.candidates or []
        if not candidates or candidates[0].grounding_metadata is None:
            return []
        chunks = candidates[0].grounding_metadata.grounding_chunks or []
        return [
            Citation(title=chunk.web.title or "Source", url=chunk.web.uri or "#")
            for chunk in chunks
            if chunk.web is not None
        ]

    @staticmethod
    def _blob_part(data_b64: str, mime_type: str = IMAGE_MIME_TYPE) -> types.Part:
        return types.Part.from_bytes(data=base64.b64decode(data_b64), mime_type=mime_type)

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    async def identify(self, image_b64: str) -> Identification:
        response = await self._generate(
            "identify",
            self.config.text_model,
            [
                self._blob_part(image_b64),
                "Identify this landmark. Respond with a JSON object holding its "
                "'name' and 'location'.",
            ],
            self._json_config(Identification),
        )
        return self._parse(
            "identify",
            response.text,
            TypeAdapter(Identification),
            '{"name": "Unknown", "location": "Unknown"}',
        )

    async def plan_timeline(self, subject_name: str, location: str, length: int) -> TimelinePlan:
        research = await self._generate(
            "research",
            self.config.text_model,
            f"Search for historical facts and key turning points of {subject_name} "
            f"in {location}. Focus on {length} major eras.",
            self._grounded_config(),
        )

        response = await self._generate(
            "plan",
            self.config.text_model,
            f'Using the research below, build a historical timeline for "{subject_name}" '
            f"with exactly {length} distinct moments. For each give the year, a title, "
            "a short historical description and a visual_prompt describing the scene.\n\n"
            f"Research:\n{research.text or ''}",
            self._json_config(list[_PlannedEvent]),
        )
        planned = self._parse("plan", response.text, _PLAN_ADAPTER, "[]")
        return TimelinePlan(
            events=[self._to_event(p) for p in planned],
            sources=self._grounding_sources(research),
        )

    async def plan_timeline_from_report(self, topic: str, report: str, length: int) -> TimelinePlan:
        response = await self._generate(
            "plan_from_report",
            self.config.text_model,
            f'From this research report about "{topic}", build a {length}-point historical '
            f'timeline.\nReport: "{report}"\n'
            "For each point give: year (integer), title, description, and visual_prompt, "
            "a description suited to generating a 360 degree panorama of that moment.",
            self._json_config(list[_PlannedEvent]),
        )
        planned = self._parse("plan_from_report", response.text, _PLAN_ADAPTER, "[]")
        return TimelinePlan(events=[self._to_event(p) for p in planned])

    @staticmethod
    def _to_event(planned: _PlannedEvent) -> TimelineEvent:
        return TimelineEvent(
            year=planned.year,
            title=planned.title,
            description=planned.description,
            visual_prompt=planned.visual_prompt,
            panoramic=True,
        )

    async def render_image(
        self,
        event: TimelineEvent,
        subject_name: str,
        reference_image_b64: str | None = None,
    ) -> str:
        contents: list[Any] = []
        if reference_image_b64:
            contents.append(self._blob_part(reference_image_b64))
            prompt = f"Historical 360 expansion for {event.year}: {event.visual_prompt}"
        else:
            prompt = (
                "Generate a photorealistic, ultra-high-definition, seamless equirectangular "
                f"360-degree panoramic view of {subject_name} in the year {event.year}. "
                f"{event.visual_prompt}."
            )
        contents.append(prompt)

        response = await self._generate(
            "render_image",
            self.config.image_model,
            contents,
            types.GenerateContentConfig(
                image_config=types.ImageConfig(aspect_ratio=self.config.scene_aspect_ratio)
            ),
        )
        image = self._inline_data_b64(response)
        if image is None:
            raise EmptyResponseError("No image generated", operation="render_image")
        return image

    async def identify_hotspots(
        self, image_b64: str, subject_name: str, year: int
    ) -> list[SceneHotspot]:
        response = await self._generate(
            "hotspots",
            self.config.text_model,
            [
                self._blob_part(image_b64),
                f"This is a 360-degree panorama of {subject_name} in {year}. Identify 3-4 "
                "notable nearby buildings, statues or architectural features visible in the "
                "background or periphery. For each give 'name', 'description' (a brief "
                f"historical fact about it in {year}), 'x' (horizontal position 0-1, 0.5 is "
                "center) and 'y' (vertical position 0-1, 0.5 is the horizon).",
            ],
            self._json_config(list[_LocatedFeature]),
        )
        features = self._parse("hotspots", response.text, _FEATURES_ADAPTER, "[]")
        return [
            SceneHotspot(
                id=SceneHotspot.make_id(i, year),
                name=f.name,
                description=f.description,
                x=_clamp_unit(f.x),
                y=_clamp_unit(f.y),
            )
            for i, f in enumerate(features)
        ]

    async def synthesize_narration(
        self, subject_name: str, timeline: list[TimelineEvent]
    ) -> str:
        start = timeline[0].year if timeline else "its origins"
        script_response = await self._generate(
            "narration_script",
            self.config.text_model,
            f"Write a short narration about {subject_name}'s evolution from {start} "
            "to today. Plain text.",
            types.GenerateContentConfig(thinking_config=types.ThinkingConfig(thinking_budget=0)),
        )
        script = script_response.text or f"Welcome to {subject_name}."

        speech = await self._generate(
            "narration_tts",
            self.config.tts_model,
            script,
            types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(
                            voice_name=self.config.voice
                        )
                    )
                ),
            ),
        )
        audio = self._inline_data_b64(speech)
        if audio is None:
            logger.warning(f"Speech synthesis returned no audio for {subject_name}")
            return ""
        return audio

    async def conduct_research(self, audio_b64: str) -> ResearchFindings:
        research = await self._generate(
            "conduct_research",
            self.config.text_model,
            [
                self._blob_part(audio_b64, RECORDING_MIME_TYPE),
                "Listen to this research request. Use Google Search to research the "
                "historical topic it names and write a detailed report of facts and key eras.",
            ],
            self._grounded_config(),
        )
        sources = self._grounding_sources(research)

        response = await self._generate(
            "synthesize_dossier",
            self.config.text_model,
            "Turn the research report below into a structured JSON dossier. Set 'approved' "
            "to true only if the content is historical or educational (otherwise explain in "
            "'reason'). Name the core 'topic', give a formal 'title', condense the findings "
            "into 'report' and suggest 2-3 'image_prompts' for historical illustrations.\n\n"
            f"Report:\n{research.text or ''}",
            self._json_config(_Dossier),
        )
        dossier = self._parse(
            "synthesize_dossier", response.text, TypeAdapter(_Dossier), '{"approved": false}'
        )
        return ResearchFindings(
            approved=dossier.approved,
            reason=dossier.reason,
            topic=dossier.topic,
            title=dossier.title,
            report=dossier.report,
            image_prompts=dossier.image_prompts or [],
            sources=sources,
        )

    async def validate_relevance(
        self, subject_name: str, year: int, content: str, is_audio: bool
    ) -> RelevanceVerdict:
        guidance = (
            f'Decide whether the content below is relevant to "{subject_name}". Relevant '
            f"content includes historical or architectural facts about it (in {year} or any "
            "other era), personal memories or accounts of visiting it, and observations about "
            f"its current state. Do not reject content for referring to a time after {year}; "
            "reject only content that is entirely unrelated. Respond with JSON holding "
            "'relevant' (bool) and 'feedback' (a brief explanation when not relevant)."
        )
        contents: list[Any]
        if is_audio:
            contents = [self._blob_part(content, RECORDING_MIME_TYPE), guidance]
        else:
            contents = [f'{guidance}\n\nContent: "{content}"']

        response = await self._generate(
            "validate_relevance",
            self.config.text_model,
            contents,
            self._json_config(RelevanceVerdict),
        )
        return self._parse(
            "validate_relevance",
            response.text,
            TypeAdapter(RelevanceVerdict),
            json.dumps({"relevant": False, "feedback": "Unable to verify content."}),
        )

    async def render_research_image(self, prompt: str) -> str:
        response = await self._generate(
            "render_research_image",
            self.config.image_model,
            f"A historical illustration for a research report: {prompt}. "
            "High quality, documentary style.",
            types.GenerateContentConfig(
                image_config=types.ImageConfig(aspect_ratio=self.config.research_aspect_ratio)
            ),
        )
        image = self._inline_data_b64(response)
        if image is None:
            raise EmptyResponseError(
                "Research image generation failed", operation="render_research_image"
            )
        return image
