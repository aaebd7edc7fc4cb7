"""
core/metadata_generator.py – drivetube Metadata Generator
=========================================================
Produces YouTube title / description / tags for a Drive video.

Strategies are tried in order and the first success wins:
  1. Transcript  – speech-to-text on a byte prefix, then a grounded prompt
  2. Vision      – a few frames from the full file sent to the model
  3. Filename    – text-only prompt on the cleaned file name, with a
                   deterministic fallback when the model is unavailable

Every result, fallback included, goes through `normalize_metadata` so the
uploader only ever sees values inside YouTube's limits.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from loguru import logger

from drivetube.core.ai_engine import AIError
from drivetube.core.frame_extractor import FrameExtractionError, downloaded_video, extract_frames
from drivetube.models import VideoMetadata

# ── YouTube limits ────────────────────────────────────────────────────────────
TITLE_MAX = 100
DESCRIPTION_MAX = 5000
TAG_MAX = 30
TAGS_TOTAL_MAX = 500

TRANSCRIPT_PROMPT_CHARS = 2000
DEFAULT_PREFIX_BYTES = 10 * 1024 * 1024

FALLBACK_TAGS = ["shorts", "viral", "trending", "video"]

_JSON_SHAPE = """Respond with ONLY valid JSON in this exact shape:
{
  "title": "An engaging, SEO-friendly title (max 100 chars)",
  "description": "A compelling description with relevant keywords (200-500 chars). Include a call to action and hashtags at the end.",
  "tags": ["up", "to", "ten", "relevant", "tags"]
}"""


def transcript_prompt(transcript: str, file_name: str) -> str:
    return f"""You are a YouTube content creator assistant.
Below is the transcript of a short video named "{file_name}".

Transcript:
\"\"\"{transcript[:TRANSCRIPT_PROMPT_CHARS]}\"\"\"

Write metadata that accurately reflects what is said in the video.
Do not invent topics that are not in the transcript.

{_JSON_SHAPE}"""


def vision_prompt(file_name: str, frame_count: int) -> str:
    return f"""You are a YouTube content creator assistant.
The {frame_count} attached images are frames taken at even intervals from a short video named "{file_name}".

Describe what the video shows through its metadata.
Base everything on what is visible in the frames.

{_JSON_SHAPE}"""


def filename_prompt(clean_name: str) -> str:
    return f"""You are a YouTube content creator assistant. Generate engaging metadata for a video.

Based on the video file name: "{clean_name}"

Rules:
- Title should be catchy and include keywords
- Tags should be relevant trending keywords
- Make it suitable for YouTube's algorithm

{_JSON_SHAPE}"""


# ── Normalisation ─────────────────────────────────────────────────────────────

def clean_file_name(file_name: str) -> str:
    """Strip the extension and turn underscores / dashes into spaces."""
    name = re.sub(r"\.[^/.]+$", "", file_name or "")
    name = re.sub(r"[_-]", " ", name)
    return re.sub(r"\s+", " ", name).strip()


def _normalize_tags(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, (list, tuple)):
        return []

    tags: list[str] = []
    used = 0
    for item in raw:
        # tags are stored comma-joined
        tag = " ".join(str(item).replace(",", " ").split()).lstrip("#").strip()[:TAG_MAX].strip()
        if not tag:
            continue
        cost = len(tag) + 1
        if used + cost > TAGS_TOTAL_MAX:
            break
        tags.append(tag)
        used += cost
    return tags


def normalize_metadata(meta: VideoMetadata, file_name: str = "") -> VideoMetadata:
    title = " ".join(str(meta.title or "").split())
    if not title:
        title = clean_file_name(file_name) or "Untitled video"
    return VideoMetadata(
        title=title[:TITLE_MAX],
        description=str(meta.description or "")[:DESCRIPTION_MAX],
        tags=_normalize_tags(meta.tags),
        transcript=meta.transcript,
        source=meta.source,
    )


def fallback_metadata(file_name: str) -> VideoMetadata:
    clean = clean_file_name(file_name)
    return VideoMetadata(
        title=f"[AI Failed] {clean}",
        description=f"Check out this video: {clean}\n\n#shorts #viral #trending",
        tags=list(FALLBACK_TAGS),
        source="fallback",
    )


def _from_model(data: dict[str, Any], source: str, transcript: str | None = None) -> VideoMetadata:
    title = str(data.get("title") or "").strip()
    if not title:
        raise AIError("Model response has no title")
    return VideoMetadata(
        title=title,
        description=str(data.get("description") or ""),
        tags=data.get("tags") or [],
        transcript=transcript,
        source=source,
    )


# ── Strategy plumbing ─────────────────────────────────────────────────────────

@dataclass
class MetadataContext:
    drive_id: str
    file_name: str
    drive: Any
    transcript: str | None = None


@dataclass(frozen=True)
class StrategyResult:
    metadata: VideoMetadata | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.metadata is not None


class MetadataStrategy(Protocol):
    name: str

    def attempt(self, context: MetadataContext) -> StrategyResult: ...


class TranscriptStrategy:
    name = "transcript"

    def __init__(self, transcriber, ai, prefix_bytes: int = DEFAULT_PREFIX_BYTES) -> None:
        self._transcriber = transcriber
        self._ai = ai
        self._prefix_bytes = prefix_bytes

    def attempt(self, context: MetadataContext) -> StrategyResult:
        try:
            data = context.drive.read_prefix(context.drive_id, self._prefix_bytes)
            result = self._transcriber.transcribe(data)
            if not result.success or not result.transcript:
                return StrategyResult(error=result.error or "No transcript")
            context.transcript = result.transcript

            reply = self._ai.generate_json(transcript_prompt(result.transcript, context.file_name))
            return StrategyResult(metadata=_from_model(reply, self.name, result.transcript))
        except Exception as exc:
            return StrategyResult(error=str(exc))


class VisionStrategy:
    name = "vision"

    def __init__(
        self,
        ai,
        frame_count: int = 3,
        frame_extractor: Callable[..., list[bytes]] = extract_frames,
    ) -> None:
        self._ai = ai
        self._frame_count = frame_count
        self._extract = frame_extractor

    def attempt(self, context: MetadataContext) -> StrategyResult:
        if context.transcript:
            return StrategyResult(error="Skipped: transcript already available")
        try:
            with downloaded_video(context.drive, context.drive_id) as path:
                frames = self._extract(path, count=self._frame_count)
            reply = self._ai.generate_json(vision_prompt(context.file_name, len(frames)), images=frames)
            return StrategyResult(metadata=_from_model(reply, self.name))
        except FrameExtractionError as exc:
            return StrategyResult(error=f"Frame extraction failed: {exc}")
        except Exception as exc:
            return StrategyResult(error=str(exc))


class FilenameStrategy:
    """Terminal strategy: always produces metadata."""

    name = "filename"

    def __init__(self, ai) -> None:
        self._ai = ai

    def attempt(self, context: MetadataContext) -> StrategyResult:
        clean = clean_file_name(context.file_name)
        try:
            reply = self._ai.generate_json(filename_prompt(clean))
            return StrategyResult(metadata=_from_model(reply, self.name))
        except Exception as exc:
            logger.warning(f"[MetaGen] Filename prompt failed for '{context.file_name}': {exc}")
            return StrategyResult(metadata=fallback_metadata(context.file_name))


# ── Selector ──────────────────────────────────────────────────────────────────

class MetadataSelector:

    def __init__(self, strategies: list[MetadataStrategy]) -> None:
        self._strategies = list(strategies)

    def select(self, context: MetadataContext) -> VideoMetadata:
        """Run strategies in order; never raises."""
        for strategy in self._strategies:
            try:
                result = strategy.attempt(context)
            except Exception as exc:
                result = StrategyResult(error=str(exc))

            if result.ok:
                meta = result.metadata
                if meta.transcript is None:
                    meta.transcript = context.transcript
                logger.info(f"[MetaGen] '{context.file_name}' -> metadata from {meta.source}")
                return normalize_metadata(meta, context.file_name)

            logger.info(f"[MetaGen] Strategy {strategy.name} gave nothing for '{context.file_name}': {result.error}")

        meta = fallback_metadata(context.file_name)
        meta.transcript = context.transcript
        logger.warning(f"[MetaGen] All strategies failed for '{context.file_name}', using fallback")
        return normalize_metadata(meta, context.file_name)

    def regenerate_from_filename(self, file_name: str) -> VideoMetadata:
        filename_strategies = [s for s in self._strategies if s.name == FilenameStrategy.name]
        context = MetadataContext(drive_id="", file_name=file_name, drive=None)
        return MetadataSelector(filename_strategies).select(context)


def build_selector(drive_prefix_bytes: int, frame_count: int, transcriber, ai) -> MetadataSelector:
    return MetadataSelector(
        [
            TranscriptStrategy(transcriber, ai, prefix_bytes=drive_prefix_bytes),
            VisionStrategy(ai, frame_count=frame_count),
            FilenameStrategy(ai),
        ]
    )
