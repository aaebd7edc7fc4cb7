from __future__ import annotations

from pathlib import Path

from conftest import FakeAI, FakeDrive, FakeTranscriber, video_file
from drivetube.core.ai_engine import AIError
from drivetube.core.frame_extractor import FrameExtractionError
from drivetube.core.metadata_generator import (
    FilenameStrategy,
    MetadataContext,
    MetadataSelector,
    StrategyResult,
    TranscriptStrategy,
    VisionStrategy,
    clean_file_name,
    fallback_metadata,
    normalize_metadata,
)
from drivetube.models import VideoMetadata, VideoRecord

GOOD = {"title": "A fine title", "description": "About it", "tags": ["one", "#two"]}


def _context(name: str = "my_cool-video.mp4") -> MetadataContext:
    f = video_file(1, name=name)
    return MetadataContext(drive_id=f.id, file_name=f.name, drive=FakeDrive([f]))


class RecordingExtractor:
    def __init__(self, frames=None, error: Exception | None = None) -> None:
        self.frames = frames if frames is not None else [b"f1", b"f2", b"f3"]
        self.error = error
        self.paths: list[Path] = []

    def __call__(self, path: Path, count: int = 3) -> list[bytes]:
        assert path.exists()
        self.paths.append(path)
        if self.error:
            raise self.error
        return self.frames[:count]


# ── Normalisation ─────────────────────────────────────────────────────────────

def test_clean_file_name():
    assert clean_file_name("my_cool-video.mp4") == "my cool video"
    assert clean_file_name("plain") == "plain"


def test_normalize_limits():
    meta = normalize_metadata(
        VideoMetadata(title="T" * 150, description="D" * 6000, tags=["  #hello ", "", "#", "x" * 45])
    )
    assert len(meta.title) == 100
    assert len(meta.description) == 5000
    assert meta.tags == ["hello", "x" * 30]


def test_tag_budget_is_enforced():
    tags = [f"{i:02d}" + "t" * 40 for i in range(60)]
    meta = normalize_metadata(VideoMetadata(title="t", description="", tags=tags))
    assert all(len(t) <= 30 for t in meta.tags)
    assert sum(len(t) + 1 for t in meta.tags) <= 500
    assert len(meta.tags) == 16


def test_comma_separated_tags_are_split():
    meta = normalize_metadata(VideoMetadata(title="t", description="", tags="a, b ,,c"))
    assert meta.tags == ["a", "b", "c"]


def test_fallback_shape():
    meta = fallback_metadata("holiday_trip-2024.mov")
    assert meta.title == "[AI Failed] holiday trip 2024"
    assert meta.description == "Check out this video: holiday trip 2024\n\n#shorts #viral #trending"
    assert meta.tags == ["shorts", "viral", "trending", "video"]


# ── Strategy ordering ─────────────────────────────────────────────────────────

def test_transcript_wins_and_skips_the_rest():
    ai = FakeAI([GOOD])
    extractor = RecordingExtractor()
    selector = MetadataSelector(
        [
            TranscriptStrategy(FakeTranscriber("hello world"), ai),
            VisionStrategy(ai, frame_extractor=extractor),
            FilenameStrategy(ai),
        ]
    )
    meta = selector.select(_context())

    assert meta.source == "transcript"
    assert meta.transcript == "hello world"
    assert meta.tags == ["one", "two"]
    assert extractor.paths == []
    assert len(ai.prompts) == 1
    assert "hello world" in ai.prompts[0][0]


def test_vision_tried_before_filename():
    ai = FakeAI([{"title": "Seen in frames", "description": "", "tags": []}])
    extractor = RecordingExtractor()
    ctx = _context()
    selector = MetadataSelector(
        [
            TranscriptStrategy(FakeTranscriber(None), ai),
            VisionStrategy(ai, frame_count=3, frame_extractor=extractor),
            FilenameStrategy(ai),
        ]
    )
    meta = selector.select(ctx)

    assert meta.source == "vision"
    assert meta.title == "Seen in frames"
    assert ai.prompts[0][1] == 3
    assert len(extractor.paths) == 1
    assert not extractor.paths[0].exists()


def test_everything_fails_gives_deterministic_fallback():
    ai = FakeAI([AIError("down"), AIError("down")])
    extractor = RecordingExtractor(error=FrameExtractionError("no ffmpeg"))
    selector = MetadataSelector(
        [
            TranscriptStrategy(FakeTranscriber(None), ai),
            VisionStrategy(ai, frame_extractor=extractor),
            FilenameStrategy(ai),
        ]
    )
    meta = selector.select(_context("my_cool-video.mp4"))

    assert meta.title == "[AI Failed] my cool video"
    assert meta.source == "fallback"
    assert not extractor.paths[0].exists()


def test_transcript_kept_even_when_its_prompt_fails():
    ai = FakeAI([AIError("quota"), {"title": "From name", "description": "", "tags": ["x"]}])
    extractor = RecordingExtractor()
    selector = MetadataSelector(
        [
            TranscriptStrategy(FakeTranscriber("spoken words"), ai),
            VisionStrategy(ai, frame_extractor=extractor),
            FilenameStrategy(ai),
        ]
    )
    meta = selector.select(_context())

    assert meta.source == "filename"
    assert meta.transcript == "spoken words"
    assert extractor.paths == []


def test_transcript_reads_bounded_prefix():
    ctx = _context()
    TranscriptStrategy(FakeTranscriber(None), FakeAI(), prefix_bytes=1234).attempt(ctx)
    assert ctx.drive.prefix_reads == [(ctx.drive_id, 1234)]


def test_selector_survives_a_raising_strategy():
    class Exploding:
        name = "exploding"

        def attempt(self, context):
            raise RuntimeError("bug")

    class Fixed:
        name = "fixed"

        def attempt(self, context):
            return StrategyResult(metadata=VideoMetadata(title="ok", description="", tags=[], source="filename"))

    meta = MetadataSelector([Exploding(), Fixed()]).select(_context())
    assert meta.title == "ok"


def test_selector_with_no_success_uses_fallback():
    class Nothing:
        name = "nothing"

        def attempt(self, context):
            return StrategyResult(error="nope")

    meta = MetadataSelector([Nothing()]).select(_context("a_b.mp4"))
    assert meta.title == "[AI Failed] a b"


def test_regenerate_from_filename_uses_only_filename_strategy():
    ai = FakeAI([{"title": "Fresh", "description": "d", "tags": ["t"]}])
    transcriber = FakeTranscriber("ignored")
    selector = MetadataSelector([TranscriptStrategy(transcriber, ai), FilenameStrategy(ai)])

    meta = selector.regenerate_from_filename("some_clip.mp4")

    assert meta.title == "Fresh"
    assert transcriber.calls == 0
    assert "some clip" in ai.prompts[0][0]


def test_commas_inside_a_tag_do_not_split_it_later():
    meta = normalize_metadata(VideoMetadata(title="t", description="", tags=["rock, roll", "jazz"]))
    assert meta.tags == ["rock roll", "jazz"]
    assert VideoRecord(drive_id="d", user_id="u", file_name="f", tags=",".join(meta.tags)).tag_list() == meta.tags
