"""Tests for journey data models."""

from __future__ import annotations

from collections.abc import Callable

from pydantic import ValidationError
import pytest

from historian.core.models import (
    NoteType,
    ResearchPaper,
    SceneHotspot,
    TimelineArtifact,
    TimelineEvent,
    UserNote,
)


def _event(**overrides) -> TimelineEvent:
    data = {
        "year": 1889,
        "title": "Exposition Universelle",
        "description": "The tower opens for the World's Fair.",
        "visual_prompt": "Crowds beneath the new iron tower",
    }
    data.update(overrides)
    return TimelineEvent(**data)


class TestTimelineEvent:
    """Tests for the generated/image invariant."""

    def test_planned_event_is_not_generated(self):
        event = _event()

        assert not event.generated
        assert event.image_ref is None
        assert event.panoramic

    def test_with_image_marks_generated(self):
        event = _event().with_image("data:image/jpeg;base64,abc")

        assert event.generated
        assert event.image_ref == "data:image/jpeg;base64,abc"

    def test_generated_without_image_rejected(self):
        with pytest.raises(ValidationError):
            _event(generated=True)

    def test_image_without_generated_rejected(self):
        with pytest.raises(ValidationError):
            _event(image_ref="data:image/jpeg;base64,abc")

    def test_events_are_immutable(self):
        with pytest.raises(ValidationError):
            _event().title = "Changed"

    def test_with_hotspots(self):
        hotspot = SceneHotspot(id="hotspot-0-1889", name="Champ de Mars", description="Park", x=0.3, y=0.6)
        event = _event().with_image("img").with_hotspots([hotspot])

        assert event.hotspots == [hotspot]


class TestSceneHotspot:
    """Tests for normalized hotspot coordinates."""

    def test_make_id(self):
        assert SceneHotspot.make_id(2, 1889) == "hotspot-2-1889"

    @pytest.mark.parametrize("x", [-0.1, 1.5])
    def test_coordinates_must_be_normalized(self, x: float):
        with pytest.raises(ValidationError):
            SceneHotspot(id="h", name="n", description="d", x=x, y=0.5)


class TestTimelineArtifact:
    """Tests for artifact copy-on-write helpers."""

    def test_generated_indices(self, make_artifact: Callable[..., TimelineArtifact]):
        assert make_artifact(generated=(0, 2)).generated_indices == [0, 2]

    def test_with_event_replaces_one_event(self, make_artifact: Callable[..., TimelineArtifact]):
        artifact = make_artifact()
        resolved = artifact.timeline[1].with_image("img")

        updated = artifact.with_event(1, resolved)

        assert updated.timeline[1].generated
        assert not artifact.timeline[1].generated
        assert len(updated.timeline) == len(artifact.timeline)

    def test_with_event_out_of_range(self, make_artifact: Callable[..., TimelineArtifact]):
        with pytest.raises(IndexError):
            make_artifact().with_event(4, _event())

    def test_notes(self, make_artifact: Callable[..., TimelineArtifact]):
        note = UserNote(id="note-1", type=NoteType.TEXT, content="Visited in 1999", year_context=1900)
        artifact = make_artifact().with_note(note)

        assert artifact.user_notes == [note]
        assert artifact.without_note("note-1").user_notes == []

    def test_json_round_trip(self, make_artifact: Callable[..., TimelineArtifact]):
        """Test the persisted form reloads to an equal artifact."""
        artifact = make_artifact(generated=(0, 1))
        assert TimelineArtifact.model_validate_json(artifact.model_dump_json()) == artifact

    def test_note_timestamp_defaults_to_now(self):
        note = UserNote(id="note-1", type=NoteType.AUDIO, content="AAAA")
        assert note.timestamp > 0


class TestResearchPaper:
    def test_journey_id(self):
        paper = ResearchPaper(id="paper-1700000000000", topic="t", title="T", content="c")
        assert paper.journey_id == "journey-from-paper-paper-1700000000000"
