"""Unit tests for the terminal intake screen."""

import io
import asyncio
import pytest
from pubsub import pub
from rich.console import Console

from orthocare.models.events import DictationStateEvent
from orthocare.models.session import RecordingState
from orthocare.models.transcription import TranscriptionResult
from orthocare.services.publisher import STATE_TOPIC
from orthocare.storage.patient_store import JsonPatientStore
from orthocare.ui.intake_screen import IntakeScreen


@pytest.fixture
def store(temp_data_dir):
    return JsonPatientStore(temp_data_dir)


@pytest.fixture
def screen(mock_client, store, capture_factory):
    return IntakeScreen(mock_client, store, capture_factory,
                        console=Console(file=io.StringIO(), width=120, height=40))


async def press(screen, *keys):
    """Feed keys and let every dictation they started run to completion."""
    for key in keys:
        screen.handle_key(key)
        while screen._pending:
            await asyncio.gather(*list(screen._pending))


def fill(screen, **values):
    for name, value in values.items():
        screen.form.apply(name, value)


@pytest.mark.unit
class TestKeys:

    @pytest.mark.parametrize("key,field", [
        ("1", "patientName"),
        ("3", "diagnosis"),
        ("a", "expectations"),
        ("d", "followUpThird"),
        ("e", None),
        ("x", None),
    ])
    def test_field_keys(self, key, field):
        assert IntakeScreen.field_for_key(key) == field

    def test_quit(self, screen):
        assert screen.handle_key("q") is False

    def test_form_dictation(self, screen, mock_client):
        mock_client.transcribe.return_value = TranscriptionResult(
            text="patient name is John Carter, age 52, diagnosis is rotator cuff tear")

        async def scenario():
            await press(screen, " ")
            assert screen.status.state is RecordingState.RECORDING
            assert screen.status.target == "form"
            await press(screen, " ")

        asyncio.run(scenario())

        assert screen.form.get("patientName") == "John Carter"
        assert screen.form.get("age") == "52"
        assert screen.form.get("diagnosis") == "Rotator cuff tear"
        assert screen.form.get("hospital") == ""
        assert screen.status.state is RecordingState.IDLE
        assert screen.status.last_transcript.startswith("patient name is")

    def test_single_field_dictation(self, screen, mock_client):
        mock_client.transcribe.return_value = TranscriptionResult(text="wound check and x-ray")

        asyncio.run(press(screen, "f", "7", "f", "7"))

        assert screen.form.get("followUpParameters") == "wound check and x-ray"
        assert screen.status.target == "field:followUpParameters"

    def test_unknown_field_key(self, screen):
        screen.handle_key("f")
        screen.handle_key("z")

        assert screen.status.message == "No field for key 'z'"
        assert screen.status.awaiting_field_key is False

    def test_one_dictation_at_a_time(self, screen, capture_factory):
        async def scenario():
            await press(screen, " ", "f", "3")
            message = screen.status.message
            screen.reset()
            return message

        assert asyncio.run(scenario()) == "Another dictation is in progress"
        assert len(capture_factory.created) == 1

    def test_failed_dictation_shows_error(self, screen, mock_client):
        from orthocare.errors import UpstreamError
        mock_client.transcribe.side_effect = UpstreamError("Server error", 500)
        fill(screen, diagnosis="Gout")

        asyncio.run(press(screen, " ", " "))

        assert screen.status.last_error == "Transcription failed: Server error"
        assert screen.form.get("diagnosis") == "Gout"


@pytest.mark.unit
class TestSaving:

    def test_save_valid_form(self, screen, store):
        fill(screen, patientName="John Carter", age="52", diagnosis="Rotator cuff tear",
             hospital="St. Mary's Hospital", followUpFirst="2 weeks")

        record_id = screen.save()

        assert record_id is not None
        saved = store.get_by_id(record_id)
        assert saved.patient_name == "John Carter"
        assert saved.date is not None
        assert saved.planned_follow_ups.first == "2 weeks"
        assert screen.status.message == "Saved John Carter"
        assert screen.form.get("patientName") == ""

    def test_save_invalid_form(self, screen, store):
        fill(screen, patientName="John Carter", age="abc")

        assert screen.save() is None

        assert screen.status.message.startswith("Cannot save:")
        assert "Age" in screen.status.message
        assert "Diagnosis" in screen.status.message
        assert store.get_all() == []
        assert screen.form.get("patientName") == "John Carter"

    def test_save_refused_while_dictating(self, screen):
        fill(screen, patientName="John Carter", age="52", diagnosis="X", hospital="Y")

        async def scenario():
            await press(screen, " ")
            result = screen.save()
            screen.reset()
            return result

        assert asyncio.run(scenario()) is None
        assert screen.status.message == "Form reset"

    def test_reset(self, screen):
        fill(screen, diagnosis="Gout")

        screen.reset()

        assert screen.form.get("diagnosis") == ""
        assert screen.status.message == "Form reset"


@pytest.mark.unit
def test_render(screen):
    fill(screen, patientName="Maria Lopez")

    screen.console.print(screen.render())
    output = screen.console.file.getvalue()

    assert "OrthoCare Intake" in output
    assert "Maria Lopez" in output
    assert "IDLE" in output


@pytest.mark.unit
def test_shutdown_unsubscribes(screen):
    asyncio.run(screen.shutdown())

    pub.sendMessage(STATE_TOPIC, event=DictationStateEvent("form", "s1", RecordingState.RECORDING))

    assert screen.status.state is RecordingState.IDLE
