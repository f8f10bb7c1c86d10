"""Terminal patient intake form with whole-form and single-field dictation."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Set

from pubsub import pub
from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from rich.align import Align
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..audio.encoding import format_duration
from ..errors import StoreError
from ..extraction.field_extractor import FieldExtractor
from ..models.events import DictationStateEvent, DurationEvent
from ..models.patient import FIELD_LABELS, FORM_FIELDS, PatientForm
from ..models.session import RecordingState
from ..services.dictation_controller import CaptureFactory, DictationController, DictationMode
from ..services.publisher import DURATION_TOPIC, STATE_TOPIC
from ..storage.patient_store import PatientRecordStore
from ..transcription.client import TranscriptionClient
from .keyboard_input import create_input_handler

logger = logging.getLogger(__name__)

FORM_CONTROLLER_ID = "form"

# Second key after 'f' selects a field, in form order
FIELD_KEYS = "123456789abcd"

_STATE_STYLES = {
    RecordingState.IDLE: ("IDLE", "bold yellow"),
    RecordingState.RECORDING: ("RECORDING", "bold red"),
    RecordingState.PROCESSING: ("TRANSCRIBING", "bold cyan"),
    RecordingState.ERROR: ("ERROR", "bold magenta"),
}


@dataclass
class IntakeStatus:
    """What the screen shows about the current dictation."""
    state: RecordingState = RecordingState.IDLE
    target: Optional[str] = None
    elapsed_seconds: int = 0
    last_error: Optional[str] = None
    last_transcript: str = ""
    message: Optional[str] = None
    awaiting_field_key: bool = False


class IntakeScreen:
    """Owns the intake form and drives one dictation controller per target.

    Space dictates the whole form, ``f`` followed by a field key dictates a
    single field. Only one dictation may hold the microphone at a time.
    """

    def __init__(self,
                 client: TranscriptionClient,
                 store: PatientRecordStore,
                 capture_factory: CaptureFactory,
                 extractor: Optional[FieldExtractor] = None,
                 console: Optional[Console] = None):
        self.console = console or Console()
        self.client = client
        self.store = store
        self.capture_factory = capture_factory
        self.extractor = extractor or FieldExtractor()
        self.form = PatientForm()
        self.status = IntakeStatus()

        self.controllers: Dict[str, DictationController] = {}
        self.controllers[FORM_CONTROLLER_ID] = DictationController(
            capture_factory, client, self.form.apply,
            mode=DictationMode.FORM,
            extractor=self.extractor,
            on_transcript=self._on_transcript,
            controller_id=FORM_CONTROLLER_ID,
        )
        self._pending: Set[asyncio.Future] = set()

        pub.subscribe(self._on_state_event, STATE_TOPIC)
        pub.subscribe(self._on_duration_event, DURATION_TOPIC)
        logger.info("IntakeScreen initialized")

    @property
    def form_controller(self) -> DictationController:
        return self.controllers[FORM_CONTROLLER_ID]

    def field_controller(self, field_name: str) -> DictationController:
        """Controller bound to one form field, created on first use."""
        controller_id = f"field:{field_name}"
        if controller_id not in self.controllers:
            self.controllers[controller_id] = DictationController(
                self.capture_factory, self.client, self.form.apply,
                mode=DictationMode.FIELD,
                field_name=field_name,
                on_transcript=self._on_transcript,
                controller_id=controller_id,
            )
        return self.controllers[controller_id]

    @staticmethod
    def field_for_key(key: str) -> Optional[str]:
        index = FIELD_KEYS.find(key)
        if index < 0 or index >= len(FORM_FIELDS):
            return None
        return FORM_FIELDS[index]

    def active_controller(self) -> Optional[DictationController]:
        for controller in self.controllers.values():
            if controller.is_active:
                return controller
        return None

    def handle_key(self, key: str) -> bool:
        """Handle one keypress. Returns False to quit. Needs a running event loop."""
        if self.status.awaiting_field_key:
            self.status.awaiting_field_key = False
            field_name = self.field_for_key(key)
            if field_name is None:
                self.status.message = f"No field for key '{key}'"
            else:
                self.toggle(self.field_controller(field_name))
            return True

        if key == "q":
            logger.info("Quit key pressed")
            return False
        if key in (" ", "\r", "\n"):
            self.toggle(self.form_controller)
        elif key == "f":
            self.status.awaiting_field_key = True
            self.status.message = "Press a field key to dictate that field"
        elif key == "s":
            self.save()
        elif key == "r":
            self.reset()
        else:
            logger.debug(f"Unhandled key: {key!r}")
        return True

    def toggle(self, controller: DictationController) -> None:
        active = self.active_controller()
        if active is not None and active is not controller:
            self.status.message = "Another dictation is in progress"
            return
        self.status.message = None
        future = asyncio.ensure_future(controller.toggle())
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    def save(self) -> Optional[str]:
        """Validate the form and store it as a new patient record."""
        if self.active_controller() is not None:
            self.status.message = "Finish the current dictation before saving"
            return None
        try:
            record = self.form.to_record(record_date=date.today())
        except ValidationError as e:
            self.status.message = "Cannot save: " + "; ".join(self._describe_errors(e))
            return None
        try:
            record_id = self.store.create(record)
        except StoreError as e:
            logger.error(f"Saving patient failed: {e}")
            self.status.message = f"Saving failed: {e}"
            return None

        self.status.message = f"Saved {record.patient_name}"
        self.form.reset()
        self.status.last_transcript = ""
        return record_id

    @staticmethod
    def _describe_errors(error: ValidationError) -> List[str]:
        messages = []
        for item in error.errors():
            name = str(item["loc"][0]) if item.get("loc") else ""
            label = FIELD_LABELS.get(name) or FIELD_LABELS.get(to_camel(name), name)
            messages.append(f"{label}: {item['msg']}")
        return messages

    def reset(self) -> None:
        """Abandon any dictation and clear the form."""
        for controller in self.controllers.values():
            controller.cleanup()
        self.form.reset()
        self.status = IntakeStatus(message="Form reset")
        logger.info("Intake form reset")

    async def shutdown(self) -> None:
        for controller in self.controllers.values():
            controller.cleanup()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        pub.unsubscribe(self._on_state_event, STATE_TOPIC)
        pub.unsubscribe(self._on_duration_event, DURATION_TOPIC)
        logger.info("IntakeScreen shut down")

    def _on_transcript(self, text: str) -> None:
        self.status.last_transcript = text

    def _on_state_event(self, event: DictationStateEvent) -> None:
        if event.controller_id not in self.controllers:
            return
        self.status.state = event.state
        self.status.target = event.controller_id
        if event.state is RecordingState.RECORDING:
            self.status.elapsed_seconds = 0
            self.status.last_error = None
        if event.last_error:
            self.status.last_error = event.last_error

    def _on_duration_event(self, event: DurationEvent) -> None:
        if event.controller_id in self.controllers:
            self.status.elapsed_seconds = event.elapsed_seconds

    def _target_label(self) -> str:
        target = self.status.target
        if not target or target == FORM_CONTROLLER_ID:
            return "Whole form"
        return FIELD_LABELS.get(target.split(":", 1)[1], target)

    def render(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main", ratio=1),
            Layout(name="footer", size=3),
        )
        layout["main"].split_row(
            Layout(name="form", ratio=3),
            Layout(name="dictation", ratio=2),
        )

        label, style = _STATE_STYLES[self.status.state]
        header = Text.assemble(
            ("OrthoCare Intake", "bold blue"), "  |  ",
            (label, style), "  ",
            format_duration(self.status.elapsed_seconds), "  |  ",
            self._target_label(),
        )
        layout["header"].update(Panel(Align.center(header), style="bright_blue"))

        table = Table(show_header=True, header_style="bold magenta", expand=True)
        table.add_column("Key", style="cyan", width=4)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")
        for key, name in zip(FIELD_KEYS, FORM_FIELDS):
            table.add_row(key, FIELD_LABELS[name], self.form.get(name))
        layout["form"].update(Panel(table, title="Patient", border_style="green"))

        body = Text()
        if self.status.last_error:
            body.append(self.status.last_error + "\n\n", style="bold red")
        if self.status.message:
            body.append(self.status.message + "\n\n", style="yellow")
        body.append(self.status.last_transcript or "Press SPACE to dictate the whole form",
                    style="white" if self.status.last_transcript else "dim white italic")
        layout["dictation"].update(Panel(body, title="Dictation", border_style="blue"))

        controls = Text.assemble(
            ("SPACE", "bold green"), " Dictate form  ",
            ("F", "bold green"), "+key Dictate field  ",
            ("S", "bold yellow"), " Save  ",
            ("R", "bold blue"), " Reset  ",
            ("Q", "bold red"), " Quit",
        )
        layout["footer"].update(Panel(Align.center(controls), style="bright_black"))
        return layout

    async def run(self) -> None:
        """Run the screen until 'q' or Ctrl+C."""
        loop = asyncio.get_running_loop()
        keys: asyncio.Queue = asyncio.Queue()

        def on_key(key: str) -> bool:
            loop.call_soon_threadsafe(keys.put_nowait, key)
            return key != "q"

        input_handler = create_input_handler(on_key)
        input_handler.start()
        try:
            with Live(self.render(), console=self.console, refresh_per_second=4, screen=True) as live:
                while True:
                    try:
                        key = await asyncio.wait_for(keys.get(), timeout=0.25)
                    except asyncio.TimeoutError:
                        key = None
                    if key is not None and not self.handle_key(key):
                        break
                    live.update(self.render())
        finally:
            input_handler.stop()
            await self.shutdown()
            self.console.print("OrthoCare intake session ended", style="bold blue")
