"""Interactive target device selection.

Selection is a small state machine:

    AWAITING_MEDIA --(one candidate)--> AWAITING_CONFIRMATION
    AWAITING_MEDIA --(several)--------> AWAITING_CHOICE
    AWAITING_MEDIA --(none)-----------> AWAITING_MEDIA (poll)
    AWAITING_CHOICE --(picked)--------> AWAITING_CONFIRMATION
    AWAITING_CHOICE --(none of above)-> CANCELLED
    AWAITING_CONFIRMATION --(yes)-----> RESOLVED
    AWAITING_CONFIRMATION --(no)------> CANCELLED

An explicit device starts in AWAITING_CONFIRMATION. Answers come from an
injectable input source so tests can script the operator.
"""

import logging
import time
from collections.abc import Callable
from enum import Enum

from rich.console import Console

from sdflash.errors import DeviceSelectionError, SelectionCancelledError
from sdflash.flash.device import derive_candidates, validate_device
from sdflash.flash.host import HostPlatform

logger = logging.getLogger(__name__)

InputSource = Callable[[str], str]

YES_ANSWERS = frozenset({"y", "yes"})
NO_ANSWERS = frozenset({"n", "no"})

NONE_OF_THE_ABOVE = "none of the above"


class SelectionState(str, Enum):
    """States of device selection."""

    AWAITING_MEDIA = "awaiting_media"
    AWAITING_CHOICE = "awaiting_choice"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


def parse_yes_no(answer: str) -> bool | None:
    """Map an answer to True/False, or None if it is neither yes nor no."""
    normalized = answer.strip().lower()
    if normalized in YES_ANSWERS:
        return True
    if normalized in NO_ANSWERS:
        return False
    return None


def parse_choice(answer: str, count: int) -> int | None:
    """Parse a 1-based menu answer.

    Args:
        answer: Raw operator input.
        count: Number of menu entries, including "none of the above".

    Returns:
        Zero-based index, or None if the answer is not a valid entry.
    """
    try:
        number = int(answer.strip())
    except ValueError:
        return None
    if 1 <= number <= count:
        return number - 1
    return None


class DeviceSelector:
    """Resolves exactly one target device.

    Attributes:
        state: Current selection state.
        device: Device chosen so far (None until a candidate is picked).
    """

    def __init__(
        self,
        host: HostPlatform,
        *,
        console: Console | None = None,
        input_source: InputSource | None = None,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.host = host
        self.console = console or Console()
        self.input_source = input_source or self.console.input
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.state = SelectionState.AWAITING_MEDIA
        self.device: str | None = None
        self.candidates: list[str] = []
        self._waiting_announced = False

    def select(self, device: str | None = None) -> str:
        """Run the selection until a device is confirmed.

        Args:
            device: Explicit device path; skips discovery.

        Returns:
            The confirmed whole-device path.

        Raises:
            DeviceSelectionError: Explicit device missing or a partition.
            SelectionCancelledError: Operator cancelled or declined.
        """
        if device is not None:
            self.device = validate_device(device)
            self._transition(SelectionState.AWAITING_CONFIRMATION)

        while True:
            if self.state is SelectionState.AWAITING_MEDIA:
                self._scan()
            elif self.state is SelectionState.AWAITING_CHOICE:
                self._choose()
            elif self.state is SelectionState.AWAITING_CONFIRMATION:
                self._confirm()
            elif self.state is SelectionState.RESOLVED:
                return self._selected_device()
            else:
                raise SelectionCancelledError()

    def _selected_device(self) -> str:
        if self.device is None:
            raise DeviceSelectionError(
                f"No device selected in state {self.state.value}", code="no_device"
            )
        return self.device

    def _transition(self, state: SelectionState) -> None:
        logger.debug("Device selection: %s -> %s", self.state.value, state.value)
        self.state = state

    def _scan(self) -> None:
        self.candidates = derive_candidates(
            self.host.mount_table(), self.host.mount_root
        )

        if not self.candidates:
            if not self._waiting_announced:
                self.console.print(
                    "No SD card found. Please insert SD card, I'll wait for it..."
                )
                self._waiting_announced = True
            self.sleep(self.poll_interval)
            return

        if len(self.candidates) == 1:
            self.device = self.candidates[0]
            self._transition(SelectionState.AWAITING_CONFIRMATION)
        else:
            self._transition(SelectionState.AWAITING_CHOICE)

    def _choose(self) -> None:
        entries = [*self.candidates, NONE_OF_THE_ABOVE]
        self.console.print("Please pick your device:")
        for number, entry in enumerate(entries, start=1):
            self.console.print(f"{number}) {entry}", markup=False)

        while True:
            index = parse_choice(self.input_source("#? "), len(entries))
            if index is not None:
                break
            self.console.print(f"Please enter a number between 1 and {len(entries)}.")

        if index == len(self.candidates):
            self.device = None
            self._transition(SelectionState.CANCELLED)
        else:
            self.device = self.candidates[index]
            self._transition(SelectionState.AWAITING_CONFIRMATION)

    def _confirm(self) -> None:
        device = self._selected_device()
        self.console.print(self.host.disk_usage(), markup=False, highlight=False)

        while True:
            answer = parse_yes_no(self.input_source(f"Is {device} correct? "))
            if answer is not None:
                break
            self.console.print("Please answer yes or no.")

        self._transition(
            SelectionState.RESOLVED if answer else SelectionState.CANCELLED
        )


__all__ = [
    "NONE_OF_THE_ABOVE",
    "DeviceSelector",
    "InputSource",
    "SelectionState",
    "parse_choice",
    "parse_yes_no",
]
