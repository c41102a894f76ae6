"""Command routing between the interface and the audio loop, with a storage worker."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional

from .engine import UiActionType
from .pattern_storage import PatternStorage, StorageError

QUEUE_SIZE = 64
STORAGE_QUEUE_SIZE = 8
STORAGE_EVENT_QUEUE_SIZE = 8

_STOP = object()


class CommandType(IntEnum):
    NOTE_ON = 0
    NOTE_OFF = 1
    SET_PARAM = 2
    TRANSPORT = 3
    UI_ACTION = 4


@dataclass(frozen=True)
class IPCCommand:
    """A command for the audio loop; for UI actions ``voice_id`` holds the action type."""

    type: CommandType
    voice_id: int = 0
    param_id: int = 0
    value: float = 0.0
    aux_value: float = 0.0


class StorageEventType(IntEnum):
    SAVE_SLOT_DONE = 0
    LOAD_SLOT_DONE = 1


@dataclass(frozen=True)
class StorageEvent:
    type: StorageEventType
    slot: int
    success: bool


_STORAGE_ACTIONS = (UiActionType.SAVE_SLOT, UiActionType.LOAD_SLOT)


class ControlManager:
    """Queues commands for the audio loop and runs slot saves and loads on a worker thread."""

    def __init__(self, storage: PatternStorage) -> None:
        self.storage = storage
        self._commands: Optional[queue.Queue] = None
        self._storage_requests: Optional[queue.Queue] = None
        self._events: Optional[queue.Queue] = None
        self._worker: Optional[threading.Thread] = None

    def __enter__(self) -> "ControlManager":
        self.begin()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def begin(self) -> None:
        """Create the queues and start the storage worker if not already running."""
        if self._commands is None:
            self._commands = queue.Queue(maxsize=QUEUE_SIZE)
        if self._storage_requests is None:
            self._storage_requests = queue.Queue(maxsize=STORAGE_QUEUE_SIZE)
        if self._events is None:
            self._events = queue.Queue(maxsize=STORAGE_EVENT_QUEUE_SIZE)
        if self._worker is None:
            self._worker = threading.Thread(
                target=self._storage_worker,
                args=(self._storage_requests, self._events),
                name="storage-worker",
                daemon=True,
            )
            self._worker.start()

    def close(self) -> None:
        """Stop the storage worker and drop the queues."""
        if self._worker is not None and self._storage_requests is not None:
            self._storage_requests.put(_STOP)
            self._worker.join()
        self._worker = None
        self._commands = None
        self._storage_requests = None
        self._events = None

    def send_command(self, cmd: IPCCommand) -> bool:
        """Queue a command without blocking; False if not started or the queue is full."""
        commands, requests = self._commands, self._storage_requests
        if commands is None or requests is None:
            return False
        target = commands
        if cmd.type == CommandType.UI_ACTION and cmd.voice_id in _STORAGE_ACTIONS:
            target = requests
        try:
            target.put_nowait(cmd)
        except queue.Full:
            return False
        return True

    def poll_storage_event(self) -> Optional[StorageEvent]:
        """The next finished save or load, or None if there is none yet."""
        events = self._events
        if events is None:
            return None
        try:
            return events.get_nowait()
        except queue.Empty:
            return None

    def commands(self) -> Iterator[IPCCommand]:
        """Drain the commands queued so far, without waiting for more."""
        commands = self._commands
        if commands is None:
            return
        while True:
            try:
                yield commands.get_nowait()
            except queue.Empty:
                return

    def _storage_worker(self, requests: queue.Queue, events: queue.Queue) -> None:
        while True:
            cmd = requests.get()
            if cmd is _STOP:
                return
            slot = cmd.param_id
            if cmd.voice_id == UiActionType.SAVE_SLOT:
                kind, operation = StorageEventType.SAVE_SLOT_DONE, self.storage.save_slot
            elif cmd.voice_id == UiActionType.LOAD_SLOT:
                kind, operation = StorageEventType.LOAD_SLOT_DONE, self.storage.load_slot
            else:
                continue
            try:
                operation(slot)
                success = True
            except (StorageError, ValueError):
                success = False
            try:
                events.put_nowait(StorageEvent(kind, slot, success))
            except queue.Full:
                pass