"""Single-threaded event loop driving a MergeModel.

Commands run on one background worker and post their result message to the
inbox. The loop handles one message at a time on the calling thread, so the
model and its stack are never touched concurrently.
"""

import logging
import queue
import threading
from typing import Callable, Optional

from .messages import Command, CommandFailed, Confirm, Interrupted, Message, Quit, Tick
from .model import MergeModel, Phase

logger = logging.getLogger(__name__)

RenderFunc = Callable[[MergeModel], None]
ConfirmFunc = Callable[[MergeModel], bool]


class EventLoop:
    """Runs a MergeModel to completion."""

    def __init__(self, model: MergeModel, render: Optional[RenderFunc] = None,
                 confirm: Optional[ConfirmFunc] = None,
                 tick_interval: Optional[float] = None):
        """
        Args:
            model: The state machine to drive
            render: Called with the model after every handled message
            confirm: Asked once the stack is loaded; None confirms automatically
            tick_interval: Seconds without a message before a Tick is delivered
        """
        self.model = model
        self.render = render
        self.confirm = confirm
        self.tick_interval = (tick_interval if tick_interval is not None
                              else model.config.tool.tick_interval)
        self.inbox: "queue.Queue[Message]" = queue.Queue()
        # Commands for the worker; None stops it
        self._commands: "queue.Queue[Optional[Command]]" = queue.Queue()
        # One daemon worker keeps at most one command running at a time, and an
        # in-flight jj or GitHub call never holds up interpreter exit
        self._worker = threading.Thread(target=self._work, name="jjstack-cmd", daemon=True)

    def send(self, msg: Message) -> None:
        """Deliver a message from any thread."""
        self.inbox.put(msg)

    def run(self) -> MergeModel:
        """Process messages until the model reaches a terminal phase or quits."""
        model = self.model
        self._worker.start()
        try:
            self._dispatch(model.init())
            self._render()
            while not model.done:
                if model.cancel.is_set():
                    model.update(Interrupted())
                    self._render()
                    break
                self._dispatch(model.update(self._next_message()))
                self._render()
        finally:
            # Queued commands are dropped; an in-flight one is not waited for
            self._commands.put(None)
        return self.model

    def _next_message(self) -> Message:
        if self.model.phase is Phase.CONFIRMATION:
            if self.confirm is None or self.confirm(self.model):
                return Confirm()
            return Quit()
        try:
            return self.inbox.get(timeout=self.tick_interval)
        except queue.Empty:
            return Tick()

    def _dispatch(self, cmd: Optional[Command]) -> None:
        if cmd is None:
            return
        logger.debug(f"Dispatching '{cmd.description}'" + (f" in {cmd.delay}s" if cmd.delay else ""))
        self._commands.put(cmd)

    def _work(self) -> None:
        while True:
            cmd = self._commands.get()
            if cmd is None or self.model.done:
                return
            self._execute(cmd)

    def _execute(self, cmd: Command) -> None:
        if cmd.delay > 0 and self.model.cancel.wait(cmd.delay):
            logger.debug(f"'{cmd.description}' cancelled while waiting")
            return
        try:
            msg = cmd.run()
        except Exception as e:
            logger.exception(f"Command '{cmd.description}' failed")
            msg = CommandFailed(cmd.description, e)
        self.inbox.put(msg)

    def _render(self) -> None:
        if self.render is not None:
            self.render(self.model)
