"""Nested progress tracking with a single visible indicator.

A ``ProgressController`` keeps a stack of in-flight operation descriptions.
The outermost call creates the indicator; nested calls only relabel it.
When a call finishes, successfully or not, its frame is popped and the
indicator shows the new innermost description, or is torn down when the
stack empties.

Example:
    progress = ProgressController()

    async def deploy():
        await progress.run("Installing .NET 3.1.23", install_runtime)
        await progress.run("Uploading program", upload)

    await progress.run("Starting debugger", deploy)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator, List, Optional, TypeVar

from rich.console import Console

from raspdebug.errors import ProgressStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProgressIndicator(ABC):
    """A visible progress display owned by the outermost frame."""

    @abstractmethod
    def update(self, text: str) -> None:
        """Replace the displayed description."""

    @abstractmethod
    def close(self) -> None:
        """Remove the display."""


class ConsoleIndicator(ProgressIndicator):
    """Spinner on a rich console."""

    def __init__(self, console: Console, text: str, caption: str = "Raspberry Debugger") -> None:
        self.caption = caption
        self._status = console.status(self._label(text), spinner="dots")
        self._status.start()

    def _label(self, text: str) -> str:
        return f"[bold cyan]{self.caption}[/bold cyan]: {text}"

    def update(self, text: str) -> None:
        self._status.update(self._label(text))

    def close(self) -> None:
        self._status.stop()


class BusyCursor:
    """Hides the terminal cursor while operations run.

    Nested activations are counted; only the outermost one changes the
    cursor. On exit it puts back the visibility it found on entry, as
    last set through this holder, since rich cannot read the terminal's
    own cursor state. The progress controller closes its indicator
    before the outermost hold ends, so the cursor is never shown under a
    running spinner.
    """

    def __init__(self, console: Optional[Console] = None, cursor_visible: bool = True) -> None:
        self.console = console or Console(stderr=True)
        self.cursor_visible = cursor_visible
        self._depth = 0
        self._restore = cursor_visible

    @property
    def active(self) -> bool:
        return self._depth > 0

    def _set_visible(self, visible: bool) -> None:
        if visible != self.cursor_visible:
            self.console.show_cursor(visible)
            self.cursor_visible = visible

    @contextmanager
    def hold(self) -> Iterator[None]:
        if self._depth == 0:
            self._restore = self.cursor_visible
            self._set_visible(False)
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._set_visible(self._restore)


@dataclass(eq=False)
class ProgressFrame:
    """One in-flight operation."""
    description: str
    started: float = field(default=0.0)


IndicatorFactory = Callable[[str], ProgressIndicator]


class ProgressController:
    """Reentrant progress stack bound to one coordinating event loop.

    Construct once per process and share it between the components that
    report progress. Nested calls are fine; calls from other threads are
    marshaled onto the loop the controller first ran on. Independent
    sessions running truly in parallel should each get their own
    controller.
    """

    def __init__(
        self,
        indicator_factory: Optional[IndicatorFactory] = None,
        busy: Optional[BusyCursor] = None,
        caption: str = "Raspberry Debugger",
    ) -> None:
        """Initialize the controller.

        Args:
            indicator_factory: Creates the indicator for the outermost frame;
                defaults to a rich spinner on stderr
            busy: Busy-state holder applied around every operation
            caption: Prefix shown by the default indicator
        """
        self.caption = caption
        self._console = Console(stderr=True)
        self._factory = indicator_factory or self._default_indicator
        self._busy = busy or BusyCursor(self._console)
        self._frames: List[ProgressFrame] = []
        self._indicator: Optional[ProgressIndicator] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _default_indicator(self, text: str) -> ProgressIndicator:
        return ConsoleIndicator(self._console, text, self.caption)

    @property
    def depth(self) -> int:
        """Number of in-flight frames."""
        return len(self._frames)

    @property
    def current(self) -> Optional[str]:
        """Description of the innermost frame."""
        return self._frames[-1].description if self._frames else None

    @property
    def showing(self) -> bool:
        return self._indicator is not None

    # === Public API ===

    async def run(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an operation under a progress frame.

        Args:
            description: Text shown while the operation runs
            operation: Zero-argument coroutine function

        Returns:
            Whatever the operation returns; its exceptions propagate
            after the frame is popped
        """
        loop = asyncio.get_running_loop()
        home = self._bind(loop)

        if home is not loop:
            logger.debug(f"Marshaling progress frame '{description}' to coordinating loop")
            future = asyncio.run_coroutine_threadsafe(self._run(description, operation), home)
            return await asyncio.wrap_future(future)

        return await self._run(description, operation)

    # === Internal ===

    def _bind(self, loop: asyncio.AbstractEventLoop) -> asyncio.AbstractEventLoop:
        if self._loop is None or (self._loop.is_closed() and not self._frames):
            self._loop = loop
        return self._loop

    async def _run(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        with self._busy.hold():
            frame = self._push(description)
            try:
                return await operation()
            finally:
                self._pop(frame)

    def _push(self, description: str) -> ProgressFrame:
        frame = ProgressFrame(description, asyncio.get_running_loop().time())

        if not self._frames:
            if self._indicator is not None:
                raise ProgressStateError("Indicator is showing with no pending frames")
            self._indicator = self._factory(description)
        else:
            if self._indicator is None:
                raise ProgressStateError("Frames are pending but no indicator is showing")
            self._indicator.update(description)

        self._frames.append(frame)
        logger.debug(f"Progress push [{len(self._frames)}]: {description}")
        return frame

    def _pop(self, frame: ProgressFrame) -> None:
        if not self._frames:
            raise ProgressStateError("Progress stack is empty")
        if self._indicator is None:
            raise ProgressStateError("Frames are pending but no indicator is showing")

        # concurrent siblings may finish out of order; remove this frame only
        for index in range(len(self._frames) - 1, -1, -1):
            if self._frames[index] is frame:
                del self._frames[index]
                break
        else:
            raise ProgressStateError(f"Frame '{frame.description}' is not on the stack")

        elapsed = asyncio.get_running_loop().time() - frame.started
        logger.debug(f"Progress pop [{len(self._frames)}]: {frame.description} ({elapsed:.1f}s)")

        if self._frames:
            self._indicator.update(self._frames[-1].description)
        else:
            indicator, self._indicator = self._indicator, None
            indicator.close()
