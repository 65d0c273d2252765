"""
Main entry point for the live interviewer.

Runs one interview session in the terminal: transcript updates are printed as
they stream in and every typed line is sent as a text turn.
"""

import argparse
import asyncio
import logging
import os
import sys
import threading
from pathlib import Path
from typing import TextIO

from live_interviewer.config import get_settings
from live_interviewer.session.controller import SessionController
from live_interviewer.session.errors import ConfigurationError
from live_interviewer.session.schemas import (
    ConnectionState,
    ContextSource,
    FileContext,
    FolderContext,
    InterviewMode,
    NoContext,
    OutputMode,
    Provider,
    Role,
    SessionConfig,
    UrlContext,
)

QUIT_COMMAND = "/quit"

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="live-interviewer", description="Run a simulated technical interview")
    p.add_argument(
        "--provider",
        choices=[v.value for v in Provider],
        default=os.getenv("INTERVIEW_PROVIDER", Provider.REALTIME_VOICE.value),
        help="Backend style (default: INTERVIEW_PROVIDER or 'realtime_voice')",
    )
    p.add_argument(
        "--mode",
        choices=[v.value for v in InterviewMode],
        default=os.getenv("INTERVIEW_MODE", InterviewMode.TECH.value),
        help="Interview flavour (default: INTERVIEW_MODE or 'tech')",
    )
    p.add_argument(
        "--output",
        choices=[v.value for v in OutputMode],
        default=os.getenv("INTERVIEW_OUTPUT", OutputMode.VOICE.value),
        help="Play replies as audio or show text only (default: INTERVIEW_OUTPUT or 'voice')",
    )
    p.add_argument(
        "--api-key",
        default=os.getenv("INTERVIEW_API_KEY", ""),
        help="Backend credential (default: INTERVIEW_API_KEY, then the provider's settings key)",
    )
    p.add_argument(
        "--endpoint",
        default=os.getenv("INTERVIEW_ENDPOINT") or None,
        help="Chat-completions endpoint for the streaming text provider (default: INTERVIEW_ENDPOINT)",
    )
    p.add_argument(
        "--model",
        default=os.getenv("INTERVIEW_MODEL") or None,
        help="Model id override (default: INTERVIEW_MODEL)",
    )

    g = p.add_mutually_exclusive_group()
    g.add_argument("--context-url", help="Project URL (e.g. a GitHub repository) to interview about")
    g.add_argument("--context-file", help="Path to a file (e.g. a zip archive) to interview about")
    g.add_argument("--context-folder", help="Path to a project folder to interview about")

    return p


def context_from_args(args: argparse.Namespace) -> ContextSource:
    """Build the interview context from the mutually exclusive context flags."""
    if args.context_url:
        return UrlContext(value=args.context_url)

    if args.context_file:
        path = Path(args.context_file)
        if not path.is_file():
            raise ConfigurationError(f"Context file not found: {path}")
        return FileContext(path=path)

    if args.context_folder:
        folder = Path(args.context_folder)
        if not folder.is_dir():
            raise ConfigurationError(f"Context folder not found: {folder}")
        paths = tuple(sorted(p for p in folder.rglob("*") if p.is_file()))
        return FolderContext(paths=paths)

    return NoContext()


def config_from_args(args: argparse.Namespace) -> SessionConfig:
    return SessionConfig(
        provider=Provider(args.provider),
        api_key=args.api_key or "",
        endpoint=args.endpoint,
        model=args.model,
        interview_mode=InterviewMode(args.mode),
        output_mode=OutputMode(args.output),
    )


class TranscriptPrinter:
    """Session listener that echoes state changes and streamed transcript text."""

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out or sys.stdout
        self._printed: dict[str, int] = {}
        self._state: ConnectionState | None = None
        self._error: str | None = None

    def __call__(self, controller: SessionController) -> None:
        if controller.connection_state != self._state:
            self._state = controller.connection_state
            self._write(f"\n[{self._state.value}]\n")

        if controller.error and controller.error != self._error:
            self._write(f"\n[error] {controller.error}\n")
        self._error = controller.error

        for message in controller.messages:
            printed = self._printed.get(message.id)
            if printed is None:
                label = "You" if message.role == Role.USER else "Interviewer"
                self._write(f"\n{label}: ")
                printed = 0
            if len(message.content) > printed:
                self._write(message.content[printed:])
            self._printed[message.id] = len(message.content)

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()


def _start_stdin_reader(loop: asyncio.AbstractEventLoop) -> asyncio.Queue:
    """Read stdin lines on a daemon thread; `None` marks end of input."""
    lines: asyncio.Queue = asyncio.Queue()

    def reader() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(lines.put_nowait, line.rstrip("\n"))
        loop.call_soon_threadsafe(lines.put_nowait, None)

    threading.Thread(target=reader, name="stdin-reader", daemon=True).start()
    return lines


async def run_session(argv: list[str] | None = None) -> None:
    """Start a session from CLI arguments and relay typed lines until quit."""
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    context = context_from_args(args)

    controller = SessionController(get_settings())
    controller.add_listener(TranscriptPrinter())

    print(f"Type a message and press Enter to send it; {QUIT_COMMAND} ends the interview.")
    try:
        await controller.start(config, context)
        lines = _start_stdin_reader(asyncio.get_running_loop())

        while controller.is_active:
            try:
                line = await asyncio.wait_for(lines.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            if line is None or line.strip() == QUIT_COMMAND:
                break
            await controller.send_text_message(line)
    finally:
        await controller.stop()
        logger.info("Interview session ended")


def main() -> None:
    """Main entry point for the application."""
    setup_logging()

    try:
        asyncio.run(run_session(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nInterview session terminated by user.")
        sys.exit(0)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
