# src/main.py — v3
"""CLI entry point — ask, list, show commands.

Usage:
    askpipe ask [prompt ...] [-c] [-f PATH] [-i PATH] [-a] [-t ROLE] [-r [ID] | -R] [-m MODEL] [-o] [--no-save]
    askpipe list [N]
    askpipe show [ID]

Exit codes: 0 success, 1 error, 2 response delivered but not saved,
130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from askpipe.config.settings import ConfigurationError, Settings, load_settings
from askpipe.content.builder import FileArgument
from askpipe.content.errors import ClipboardUnavailableError, ContentError
from askpipe.conversation.errors import ConversationError
from askpipe.llm.errors import AuthenticationError, ProviderError
from askpipe.logging.logger import setup_logging
from askpipe.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_SAVED = 2
EXIT_INTERRUPTED = 130

DEFAULT_LIST_LIMIT = 10


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_ERROR

    try:
        settings = load_settings()
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except AuthenticationError as exc:
        logger.error("Authentication failed: %s", exc)
        return EXIT_ERROR
    except (ConfigurationError, ContentError, ConversationError, ProviderError) as exc:
        logger.error("%s", exc, exc_info=args.verbose)
        return EXIT_ERROR


def cli() -> None:
    """Console-script wrapper."""
    sys.exit(main())


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="askpipe",
        description=f"askpipe v{__version__} — ask a language model about local input",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- ask ---
    p_ask = subparsers.add_parser(
        "ask", help="Send a prompt and any additional input",
    )
    p_ask.add_argument("prompt", nargs="*", help="Prompt text (words are joined with spaces)")
    p_ask.add_argument(
        "-c", "--clipboard-input", dest="use_clipboard", action="store_true",
        help="Add clipboard content (image or text)",
    )
    p_ask.add_argument(
        "-f", "--file", dest="files", action="append", default=[], type=FileArgument, metavar="PATH",
        help="Add a file or directory (repeatable)",
    )
    p_ask.add_argument(
        "-i", "--image", dest="files", action="append", type=FileArgument.image, metavar="PATH",
        help="Add an image or media file (repeatable, same ordering as -f; unknown extensions are an error)",
    )
    p_ask.add_argument(
        "-a", "--audio", dest="record_audio", action="store_true",
        help="Record audio input from the microphone",
    )
    p_ask.add_argument(
        "-t", "--role", dest="roles", action="append", default=[], metavar="NAME",
        help="Add a role or task definition (repeatable)",
    )
    resume = p_ask.add_mutually_exclusive_group()
    resume.add_argument(
        "-r", "--resume", nargs="?", const="", default=None, metavar="ID",
        help="Resume a conversation by id, prefix or list index (latest if omitted)",
    )
    resume.add_argument(
        "-R", "--resume-last", action="store_true",
        help="Resume the most recent conversation",
    )
    p_ask.add_argument(
        "-m", "--model", default=None,
        help="Model spec: '<model>' or '<backend>::<model>'",
    )
    p_ask.add_argument(
        "-o", "--clipboard-output", dest="clipboard_output", action="store_true",
        help="Write the response to the clipboard instead of stdout",
    )
    p_ask.add_argument(
        "--no-save", dest="save", action="store_false",
        help="Do not persist the conversation",
    )
    p_ask.set_defaults(func=_cmd_ask)

    # --- list ---
    p_list = subparsers.add_parser(
        "list", help="List recent conversations",
    )
    p_list.add_argument(
        "limit", nargs="?", type=int, default=DEFAULT_LIST_LIMIT,
        help=f"Number of conversations to show (default: {DEFAULT_LIST_LIMIT})",
    )
    p_list.set_defaults(func=_cmd_list)

    # --- show ---
    p_show = subparsers.add_parser(
        "show", help="Print a conversation as markdown",
    )
    p_show.add_argument(
        "conversation_id", nargs="?", default=None, metavar="ID",
        help="Conversation id, prefix or list index (latest if omitted)",
    )
    p_show.set_defaults(func=_cmd_show)

    return parser


def _build_store(settings: Settings):
    from askpipe.conversation.store import ConversationStore

    return ConversationStore(
        settings.conversations_dir,
        settings.outputs_dir,
        keep_messages=settings.truncation_keep_messages,
    )


def _build_pipeline(settings: Settings, clipboard):
    """Wire the default system collaborators."""
    from askpipe.content.builder import OrderedContentBuilder
    from askpipe.content.collectors import FfmpegRecorder
    from askpipe.content.roles import RoleLibrary
    from askpipe.llm.credentials import AuthRemediation
    from askpipe.pipeline.request_pipeline import RequestPipeline

    builder = OrderedContentBuilder(
        roles=RoleLibrary(settings.roles_dir, settings.tasks_dir),
        clipboard=clipboard,
        recorder=FfmpegRecorder(
            settings.recordings_dir,
            ffmpeg_binary=settings.ffmpeg_binary,
            max_seconds=settings.audio_max_seconds,
        ),
    )
    return RequestPipeline(
        settings,
        _build_store(settings),
        builder,
        on_auth_error=AuthRemediation(),
    )


async def _cmd_ask(args: argparse.Namespace, settings: Settings) -> int:
    """Run one prompt/response round trip."""
    from askpipe.content.builder import InputOptions
    from askpipe.content.collectors import SystemClipboard
    from askpipe.output.delivery import OutputMode, deliver
    from askpipe.pipeline.request_pipeline import PipelineRequest

    clipboard = SystemClipboard()
    pipeline = _build_pipeline(settings, clipboard)

    request = PipelineRequest(
        options=InputOptions(
            prompt=" ".join(args.prompt),
            use_clipboard=args.use_clipboard,
            record_audio=args.record_audio,
            files=list(args.files or []),
            roles=list(args.roles),
            stdin_piped=not sys.stdin.isatty(),
            clipboard_output=args.clipboard_output,
        ),
        model_spec=args.model,
        resume_ref=args.resume or None,
        resume_latest=args.resume_last or args.resume == "",
        save=args.save,
    )

    result = await pipeline.run(request)

    mode = OutputMode.CLIPBOARD if args.clipboard_output else OutputMode.STDOUT
    try:
        deliver(result.response.content, mode, clipboard=clipboard)
    except ClipboardUnavailableError as exc:
        logger.warning("%s, printing response instead", exc)
        deliver(result.response.content, OutputMode.STDOUT)

    if result.persistence_error is not None:
        logger.error("Response delivered but conversation was not saved: %s", result.persistence_error)
        return EXIT_NOT_SAVED
    if result.persisted:
        logger.info("Conversation %s saved to %s", result.conversation.id, result.markdown_path)
    return EXIT_OK


async def _cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    """Print recent conversations, newest first."""
    summaries = _build_store(settings).list()
    if not summaries:
        print("No conversations found.")
        return EXIT_OK

    shown = summaries[: max(args.limit, 0)]
    print(f"Conversations ({len(shown)} of {len(summaries)}):")
    for index, summary in enumerate(shown):
        preview = summary.preview or "(no user message)"
        print(
            f"  {index:>3}  {summary.id[:8]}  {summary.message_count:>3} msgs  "
            f"{summary.age():>4} ago  {preview}"
        )
    return EXIT_OK


async def _cmd_show(args: argparse.Namespace, settings: Settings) -> int:
    """Print the markdown rendering of one conversation."""
    from askpipe.conversation.errors import ConversationNotFoundError
    from askpipe.conversation.render import render_markdown

    store = _build_store(settings)
    if args.conversation_id:
        conversation = store.load(args.conversation_id)
    else:
        conversation = store.latest()
        if conversation is None:
            raise ConversationNotFoundError("latest", "no conversations stored")
    print(render_markdown(conversation))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
