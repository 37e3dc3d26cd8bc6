# main.py
"""Command-line entry point: convert a prose file into a galgame script JSON."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog

from config.validator import validate_all
from core.exceptions import USER_FACING_ERROR_MESSAGE, GalforgeError, StreamingAbortedError
from core.image_service import image_service
from core.llm_interface import llm_service
from core.logging_config import setup_galforge_logging
from core.progress import ProgressChannel
from models.script_models import GalgameScript
from orchestration.script_orchestrator import ScriptOrchestrator
from ui.rich_display import RichDisplayManager

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert a story into a branching visual-novel script",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert a short story
  python main.py story.txt -o script.json

  # Force segment-by-segment generation and back-fill images
  python main.py novel.txt -o script.json --stream --assets
        """,
    )
    parser.add_argument("story", type=Path, help="UTF-8 text file containing the story")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("script.json"),
        help="Where to write the script JSON (default: script.json)",
    )
    parser.add_argument(
        "--assets",
        action="store_true",
        help="Generate scene and visual-spec images after the script is built",
    )
    parser.add_argument(
        "--stream",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Force segment-by-segment generation on or off (default: by length)",
    )
    return parser


def write_script(script: GalgameScript, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(script.to_wire(), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    logger.info("Script written", path=str(output_path), nodes=len(script.nodes))


async def run(args: argparse.Namespace) -> int:
    story_text = args.story.read_text(encoding="utf-8")

    channel = ProgressChannel()
    display = RichDisplayManager()
    display.attach(channel)
    orchestrator = ScriptOrchestrator(progress=channel)

    display.start()
    try:
        script = await orchestrator.convert(
            story_text,
            generate_assets=args.assets,
            streaming=args.stream,
        )
        write_script(script, args.output)
        return 0
    except StreamingAbortedError as e:
        logger.error("Streaming conversion aborted", failed_segment=e.failed_segment, error=str(e), exc_info=True)
        if e.partial_script is not None:
            partial_path = args.output.with_name(f"{args.output.stem}.partial{args.output.suffix}")
            write_script(e.partial_script, partial_path)
        print(USER_FACING_ERROR_MESSAGE, file=sys.stderr)
        return 1
    except GalforgeError as e:
        logger.error("Story conversion failed", error=str(e), exc_info=True)
        print(USER_FACING_ERROR_MESSAGE, file=sys.stderr)
        return 1
    finally:
        await display.stop()
        await llm_service.aclose()
        await image_service.aclose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.story.is_file():
        print(f"Story file not found: {args.story}", file=sys.stderr)
        return 2

    setup_galforge_logging()

    report = validate_all()
    for severity in ("errors", "warnings"):
        for issue in report["issues"][severity]:
            logger.warning("Configuration issue", severity=severity, **issue)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Galforge shutting down due to KeyboardInterrupt")
        return 130


if __name__ == "__main__":
    sys.exit(main())
