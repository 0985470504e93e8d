"""
CLI entrypoint. Use from project root:
  python -m storyshorts path/to/article.md [--publish]
  python -m storyshorts --batch articles/ [--publish]
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from storyshorts.config import config
from storyshorts.exceptions import PipelineError
from storyshorts.pipeline.batch import BatchProcessor, article_paths
from storyshorts.pipeline.orchestrator import VideoOrchestrator
from storyshorts.publishing.dzen_publisher import DzenVideoPublisher
from storyshorts.publishing.history import FilePublicationHistory

logger = logging.getLogger("storyshorts")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storyshorts",
        description="Turn plain-text stories into narrated vertical videos",
    )
    parser.add_argument("inputs", nargs="+", type=Path, help="Article file(s) or directories")
    parser.add_argument(
        "--batch",
        action="store_true",
        help="Process every article found, skipping those already rendered",
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish rendered videos to Dzen after generation",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser while publishing")
    return parser


async def run_single(article: Path, publisher: Optional[DzenVideoPublisher]) -> int:
    asset_dir, video_path = article_paths(article)
    try:
        text = article.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read {article}: {e}")
        return 1

    orchestrator = VideoOrchestrator()
    batch = BatchProcessor(
        orchestrator=orchestrator,
        publisher=publisher,
        history=FilePublicationHistory(config.publisher.history_path),
    )
    try:
        result = await orchestrator.process_article(text, asset_dir, video_path)
    except PipelineError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1
    finally:
        await orchestrator.close()

    batch.copy_to_public(result.video_path, article.stem)
    logger.info(f"Video ready: {result.video_path}")

    if publisher is None:
        return 0
    published, reason = await batch.publish_result(result)
    logger.info(f"Publish: {reason}")
    return 0 if published or reason == "already published" else 1


async def run_batch(inputs: List[Path], publisher: Optional[DzenVideoPublisher]) -> int:
    orchestrator = VideoOrchestrator()
    batch = BatchProcessor(
        orchestrator=orchestrator,
        publisher=publisher,
        history=FilePublicationHistory(config.publisher.history_path),
    )
    try:
        await batch.run(inputs)
    finally:
        await orchestrator.close()
    return 0


async def run(args: argparse.Namespace) -> int:
    publisher = None
    if args.publish:
        if args.headed:
            config.publisher.headless = False
        publisher = DzenVideoPublisher()

    single = not args.batch and len(args.inputs) == 1 and args.inputs[0].is_file()
    try:
        if single:
            return await run_single(args.inputs[0], publisher)
        return await run_batch(args.inputs, publisher)
    finally:
        if publisher is not None:
            await publisher.close()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    args = build_parser().parse_args(argv)
    config.log_status()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
