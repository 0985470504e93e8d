"""
Batch runner.

Processes a set of article files one after another. Articles whose final
video already exists are skipped without touching any paid service; a
failing article is logged and the batch moves on.

Layout per article ``<dir>/<slug>.md``:
    <dir>/.assets_<slug>/   manifest, narration, scene images
    <dir>/<slug>.mp4        final video
"""
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from storyshorts.config import AppConfig, config
from storyshorts.exceptions import PipelineError
from storyshorts.models import PublishJob
from storyshorts.pipeline.orchestrator import VideoOrchestrator
from storyshorts.publishing.dzen_publisher import DzenVideoPublisher
from storyshorts.publishing.history import PublicationHistoryStore

logger = logging.getLogger(__name__)

ARTICLE_SUFFIXES = (".md", ".txt")
ASSET_DIR_PREFIX = ".assets_"


@dataclass
class ArticleOutcome:
    article: Path
    status: str  # PASS | SKIP | FAIL
    reason: str = ""
    video_path: Optional[Path] = None
    published: Optional[bool] = None


@dataclass
class BatchReport:
    outcomes: List[ArticleOutcome] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def failed(self) -> List[ArticleOutcome]:
        return [o for o in self.outcomes if o.status == "FAIL"]


def article_paths(article: Path) -> tuple[Path, Path]:
    """Asset directory and final video path for an article file."""
    slug = article.stem
    return article.parent / f"{ASSET_DIR_PREFIX}{slug}", article.parent / f"{slug}.mp4"


def discover_articles(inputs: Iterable[Path]) -> List[Path]:
    """
    Expand files and directories into article files.

    Directories are searched recursively for *.md / *.txt; names containing
    REPORT and anything inside asset directories are ignored.
    """
    found: List[Path] = []
    for item in inputs:
        item = Path(item)
        if item.is_dir():
            candidates = sorted(p for p in item.rglob("*") if p.is_file())
        elif item.is_file():
            candidates = [item]
        else:
            logger.warning(f"[BATCH] Input not found: {item}")
            continue

        for path in candidates:
            if path.suffix.lower() not in ARTICLE_SUFFIXES or "REPORT" in path.name:
                continue
            if any(part.startswith(ASSET_DIR_PREFIX) for part in path.parent.parts):
                continue
            if path not in found:
                found.append(path)
    return found


class BatchProcessor:
    """
    Sequential, resumable batch over article files.

    Publishing is enabled by passing a publisher; the history store keeps
    already-published titles from being published again.
    """

    def __init__(
        self,
        orchestrator: Optional[VideoOrchestrator] = None,
        publisher: Optional[DzenVideoPublisher] = None,
        history: Optional[PublicationHistoryStore] = None,
        app_config: Optional[AppConfig] = None,
    ):
        self.config = app_config or config
        self.orchestrator = orchestrator or VideoOrchestrator()
        self.publisher = publisher
        self.history = history

    def build_publish_job(self, result) -> PublishJob:
        settings = self.config.publisher
        hook = result.manifest.hook.strip()
        if settings.channel_link:
            description = f"Полная история тут: {settings.channel_link}\n\n{hook}".strip()
        else:
            description = hook
        return PublishJob(
            title=result.manifest.title,
            description=description,
            tags=list(settings.default_tags),
            video_path=result.video_path,
            cover_path=result.cover_path,
        )

    def copy_to_public(self, video_path: Path, slug: str) -> Optional[Path]:
        public_dir = self.config.paths.public_video_dir
        if public_dir is None:
            return None
        target = public_dir / f"{slug}.mp4"
        try:
            public_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(video_path, target)
        except OSError as e:
            logger.warning(f"[BATCH] Public copy failed for {slug}: {e}")
            return None
        logger.info(f"[BATCH] Public copy: {target}")
        return target

    async def process_file(self, article: Path) -> ArticleOutcome:
        """Generate (and optionally publish) one article. Never raises; failures become FAIL outcomes."""
        asset_dir, video_path = article_paths(article)

        if video_path.exists():
            return ArticleOutcome(article, "SKIP", "video already exists", video_path)

        try:
            text = article.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return ArticleOutcome(article, "FAIL", f"cannot read article: {e}")

        try:
            result = await self.orchestrator.process_article(text, asset_dir, video_path)
        except PipelineError as e:
            return ArticleOutcome(article, "FAIL", str(e))
        except Exception as e:
            logger.exception(f"[BATCH] Unexpected error processing {article.name}")
            return ArticleOutcome(article, "FAIL", f"unexpected error: {e}")

        self.copy_to_public(result.video_path, article.stem)
        outcome = ArticleOutcome(article, "PASS", video_path=result.video_path)

        if self.publisher is not None:
            try:
                outcome.published, outcome.reason = await self.publish_result(result)
            except Exception as e:
                logger.exception(f"[BATCH] Unexpected error publishing {article.name}")
                outcome.published = False
                outcome.reason = f"publish failed: {e}"
        return outcome

    async def publish_result(self, result) -> tuple[bool, str]:
        title = result.manifest.title
        if self.history is not None and self.history.is_published(title):
            return False, "already published"

        size_mb = result.video_path.stat().st_size / (1024 * 1024)
        if size_mb > self.config.max_video_size_mb:
            logger.warning(
                f"[BATCH] {result.video_path.name} is {size_mb:.2f} MB "
                f"(limit {self.config.max_video_size_mb} MB), not publishing"
            )
            return False, f"video too large ({size_mb:.2f} MB)"

        job = self.build_publish_job(result)
        if not await self.publisher.publish(job):
            return False, f"publish failed: {job.error}"

        if self.history is not None:
            self.history.append(title)
        return True, "published"

    async def run(self, inputs: Iterable[Path]) -> BatchReport:
        articles = discover_articles(inputs)
        logger.info(f"[BATCH] {len(articles)} articles to process")

        report = BatchReport()
        for index, article in enumerate(articles, 1):
            logger.info(f"[BATCH] ({index}/{len(articles)}) {article.name}")
            outcome = await self.process_file(article)
            report.outcomes.append(outcome)

            line = f"[BATCH] {outcome.status} {article.name}"
            if outcome.reason:
                line += f" - {outcome.reason}"
            if outcome.status == "FAIL":
                logger.error(line)
            else:
                logger.info(line)

        logger.info(
            f"[BATCH] Finished: {report.count('PASS')} passed, "
            f"{report.count('SKIP')} skipped, {report.count('FAIL')} failed"
        )
        return report
