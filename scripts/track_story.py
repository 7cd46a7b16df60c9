#!/usr/bin/env python3
"""
Story Generation Tracker
Submits a story from the command line and follows it to completion.

Usage:
    python scripts/track_story.py story.txt                     # defaults
    python scripts/track_story.py story.txt --pages 12 --age 5
    python scripts/track_story.py --retry <story-id>            # retry a stored submission
    python scripts/track_story.py --check                       # check Job Store + Redis and exit
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
import uuid
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from storystudio.core.config import settings
from storystudio.core.database import SessionLocal, init_db
from storystudio.core.logging_config import configure_logging
from storystudio.core.redis import get_redis, get_redis_manager, redis_health_check
from storystudio.schemas.job import TERMINAL_FAILURE_STATUSES
from storystudio.schemas.story import StoryParameters, StorySettings
from storystudio.services.assembler import ResultAssembler
from storystudio.services.job_store import SQLJobStore
from storystudio.services.submissions import RedisSubmissionStore
from storystudio.services.trigger import JobTrigger
from storystudio.workers.controller import GenerationController
from storystudio.workers.poller import StatusPoller

logger = logging.getLogger("storystudio.tracker")


def build_parameters(args: argparse.Namespace) -> StoryParameters:
    text = Path(args.story_file).read_text(encoding="utf-8")
    return StoryParameters(
        story_text=text,
        file_name=Path(args.story_file).name,
        settings=StorySettings(
            target_age=args.age,
            intensity=args.intensity,
            page_count=args.pages,
            freeform_notes=args.notes,
        ),
    )


async def track(args: argparse.Namespace, parameters: Optional[StoryParameters]) -> int:
    init_db()
    job_store = SQLJobStore(SessionLocal)
    submissions = RedisSubmissionStore(get_redis())
    trigger = JobTrigger()
    controller = GenerationController(trigger, StatusPoller(job_store), ResultAssembler(job_store))

    controller.on_phase_change(lambda phase: logger.info(f"Phase: {phase.value}"))
    controller.on_progress_change(lambda status, label: logger.info(f"[{status}] {label}"))
    controller.on_error(lambda error: logger.error(f"Generation failed: {error.message}"))

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, controller.cancel)

    try:
        if args.retry:
            story_id = args.retry
            parameters = await submissions.load(story_id)
            if parameters is None:
                logger.error(f"No stored submission for {story_id}")
                return 1
            record = await job_store.read_status(story_id)
            if record.status not in TERMINAL_FAILURE_STATUSES:
                logger.error(f"Story {story_id} is '{record.status}'; only failed stories can be retried")
                return 1
        else:
            story_id = str(uuid.uuid4())
            await job_store.create_job(story_id, parameters)
            await submissions.save(story_id, parameters)

        logger.info(f"Tracking story {story_id}")
        result = await controller.start_generation(story_id, parameters)
    finally:
        await trigger.aclose()
        get_redis_manager().close()

    if result is None:
        logger.info(f"Story {story_id} ended in phase '{controller.phase.value}': {controller.error}")
        return 1

    logger.info(f"'{result.title or story_id}': {result.metadata.page_count} pages, "
                f"{result.metadata.character_count} characters")
    for page in result.pages:
        marker = "image" if page.image_data else "no image"
        logger.info(f"  Page {page.page_number} ({marker}){' [fixed]' if page.was_fixed else ''}: {page.caption}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Submit a story and track its picture book generation")
    parser.add_argument("story_file", nargs="?", help="Text file with the story")
    parser.add_argument("--age", type=int, default=6, help="Target reader age (default: 6)")
    parser.add_argument("--intensity", type=int, default=5, help="Story intensity 0-10 (default: 5)")
    parser.add_argument("--pages", type=int, default=10, help="Page count 5-30 (default: 10)")
    parser.add_argument("--notes", default="", help="Freeform notes for the illustrator")
    parser.add_argument("--retry", metavar="STORY_ID", help="Retry a previously submitted story")
    parser.add_argument("--check", action="store_true", help="Check Redis connection and exit")

    args = parser.parse_args()
    configure_logging()

    # Health check only
    if args.check:
        health = redis_health_check()
        print(f"Redis Status: {health}")
        print(f"Trigger URL: {settings.TRIGGER_URL}")
        sys.exit(0 if health.get("connected") else 1)

    if not args.story_file and not args.retry:
        parser.error("a story file is required unless --retry is given")

    parameters = None
    if not args.retry:
        try:
            parameters = build_parameters(args)
        except OSError as e:
            parser.error(f"cannot read story file: {e}")
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            parser.error(f"invalid story settings: {problems}")

    sys.exit(asyncio.run(track(args, parameters)))


if __name__ == "__main__":
    main()
