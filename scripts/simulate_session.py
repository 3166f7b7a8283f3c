"""Interactive CLI that feeds typed utterances through the comment scheduler."""

from __future__ import annotations

import argparse
import asyncio
import logging

from monolog.comments.models import AudioAnalysisData, ConversationContext, InteractionType
from monolog.config import load_config
from monolog.memory.store import SQLiteStorage
from monolog.runtime.engine import InferenceEngine
from monolog.scheduler import Scheduler
from monolog.utils.logging import setup_logging

FEEDBACK_COMMANDS = {
    "+": InteractionType.THUMBS_UP,
    "-": InteractionType.THUMBS_DOWN,
    "*": InteractionType.CLICK,
}


def parse_args():
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--storage", help="SQLite file for preferences and comments")
    parser.add_argument("--model", action="store_true", help="Use the Ollama model path")
    parser.add_argument("--local_model", help="Path or hub id of a local causal LM (needs the 'local' extra)")
    parser.add_argument("--user_id", help="Override the configured user id")
    parser.add_argument("--session_id", help="Override the configured session id")
    parser.add_argument("--log_file", default="logs/simulate_session.log")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


def build_scheduler(args) -> Scheduler:
    config = load_config(args.config)
    if args.user_id:
        config.scheduler.user_id = args.user_id
    if args.session_id:
        config.scheduler.session_id = args.session_id

    def announce(notice):
        print(f"[notice] {notice.capability}: {notice.reason}")

    if not args.local_model:
        return Scheduler.from_config(
            config, storage_path=args.storage, use_model=args.model, on_notice=announce
        )

    from monolog.runtime.local import local_engine_factory

    return Scheduler(
        config=config,
        engine=InferenceEngine(local_engine_factory(config.engine), model_id=args.local_model),
        storage=SQLiteStorage(args.storage) if args.storage else None,
        on_notice=announce,
    )


def audio_for(text: str) -> AudioAnalysisData:
    words = len(text.split()) or len(text) // 2
    return AudioAnalysisData(
        volume=min(100.0, 30.0 + 2.0 * len(text)),
        speech_rate=float(words * 30),
        volume_variance=10.0,
        is_speaking=bool(text),
        silence_duration=0.0 if text else 6000.0,
    )


async def run(args) -> None:
    scheduler = build_scheduler(args)
    last_comment = None
    print("Session started. Type a line to speak, '+', '-' or '*' to rate the last comment, 'exit' to quit.")
    async with scheduler:
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            text = (await loop.run_in_executor(None, input, "you> ")).strip()
            if text.lower() in {"exit", "quit"}:
                break
            if text in FEEDBACK_COMMANDS:
                if last_comment is None:
                    print("(nothing to rate yet)")
                    continue
                weight = await scheduler.record_feedback(last_comment.id, FEEDBACK_COMMANDS[text])
                print(f"({last_comment.role.value} weight now {weight:.2f})")
                continue

            for pickup in await scheduler.observe_speech(text):
                print(f"(picked up {pickup.comment_id}, confidence {pickup.confidence:.2f})")
            scheduler.update_audio(audio_for(text))
            context = ConversationContext(
                recent_transcript=text,
                session_duration=loop.time() - started,
            )
            comment = await scheduler.generate_comment(context)
            if comment is None:
                print("...")
                continue
            last_comment = comment
            print(f"[{comment.role.value}/{comment.source}] {comment.content}")

        ranking = scheduler.learner.get_preference_ranking(scheduler.user_id)
        print(f"Most preferred: {ranking[0].value}, least preferred: {ranking[1].value}")


def main():
    args = parse_args()
    setup_logging(args.log_file, logging.DEBUG if args.verbose else logging.INFO)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
