"""
Command-line interface for generating transcripts, dubbings, and dubbed renders.
"""

import argparse
import asyncio
import logging
import os
import sys

from openai import AsyncOpenAI

from .config import Settings, load_env
from .errors import DubSyncError
from .io_ffmpeg import ensure_dir, get_video_duration_ms, mux_audio_to_video
from .models import Resource
from .pipeline import ContentPipeline
from .store import JsonFileStore, resource_path
from .stt import OpenAITranscriptionModel
from .timecode import write_srt
from .timeline import render_dub_track
from .tts import GoogleSpeechSynthesizer, OpenAISpeechSynthesizer

logger = logging.getLogger("dubsync")


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="AI transcript and dubbing generation")
    ap.add_argument("--store-dir", default=None, help="Document store directory (default: $DUBSYNC_STORE_DIR)")
    ap.add_argument("--workdir", default=None, help="Scratch directory (default: $DUBSYNC_WORKDIR)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    sub = ap.add_subparsers(dest="command", required=True)

    def common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--resource", required=True, help="Resource id")
        p.add_argument("--language", required=True, help="Target language, e.g. Hindi")
        p.add_argument("--file-url", default=None, help="Register the resource with this video URL first")

    p_tr = sub.add_parser("transcript", help="Get or generate a translated transcript")
    common(p_tr)
    p_tr.add_argument("--srt", default=None, help="Also export the transcript as SRT")

    p_dub = sub.add_parser("dub", help="Get or generate dubbed audio segments")
    common(p_dub)
    p_dub.add_argument(
        "--strict",
        action="store_true",
        help="Fail instead of generating a missing transcript",
    )

    p_render = sub.add_parser("render", help="Render a dubbed copy of a local video")
    common(p_render)
    p_render.add_argument("--input-video", required=True, help="Local copy of the source video")
    p_render.add_argument("--output", default="output_dubbed.mp4")

    return ap.parse_args(argv)


def build_pipeline(settings: Settings) -> ContentPipeline:
    if not settings.openai_api_key:
        raise DubSyncError("OPENAI_API_KEY is not set. Put it in .env or environment.")
    client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.generation_timeout)
    transcriber = OpenAITranscriptionModel(
        client,
        workdir=settings.workdir,
        whisper_model=settings.whisper_model,
        translate_model=settings.translate_model,
    )
    if settings.tts_provider == "openai":
        synthesizer = OpenAISpeechSynthesizer(client, settings.tts_model, settings.tts_voice)
    else:
        if not settings.google_tts_api_key:
            raise DubSyncError("GOOGLE_TTS_API_KEY is not set. Put it in .env or environment.")
        synthesizer = GoogleSpeechSynthesizer(settings.google_tts_api_key)
    return ContentPipeline(JsonFileStore(settings.store_dir), transcriber, synthesizer, settings)


async def run_command(args: argparse.Namespace, pipeline: ContentPipeline) -> None:
    if args.file_url:
        resource = Resource(id=args.resource, file_url=args.file_url)
        await pipeline.store.set(resource_path(args.resource), resource.to_document())
        logger.info(f"Registered resource {args.resource} -> {args.file_url}")

    if args.command == "transcript":
        transcript = await pipeline.get_or_create_transcript(args.resource, args.language)
        for seg in transcript.segments:
            print(f"[{seg.start} - {seg.end}] {seg.text}")
        if args.srt:
            write_srt(transcript.segments, args.srt)
            logger.info(f"Saved SRT -> {args.srt}")

    elif args.command == "dub":
        if args.strict:
            dubbing = await pipeline.create_dubbing_from_transcript(args.resource, args.language)
        else:
            dubbing = await pipeline.get_or_create_dubbing(args.resource, args.language)
        logger.info(f"Dubbing ready: {len(dubbing.segments)} segments ({args.language})")

    elif args.command == "render":
        dubbing = await pipeline.get_or_create_dubbing(args.resource, args.language)
        tmp = os.path.join(pipeline.settings.workdir, "tmp", "render")
        ensure_dir(tmp)
        vid_ms = await asyncio.to_thread(get_video_duration_ms, args.input_video)
        track = await asyncio.to_thread(
            render_dub_track,
            dubbing,
            tmp,
            max_rate=pipeline.settings.max_playback_rate,
            total_ms=vid_ms,
        )
        final_wav = os.path.join(pipeline.settings.workdir, "dub_track.wav")
        await asyncio.to_thread(track.export, final_wav, format="wav")
        logger.info(f"Exported dub track -> {final_wav}")
        await asyncio.to_thread(mux_audio_to_video, args.input_video, final_wav, args.output)
        logger.info(f"Done (dubbed) -> {args.output}")


async def main_async(argv: list[str] | None = None) -> int:
    load_env()
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    if args.store_dir:
        settings.store_dir = args.store_dir
    if args.workdir:
        settings.workdir = args.workdir

    pipeline = None
    try:
        pipeline = build_pipeline(settings)
        await run_command(args, pipeline)
    except DubSyncError as e:
        logger.error(str(e))
        return 1
    finally:
        if pipeline is not None:
            await pipeline.aclose()
    return 0


def main() -> None:
    """Main CLI entry point."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
