"""Main application entry point for Aurix."""

import argparse
import logging
import sys
import time
import wave
from pathlib import Path
from typing import Callable, Optional

import numpy as np
from rich.console import Console
from rich.table import Table

from .config import AurixConfig
from .errors import AurixError, FatalPipelineError
from .models.audio import AudioChunk, SAMPLE_RATE
from .models.document import DocumentResult
from .pipeline.runner import new_session_id
from .services import DocumentService, SessionManager, TranscriptionService
from .channel import SessionEventChannel
from .transcription import TranscriptAccumulator

logger = logging.getLogger(__name__)

CHUNK_SAMPLES = 1024


def setup_logging(config: AurixConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/aurix.log')
    console_output = config.get('logging.console_output', True)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - only warnings and above
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Aurix starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def read_wav(path: str) -> np.ndarray:
    """Read a 16 kHz mono 16-bit WAV file as float32 samples."""
    with wave.open(path, 'rb') as wf:
        if wf.getframerate() != SAMPLE_RATE or wf.getnchannels() != 1 or wf.getsampwidth() != 2:
            raise ValueError(f"{path} must be 16-bit mono {SAMPLE_RATE} Hz audio "
                             f"(got {wf.getsampwidth() * 8}-bit, {wf.getnchannels()} channels, "
                             f"{wf.getframerate()} Hz)")
        frames = wf.readframes(wf.getnframes())
    return np.frombuffer(frames, dtype='<i2').astype(np.float32) / 32768.0


def stream_samples(samples: np.ndarray, session_id: str, feed: Callable[[AudioChunk], None],
                   speed: float = 1.0, chunk_samples: int = CHUNK_SAMPLES) -> int:
    """Feed ``samples`` in fixed-size chunks, paced at ``speed`` x real time (0 = unpaced)."""
    chunk_seconds = chunk_samples / SAMPLE_RATE
    count = 0
    for sequence, offset in enumerate(range(0, len(samples), chunk_samples)):
        feed(AudioChunk(
            session_id=session_id,
            samples=samples[offset:offset + chunk_samples],
            sequence_number=sequence,
            timestamp_ms=int(offset * 1000 / SAMPLE_RATE),
        ))
        count += 1
        if speed > 0:
            time.sleep(chunk_seconds / speed)
    return count


def print_summary(console: Console, result: DocumentResult, output: Optional[Path] = None) -> None:
    table = Table(title=f"Document {result.session_id}")
    table.add_column("Metric", style="bold")
    table.add_column("Value")

    table.add_row("Cognitive load index", str(result.cognitive_load_index))
    if result.analysis:
        table.add_row("Topics", ", ".join(result.analysis.topics) or "-")
        table.add_row("Complexity", result.analysis.complexity.value)
        table.add_row("Content type", result.analysis.content_type.value)
    if result.cognitive_metrics:
        table.add_row("Words", str(result.cognitive_metrics.word_count))
        table.add_row("Reading time", f"{result.cognitive_metrics.est_reading_minutes:.1f} min")
    table.add_row("Diagrams", str(len(result.diagrams)))
    table.add_row("Processing time", f"{result.processing_seconds:.2f}s")
    if output:
        table.add_row("Saved to", str(output))
    console.print(table)

    for warning in result.warnings:
        console.print(f"⚠️  {warning}", style="yellow")


def run_document(config: AurixConfig, args, console: Console) -> None:
    transcript = Path(args.transcript).read_text(encoding='utf-8')
    service = DocumentService(config)
    result = service.generate(transcript, generate_diagrams=False if args.no_diagrams else None)

    output = service.save_document(result, args.output) if args.output else None
    if output is None:
        console.print(result.final_document, markup=False, highlight=False)
    print_summary(console, result, output)


def run_transcribe(config: AurixConfig, args, console: Console) -> None:
    samples = read_wav(args.audio)
    if args.privacy:
        config.set('transcription.privacy_mode', True)

    transcription = TranscriptionService(config)
    try:
        console.print(f"🎙️  Transcribing {args.audio} ({len(samples) / SAMPLE_RATE:.1f}s)", style="blue")
        if args.document:
            manager = SessionManager(transcription.selector, DocumentService(config))
            session_id = manager.start_session()
            stream_samples(samples, session_id, manager.feed_audio, speed=args.speed)
            manager.stop_session()
            result = manager.get_document(session_id)
            manager.shutdown()

            output = manager.document_service.save_document(result, args.output) if args.output else None
            if output is None:
                console.print(result.final_document, markup=False, highlight=False)
            print_summary(console, result, output)
        else:
            session_id = new_session_id()
            accumulator = TranscriptAccumulator(SessionEventChannel(session_id))
            transcription.selector.start_session(session_id)
            stream_samples(samples, session_id, transcription.selector.feed_audio, speed=args.speed)
            transcription.selector.stop_session()
            accumulator.close()
            console.print("📄 Transcript:", style="bold")
            console.print(accumulator.get_transcript() or "(no speech recognized)", markup=False)
    finally:
        transcription.shutdown()


def main() -> None:
    """Main entry point for Aurix."""
    parser = argparse.ArgumentParser(description="Aurix - turn spoken sessions into structured documents")
    parser.add_argument("--config", type=str, help="Path to configuration YAML file")
    parser.add_argument("--log-level", type=str, default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Set logging level (overrides config)")
    parser.add_argument("--version", action="version", version="Aurix v0.1.0")

    subparsers = parser.add_subparsers(dest="command", required=True)

    document_parser = subparsers.add_parser("document", help="Generate a document from a transcript file")
    document_parser.add_argument("transcript", help="Path to a UTF-8 transcript text file")
    document_parser.add_argument("--output", "-o", help="Write the Markdown document to this file")
    document_parser.add_argument("--no-diagrams", action="store_true", help="Skip diagram generation")

    transcribe_parser = subparsers.add_parser("transcribe", help="Transcribe a 16 kHz mono WAV file")
    transcribe_parser.add_argument("audio", help="Path to a 16-bit mono 16 kHz WAV file")
    transcribe_parser.add_argument("--privacy", action="store_true", help="Use only the local engine")
    transcribe_parser.add_argument("--document", action="store_true", help="Also generate a document")
    transcribe_parser.add_argument("--output", "-o", help="Write the Markdown document to this file")
    transcribe_parser.add_argument("--speed", type=float, default=1.0,
                                   help="Playback speed relative to real time (default: 1.0)")

    args = parser.parse_args()

    console = Console()
    try:
        config = AurixConfig(args.config)
        setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

        if args.command == "document":
            run_document(config, args, console)
        else:
            run_transcribe(config, args, console)
    except KeyboardInterrupt:
        console.print("\n👋 Goodbye!")
    except FatalPipelineError as e:
        console.print(f"❌ Cannot generate document: {e}", style="bold red")
        sys.exit(2)
    except (AurixError, OSError, ValueError) as e:
        console.print(f"❌ Error: {e}", style="bold red")
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
