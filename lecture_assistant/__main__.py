"""CLI entry point for lecture-assistant.

Usage:
  python -m lecture_assistant serve [--port PORT] [--host HOST]
  python -m lecture_assistant stop
  python -m lecture_assistant restart [--port PORT]
  python -m lecture_assistant status
  python -m lecture_assistant quiz FILE [FILE ...] [--count N] [--difficulty D] [--type T] [--out PATH]
"""
from __future__ import annotations

import asyncio
import mimetypes
import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "restart":
        _restart(args[1:])
    elif command == "status":
        _status()
    elif command == "quiz":
        _quiz(args[1:])
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, restart, status, quiz")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _positional(args: list[str]) -> list[str]:
    """Arguments that are neither flags nor flag values."""
    out = []
    skip = False
    for a in args:
        if skip:
            skip = False
            continue
        if a.startswith("--"):
            skip = True
            continue
        out.append(a)
    return out


def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        PID_FILE.unlink(missing_ok=True)
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        PID_FILE.unlink(missing_ok=True)
        return False


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _restart(args: list[str]):
    import time
    _stop()
    time.sleep(1)
    _serve(args)


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'restart' or 'stop' first.")
        sys.exit(1)

    port = int(_parse_flag(args, "--port", "8766"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    PID_FILE.write_text(str(os.getpid()))

    print(f"Starting Lecture Assistant on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "lecture_assistant.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        PID_FILE.unlink(missing_ok=True)


def _quiz(args: list[str]):
    """Run the whole pipeline on local files and write the exported questions."""
    from lecture_assistant.app import _get_llm
    from lecture_assistant import app as app_module
    from lecture_assistant.config import load_settings
    from lecture_assistant.models import UploadedFile
    from lecture_assistant.orchestrator import Pipeline

    paths = [Path(p) for p in _positional(args)]
    if not paths:
        print("Usage: quiz FILE [FILE ...] [--count N] [--difficulty D] [--type T] [--out PATH]")
        sys.exit(1)

    settings = load_settings()
    app_module._settings = settings
    pipeline = Pipeline(_get_llm, settings)

    uploads = []
    for p in paths:
        if not p.exists():
            print(f"  Not found: {p}")
            sys.exit(1)
        mime = mimetypes.guess_type(p.name)[0] or ""
        uploads.append(UploadedFile(name=p.name, mime_type=mime, data=p.read_bytes()))

    async def run():
        if len(uploads) == 1:
            state = await pipeline.process_file(uploads[0])
        else:
            state = await pipeline.process_batch(uploads)
        for failure in state.batch_errors:
            print(f"  Skipped {failure.file_name}: {failure.error.message}")
        error = state.file_error or state.analysis_error
        if error:
            return error
        print(f"Summary: {state.analysis.summary}\n")
        count = int(_parse_flag(args, "--count", str(settings.default_question_count)))
        state = await pipeline.generate(
            number_of_questions=count,
            difficulty=_parse_flag(args, "--difficulty", settings.default_difficulty),
            question_type=_parse_flag(args, "--type", settings.default_question_type),
        )
        return state.generation_error

    error = asyncio.run(run())
    if error:
        print(f"{error.error_code}: {error.message}")
        sys.exit(1)

    state = pipeline.state
    if state.dropped_questions:
        print(f"  {state.dropped_questions} malformed question(s) dropped")
    out = Path(_parse_flag(args, "--out", "test_questions.json"))
    out.write_bytes(state.editor.export_selected())
    print(f"Wrote {len(state.editor)} question(s) to {out}")


if __name__ == "__main__":
    main()
