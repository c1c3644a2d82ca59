import argparse
import asyncio
import dataclasses
import json
import logging
import mimetypes
from pathlib import Path
from .config import load_settings
from .corrections import CorrectionMemo, load_official_correction
from .db import ensure_sqlite_schema, make_engine, make_sessionmaker
from .dialogue import DialogueStateMachine
from .errors import TransitionRejected
from .explain import ExplanationClient
from .grader import KeywordAnswerService
from .llm import GeminiTutorBackend
from .summary import format_summary, format_transcript, summarize
from .transcriber import Transcriber
from .types import ExerciseContext, ExplainMode, ImagePayload
from .usage import UsageLimiter
from .validator import AnswerValidator

logger = logging.getLogger(__name__)

HELP = """Commands:
  :begin         ask the tutor to guide you from the very beginning
  :direct        ask for a direct explanation (before starting, or for the current step)
  :stuck         reveal the expected answer and continue (or show the official correction)
  :image PATH..  transcribe photos of your work (you can edit the text before it is sent)
  :reset         start over
  :quit          leave and print the session summary"""

def _load_exercise(path: Path) -> ExerciseContext:
    raw = json.loads(path.read_text(encoding="utf-8"))
    return ExerciseContext(
        exercise_id=str(raw["id"]),
        statement=raw["statement"],
        topic_id=str(raw.get("chapter_id") or raw.get("topic_id") or ""),
        correction_snippet=raw.get("correction_snippet") or "",
        full_correction=raw.get("full_correction") or None,
    )

def _load_images(paths: list[str]) -> list[ImagePayload]:
    images = []
    for p in paths:
        mime_type = mimetypes.guess_type(p)[0] or "image/jpeg"
        images.append(ImagePayload(Path(p).read_bytes(), mime_type))
    return images

def _print_correction(exercise: ExerciseContext):
    def _show(effect):
        print(f"----- OFFICIAL CORRECTION ({effect.exercise_id}) -----\n{exercise.full_correction}")
    return _show

async def _read(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)

def _print_new(machine: DialogueStateMachine, seen: int) -> int:
    if seen > len(machine.session.transcript):
        # the session was reset underneath us
        seen = 0
    messages = machine.session.transcript[seen:]
    if messages:
        print(format_transcript(messages))
    if machine.session.error is not None:
        print(f"[error] {machine.session.error}")
        machine.dismiss_error()
    return len(machine.session.transcript)

async def _loop(machine: DialogueStateMachine) -> None:
    seen = _print_new(machine, 0)
    while True:
        line = (await _read("> ")).strip()
        if not line:
            continue
        if line == ":quit":
            break
        if line == ":help":
            print(HELP)
            continue
        if line == ":reset":
            machine.reset()
            seen = _print_new(machine, 0)
            continue
        try:
            if line == ":begin":
                await machine.start_with_help()
            elif line == ":stuck":
                machine.give_up()
            elif line == ":direct":
                if machine.session.is_active:
                    await machine.ask_direct_help()
                else:
                    draft = machine.session.draft or (await _read("question> "))
                    await machine.start(draft, ExplainMode.DIRECT)
            elif line.startswith(":image "):
                text = await machine.transcribe(_load_images(line.split()[1:]))
                if text is not None:
                    print(f"Transcription:\n{text}")
                    edited = (await _read("edit (empty keeps it)> ")).strip()
                    await machine.submit_verified_transcription(edited or None)
            else:
                await machine.submit(line)
        except TransitionRejected as exc:
            print(f"[refused] {exc.reason}")
        seen = _print_new(machine, seen)
        if machine.session.video_chunk is not None:
            chunk = machine.session.video_chunk
            print(f"[video {chunk.source_id} @ {chunk.start_offset_seconds:.0f}s] {chunk.excerpt_text}")
    await machine.wait_background()

async def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parser = argparse.ArgumentParser(description="Socratic math tutor in the terminal")
    parser.add_argument("exercise", type=Path, help="exercise JSON (id, statement, chapter_id, correction_snippet)")
    parser.add_argument("--user-id", default="console")
    parser.add_argument("--offline-validation", action="store_true",
                        help="check answers by keyword matching instead of asking the AI")
    args = parser.parse_args()

    settings = load_settings()
    engine = make_engine(settings)
    try:
        if settings.database_url.startswith("sqlite"):
            if settings.database_url.startswith("sqlite+aiosqlite:///./"):
                Path("./data").mkdir(parents=True, exist_ok=True)
            await ensure_sqlite_schema(engine)
        sessionmaker = make_sessionmaker(engine)

        exercise = _load_exercise(args.exercise)
        if not exercise.full_correction:
            async with sessionmaker() as s:
                official = await load_official_correction(s, exercise.exercise_id)
            if official:
                exercise = dataclasses.replace(exercise, full_correction=official)

        usage = UsageLimiter(sessionmaker, args.user_id, dict(settings.usage_limits))
        backend = GeminiTutorBackend(settings.gemini_api_key, model=settings.llm_model, usage=usage)
        validation_service = KeywordAnswerService() if args.offline_validation else backend
        machine = DialogueStateMachine(
            exercise,
            explanation_client=ExplanationClient(backend),
            validator=AnswerValidator(validation_service),
            transcriber=Transcriber(backend, usage=usage),
            memo=CorrectionMemo(sessionmaker),
            show_correction=_print_correction(exercise) if exercise.has_official_correction else None,
            lang=settings.ui_lang,
        )
        print(HELP)
        await _loop(machine)
        print(format_summary(summarize(machine.session)))
    except Exception:
        logger.exception("tutor_run_failed")
        raise
    finally:
        await engine.dispose()

def cli():
    asyncio.run(main())

if __name__ == "__main__":
    cli()
