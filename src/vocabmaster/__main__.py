"""Console practice over the built-in word set."""
import asyncio
import logging
import os
import sys

from vocabmaster.app import VocabMaster
from vocabmaster.config import ensure_directories
from vocabmaster.logging_config import setup_logging
from vocabmaster.models.session_models import ExerciseType, SessionState
from vocabmaster.services.practice_service import PracticeService

logger = logging.getLogger(__name__)

DEMO_USER_ID = os.getenv("DEMO_USER_ID", "demo_student")


async def ask(prompt: str) -> str:
    """Read a line without blocking the event loop, so feedback timers keep running."""
    return (await asyncio.to_thread(input, prompt)).strip().lower()


def print_question(practice: PracticeService) -> None:
    session = practice.session
    word = session.current_word
    print()
    print(f"[{session.current_index + 1}/{session.total_words}] {word.en}")
    if practice.exercise_type is ExerciseType.SENTENCE and word.sentence_in_text:
        print(f"    \"{word.sentence_in_text}\"")
    for number, option in enumerate(session.options, start=1):
        print(f"  {number}. {option}")


async def run_practice(practice: PracticeService) -> None:
    """Ask questions until the session completes or the user quits."""
    session = practice.session
    while session.state is SessionState.IN_PROGRESS:
        if session.is_transitioning:
            await asyncio.sleep(0.05)
            continue

        print_question(practice)
        choice = await ask("Answer (number, s=skip, q=quit): ")
        if choice == "q":
            break
        if choice == "s":
            practice.skip()
            continue
        if not choice.isdigit() or not 1 <= int(choice) <= len(session.options):
            print("Please type one of the option numbers.")
            continue

        result = practice.answer(session.options[int(choice) - 1])
        if result is None:
            continue
        if not result.is_correct:
            print("Not quite, try again.")
        elif result.points_awarded is not None:
            print(f"Correct! +{result.points_awarded} points")
        else:
            print("Correct!")


def print_summary(practice: PracticeService) -> None:
    result = practice.result or practice.session.get_session_stats()
    print()
    print(f"Correct: {result.correct}  Wrong: {result.wrong}  Accuracy: {result.accuracy:.0f}%")
    if practice.final_stats is not None:
        print(f"Points this session: {practice.final_stats.points}")
    state = practice.game_service.state
    print(f"Level {state.level}, {state.xp} XP ({practice.game_service.xp_to_next} XP to next level)")
    if practice.errors:
        print("Some progress could not be saved.")


async def main(exercise_type: ExerciseType = ExerciseType.MATCHING) -> None:
    """Run one console practice session."""
    app = VocabMaster()
    await app.start()
    try:
        app.ensure_user(DEMO_USER_ID, "Demo Student")
        practice = app.practice(DEMO_USER_ID, exercise_type=exercise_type)
        practice.game_service.level_up_listeners.append(
            lambda event: print(f"Level up! You reached level {event.new_level}")
        )
        practice.game_service.badge_listeners.append(
            lambda badge: print(f"{badge.icon} New badge: {badge.name}")
        )

        practice.start(app.get_practice_words())
        await run_practice(practice)
        practice.close()
        print_summary(practice)
    finally:
        await app.stop()


def cli() -> None:
    """Console script entry point."""
    # Ensure all required directories exist
    ensure_directories()

    setup_logging("Starting VocabMaster console practice ...")

    exercise = sys.argv[1] if len(sys.argv) > 1 else ExerciseType.MATCHING.value
    if exercise not in {t.value for t in ExerciseType}:
        logger.error(f"Unknown exercise type {exercise!r}, use one of: matching, visual, audio, sentence")
        sys.exit(1)

    try:
        asyncio.run(main(ExerciseType(exercise)))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    cli()
