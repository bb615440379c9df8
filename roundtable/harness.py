"""
roundtable/harness.py: CLI driver for the five-step writing workflow

Usage:
    # Auto-approve run with an AI-generated topic (new session)
    python -m roundtable.harness --fresh

    # Manual topic, ask before every destructive confirmation
    python -m roundtable.harness --topic "火影忍者與日本社會創傷" --interactive

    # Continue the saved session and extend the discussion twice
    python -m roundtable.harness --extend 2
"""

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Optional

from dotenv import load_dotenv

load_dotenv()  # Must be before roundtable imports so env vars reach Settings

from roundtable.config import settings
from roundtable.services.generation import LangChainGenerationClient
from roundtable.store.snapshots import SnapshotStore
from roundtable.workflow.completion import is_step_completed
from roundtable.workflow.controller import ActionStatus, OrchestrationController
from roundtable.workflow.store import WorkflowStore

STEP_TITLES = {
    1: "產生議題",
    2: "資料研究",
    3: "建立小組",
    4: "開始研討",
    5: "最終文章",
}


def _print_chunk(step: int, text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _banner(step: int) -> None:
    print(f"\n{'='*60}")
    print(f"STEP {step}: {STEP_TITLES[step]}")
    print(f"{'='*60}")


async def _settle(
    controller: OrchestrationController,
    pending: Awaitable[ActionStatus],
    interactive: bool,
) -> ActionStatus:
    """Run an action and answer any confirmation it raises."""
    status = await pending
    while status is ActionStatus.NEEDS_CONFIRMATION and controller.pending is not None:
        message = controller.pending.message
        print(f"\n[CONFIRM] {message}")
        if interactive:
            accept = input("Continue? [y/n]: ").strip().lower() == "y"
        else:
            print("[AUTO] Confirmed.")
            accept = True
        status = await controller.resolve_confirmation(accept)
    if controller.state.last_error:
        print(f"\nERROR: {controller.state.last_error}")
    return status


async def run_workflow(
    topic: Optional[str] = None,
    interactive: bool = False,
    extend: int = 0,
    fresh: bool = False,
) -> OrchestrationController:
    """
    Drive every step once, skipping steps that are already completed.

    Args:
        topic: Manual topic; when None and no topic is saved, one is generated
        interactive: Ask before each destructive confirmation instead of auto-approving
        extend: Number of discussion extensions after the first round
        fresh: Discard the saved session before starting

    Returns:
        The controller, holding the final workflow state
    """
    store = WorkflowStore(snapshots=SnapshotStore())
    if fresh:
        store.discard()
    elif store.load():
        print(f"Resumed saved session '{store.storage_key}'")

    controller = OrchestrationController(store, LangChainGenerationClient(), chunk_listener=_print_chunk)

    # Step 1
    _banner(1)
    if not controller.state.topic_confirmed:
        if topic:
            controller.set_topic(topic)
        elif not controller.state.topic.strip():
            await _settle(controller, controller.generate_topic(), interactive)
        print(f"Topic: {controller.state.topic}")
        if controller.confirm_topic() is not ActionStatus.COMPLETED:
            return controller
    else:
        print(f"Topic (confirmed): {controller.state.topic}")
        controller.advance(1)

    steps = [
        (2, controller.conduct_research),
        (3, controller.generate_panel),
        (4, controller.start_discussion),
    ]
    for step, action in steps:
        _banner(step)
        controller.navigate_to(step)
        if not is_step_completed(controller.state, step):
            await _settle(controller, action(), interactive)
        if not is_step_completed(controller.state, step):
            print(f"\nStep {step} did not complete, stopping.")
            return controller
        if step == 2:
            print(f"\nCitations: {len(controller.state.citations)}")
        if step == 3:
            for c in controller.state.characters:
                print(f"- {c.name}，{c.profession}")
        controller.advance(step)

    for _ in range(extend):
        await _settle(controller, controller.extend_discussion(), interactive)

    _banner(5)
    if not is_step_completed(controller.state, 5):
        await _settle(controller, controller.generate_article(), interactive)

    print(f"\n{'='*60}")
    print("WORKFLOW COMPLETE" if is_step_completed(controller.state, 5) else "WORKFLOW STOPPED")
    print(f"{'='*60}")
    print(f"Article length: {len(controller.state.final_article)} chars")
    return controller


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Roundtable writing workflow harness")
    parser.add_argument("--topic", default=None)
    parser.add_argument("--interactive", action="store_true")
    parser.add_argument("--extend", type=int, default=0)
    parser.add_argument("--fresh", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_workflow(
        topic=args.topic,
        interactive=args.interactive,
        extend=args.extend,
        fresh=args.fresh,
    ))
