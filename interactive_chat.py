#!/usr/bin/env python3
"""Gymzy Coach Chat CLI (LOCAL DEV)

Runs the coach agent locally against Gemini and the Gymzy domain services.
Responses stream as they arrive; Ctrl-C during a reply cancels that turn.

Usage:
  python3 interactive_chat.py --user-id <uid> [--volumes '{"chest": 1200}']

Environment:
  - GCP_PROJECT_ID / GCP_REGION (Vertex AI) or GOOGLE_API_KEY
  - GYMZY_SERVICES_BASE_URL / GYMZY_SERVICES_API_KEY
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from gymzy_agent.shell.agent import create_coach_agent
from gymzy_agent.shell.context import ConversationSession
from gymzy_agent.shell.safety_gate import PendingConfirmation, is_cancellation_reply, is_confirmation_reply
from gymzy_agent.shell.streaming import AbortSignal

console = Console()


def _parse_json_arg(s: Optional[str]) -> Optional[Dict[str, Any]]:
    if not s:
        return None
    try:
        value = json.loads(s)
    except json.JSONDecodeError:
        console.print(f"[yellow]Ignoring invalid JSON: {s}[/yellow]")
        return None
    return value if isinstance(value, dict) else None


def print_help() -> None:
    console.print("\n[bold]Commands[/bold]")
    console.print("- /volumes {json}   set muscle volumes, e.g. {\"chest\": 1200, \"back\": 150}")
    console.print("- /level <beginner|intermediate|advanced>")
    console.print("- /clear            forget the conversation")
    console.print("- confirm / cancel  answer a pending confirmation")
    console.print("- exit\n")


async def _run_turn(agent, user_id: str, text: str, session: ConversationSession,
                    volumes: Dict[str, float], preferences: Dict[str, Any]):
    abort = AbortSignal()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, abort.abort, "interrupted")
    except (NotImplementedError, RuntimeError):
        pass

    def on_chunk(chunk: str) -> None:
        console.print(chunk, end="", markup=False, highlight=False, soft_wrap=True)

    try:
        return await agent.process_turn(
            user_id, text, on_chunk=on_chunk, abort_signal=abort,
            session=session, muscle_volumes=volumes, preferences=preferences,
        )
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def main() -> int:
    parser = argparse.ArgumentParser(description="Gymzy coach chat (local)")
    parser.add_argument("--user-id", default=None, help="User id sent to the domain services")
    parser.add_argument("--volumes", default=None, help="Muscle volume map as JSON")
    parser.add_argument("--level", default="beginner", choices=["beginner", "intermediate", "advanced"])
    parser.add_argument("--verbose", action="store_true", help="Show agent logs")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    console.print(Panel("🏋️ Gymzy Coach Chat (Local)", style="bold magenta"))
    user_id = args.user_id or Prompt.ask("Enter your user ID", default="local-user")
    volumes: Dict[str, float] = _parse_json_arg(args.volumes) or {}
    preferences: Dict[str, Any] = {"fitness_level": args.level}

    agent = create_coach_agent()
    session = ConversationSession(user_id=user_id)
    pending: Optional[PendingConfirmation] = None
    loop = asyncio.new_event_loop()

    console.print(f"[dim]Session: {session.session_id}[/dim]")
    console.print("Type '/help' for commands. Type 'exit' to quit.\n")

    while True:
        try:
            raw = Prompt.ask("[green]You[/green]")
        except (KeyboardInterrupt, EOFError):
            break
        text = (raw or "").strip()
        if not text:
            continue
        lower = text.lower()
        if lower == "exit":
            break
        if lower == "/help":
            print_help()
            continue
        if lower == "/clear":
            session.clear()
            console.print("[dim]Conversation cleared[/dim]")
            continue
        if lower.startswith("/volumes"):
            volumes = _parse_json_arg(text[len("/volumes"):].strip()) or {}
            console.print(f"[dim]Volumes: {volumes}[/dim]")
            continue
        if lower.startswith("/level"):
            level = text[len("/level"):].strip().lower()
            if level in ("beginner", "intermediate", "advanced"):
                preferences["fitness_level"] = level
            console.print(f"[dim]Level: {preferences['fitness_level']}[/dim]")
            continue

        if pending is not None:
            if is_confirmation_reply(text):
                outcome = agent.confirm_action(pending)
                style = "green" if outcome.success else "red"
                console.print(f"[{style}]{outcome.message}[/{style}]\n")
                pending = None
                continue
            if is_cancellation_reply(text):
                agent.cancel_action(pending)
                console.print("[dim]Cancelled.[/dim]\n")
                pending = None
                continue

        console.print("[bold cyan]Coach[/bold cyan]: ", end="")
        result = loop.run_until_complete(_run_turn(agent, user_id, text, session, volumes, preferences))
        console.print()

        if result.aborted:
            console.print("[yellow](stopped)[/yellow]\n")
            continue
        if result.requires_confirmation:
            pending = result.pending_confirmation
            console.print("[yellow]Reply 'confirm' or 'cancel'.[/yellow]")
        if result.navigation_target:
            console.print(f"[dim]→ {result.navigation_target}[/dim]")
        if result.workout_data:
            console.print(f"[dim]{result.workout_data['name']} · {len(result.workout_data['exercises'])} exercises"
                          f" · confidence {result.confidence:.2f}[/dim]")
        console.print()

    loop.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
