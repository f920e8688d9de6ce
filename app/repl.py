# app/repl.py
from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any

from app.config import Settings, configure_logging
from Domain.errors import ConfigurationError
from Domain.models import DialogueSequence
from Infra.csv_content_reader import CSVContentReader
from Services.content_loader import load_response_table
from Services.idle_scheduler import IdleScheduler
from Services.timeout_policy import parse_tier

log = logging.getLogger(__name__)


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


# ----------------------------
# Pretty helpers
# ----------------------------

def _scheduler_summary(scheduler: IdleScheduler, tier: Any) -> str:
    st = scheduler.state
    return (
        "[state] "
        f"enabled={scheduler.enabled} "
        f"tier_setting={tier!r} "
        + json.dumps(st.to_dict(), ensure_ascii=False)
    )


# ----------------------------
# REPL
# ----------------------------

def main() -> None:
    settings = Settings()
    configure_logging(settings.debug)
    log.info("app_start %s", settings.redacted())

    print("Idle dialogue REPL")
    print("Commands: /quit  /help  /tier <name>  /fire  /state")
    print()

    prompt_str = "> "
    lock = threading.Lock()
    prompt_active = {"value": False}  # mutable box for cross-thread visibility
    tier_box = {"value": settings.idle_wait}
    stop = threading.Event()

    def ui_print(s: str) -> None:
        """
        Print without the input prompt prefix contaminating the output.
        """
        with lock:
            if prompt_active["value"]:
                print()
            print(s)
            if prompt_active["value"]:
                print(prompt_str, end="", flush=True)

    def say(seq: DialogueSequence) -> None:
        for unit in seq:
            ui_print(f"{settings.character_name} [{unit.expression}]: {unit.text}")

    reader = CSVContentReader(path=settings.content_path)
    table = load_response_table(reader, report=lambda msg: ui_print(f"[error] {msg}"))

    scheduler = IdleScheduler(
        table,
        tier_source=lambda: tier_box["value"],
        clock=SystemClock(),
        seed=settings.seed,
    )

    def show_help() -> None:
        ui_print("Commands:")
        ui_print("  /quit")
        ui_print("  /help")
        ui_print("  /tier <very short|short|regular|long|very long|off>")
        ui_print("  /fire           (trigger idle dialogue now)")
        ui_print("  /state          (print scheduler state)")

    def handle_command(line: str) -> None:
        s = line.strip()
        if not s:
            return
        parts = s.split(maxsplit=1)
        cmd = parts[0].lower()

        if cmd == "/quit":
            stop.set()
            return
        if cmd == "/help":
            show_help()
            return
        if cmd == "/state":
            ui_print(_scheduler_summary(scheduler, tier_box["value"]))
            return
        if cmd == "/fire":
            if not scheduler.fire():
                ui_print("[repl] idle is off or has no content")
            return
        if cmd == "/tier":
            if len(parts) < 2:
                ui_print(f"[repl] tier={tier_box['value']!r}")
                return
            try:
                tier = parse_tier(parts[1])
            except ConfigurationError as e:
                ui_print(f"[repl] {e}")
                return
            tier_box["value"] = tier.value
            ui_print(f"[repl] tier={tier.value!r}")
            return

        ui_print(f"[repl] Unknown command: {s}")

    def engine_loop() -> None:
        while not stop.is_set():
            scheduler.tick()
            stop.wait(settings.tick_interval)

    def display_loop() -> None:
        while not stop.is_set():
            seq = scheduler.drain()
            if seq is not None:
                say(seq)
            time.sleep(settings.frame_interval)

    engine = threading.Thread(target=engine_loop, daemon=True)
    display = threading.Thread(target=display_loop, daemon=True)
    engine.start()
    display.start()

    try:
        while not stop.is_set():
            # set prompt_active before input() so ui_print can redraw cleanly
            with lock:
                prompt_active["value"] = True
            try:
                line = input(prompt_str)
            except EOFError:
                stop.set()
                break
            finally:
                with lock:
                    prompt_active["value"] = False

            handle_command(line)
    except KeyboardInterrupt:
        stop.set()
    finally:
        stop.set()
        engine.join(timeout=1.0)
        display.join(timeout=1.0)
        ui_print("Bye.")


if __name__ == "__main__":
    main()
