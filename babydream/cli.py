from __future__ import annotations

import argparse
import json
import logging
import os
import time
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .audio import SAMPLE_RATE, write_wav
from .config import NapConfig, SleepEntry, parse_nap_config, parse_sleep_entries
from .errors import InputValidationError
from .logging_utils import configure_logging, log_exception
from .playback import PlaybackManager, resolve_backend
from .predictor import predict
from .schedule import compute_wake_windows
from .synth import SOUND_PROFILES, list_profiles, synthesize

_LOGGER = logging.getLogger("babydream.cli")
_CONSOLE = Console()
_POLL_SECONDS = 0.2


def _add_nap_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--naps", type=int, default=2, help="Naps per day.")
    parser.add_argument("--wake", type=str, default="07:00", help="Wake time (HH:MM).")
    parser.add_argument("--bedtime", type=str, default="19:30", help="Target bedtime (HH:MM).")
    parser.add_argument("--nap-minutes", type=int, default=60, help="Average nap length.")


def _nap_config(args: argparse.Namespace) -> NapConfig:
    return parse_nap_config(
        {
            "naps_per_day": args.naps,
            "wake_time": args.wake,
            "target_bedtime": args.bedtime,
            "avg_nap_duration_minutes": args.nap_minutes,
        }
    )


def _parse_when(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise InputValidationError(f"not an ISO timestamp: {value!r}") from exc


def _fmt(value: datetime | None) -> str:
    return value.strftime("%H:%M") if value else "--"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="babydream")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sounds", help="List the available soundscapes.")

    render = sub.add_parser("render", help="Render a soundscape loop to a wav file.")
    render.add_argument("sound", choices=sorted(SOUND_PROFILES), type=str)
    render.add_argument("--seconds", type=float, default=None)
    render.add_argument("--sample-rate", type=int, default=SAMPLE_RATE)
    render.add_argument("--output", type=str, default=None)

    play = sub.add_parser("play", help="Loop a soundscape until stopped or the timer ends.")
    play.add_argument("sound", choices=sorted(SOUND_PROFILES), type=str)
    play.add_argument("--gain", type=float, default=0.5)
    play.add_argument("--minutes", type=float, default=0.0, help="Auto-stop after N minutes.")
    play.add_argument("--backend", choices=["sounddevice", "silent"], default=None)

    windows = sub.add_parser("windows", help="Show the day's wake windows.")
    _add_nap_args(windows)

    forecast = sub.add_parser("predict", help="Forecast the next nap and bedtime.")
    _add_nap_args(forecast)
    forecast.add_argument("--entries", type=str, default=None, help="JSON list of sleep entries.")
    forecast.add_argument("--now", type=str, default=None, help="ISO timestamp to predict at.")
    forecast.add_argument("--asleep-since", type=str, default=None)
    return parser


def _cmd_sounds() -> int:
    table = Table(title="Soundscapes")
    table.add_column("key")
    table.add_column("name")
    table.add_column("loop (s)", justify="right")
    for profile in list_profiles():
        table.add_row(profile.key, profile.display_name, f"{profile.default_seconds:g}")
    _CONSOLE.print(table)
    return 0


def _cmd_render(args: argparse.Namespace) -> int:
    with _CONSOLE.status(f"Rendering {args.sound}"):
        buffer = synthesize(args.sound, args.sample_rate, args.seconds)
    path = write_wav(args.output or f"{args.sound}.wav", buffer)
    _CONSOLE.print(f"Wrote {path} ({buffer.duration:.2f}s, sr={buffer.sample_rate})")
    return 0


def _cmd_play(args: argparse.Namespace) -> int:
    backend = resolve_backend(args.backend)
    with PlaybackManager(backend, gain=args.gain, auto_stop_minutes=args.minutes) as manager:
        session = manager.start(args.sound)
        label = SOUND_PROFILES[session.key].display_name
        try:
            with _CONSOLE.status(f"Playing {label} (Ctrl-C to stop)") as status:
                while manager.state == "playing":
                    remaining = manager.remaining_seconds()
                    if remaining is not None:
                        status.update(f"Playing {label}, {remaining:.0f}s left")
                    time.sleep(_POLL_SECONDS)
        except KeyboardInterrupt:
            _LOGGER.info("Playback interrupted")
    return 0


def _cmd_windows(args: argparse.Namespace) -> int:
    schedule = compute_wake_windows(_nap_config(args))
    for index, minutes in enumerate(schedule):
        _CONSOLE.print(f"window {index + 1}: {minutes} min")
    _CONSOLE.print(
        f"awake {schedule.total_awake_minutes} min of a {schedule.day_window_minutes} min day"
    )
    return 0


def _cmd_predict(args: argparse.Namespace) -> int:
    config = _nap_config(args)
    entries: list[SleepEntry] = []
    if args.entries:
        payload = json.loads(Path(args.entries).read_text(encoding="utf-8"))
        entries = parse_sleep_entries(payload)
    snapshot = predict(
        config,
        entries,
        in_progress=_parse_when(args.asleep_since),
        now=_parse_when(args.now),
    )
    if snapshot.is_currently_asleep:
        _CONSOLE.print("Sleeping")
    else:
        _CONSOLE.print(f"Awake for {snapshot.minutes_awake} min")
    _CONSOLE.print(f"Naps: {snapshot.naps_done}/{snapshot.naps_per_day}")
    _CONSOLE.print(f"Next nap: {_fmt(snapshot.next_nap_time)} ({snapshot.next_nap_label})")
    _CONSOLE.print(f"Bedtime: {_fmt(snapshot.bedtime_time)} ({snapshot.bedtime_label})")
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)

        if args.command == "sounds":
            return _cmd_sounds()
        if args.command == "render":
            return _cmd_render(args)
        if args.command == "play":
            return _cmd_play(args)
        if args.command == "windows":
            return _cmd_windows(args)
        if args.command == "predict":
            return _cmd_predict(args)

        parser.print_help()
        return 1
    except Exception as exc:
        debug = bool(os.environ.get("BABYDREAM_DEBUG"))
        _LOGGER.warning("babydream CLI failed: %s", exc, exc_info=debug)
        log_exception("babydream CLI", exc)
        _CONSOLE.print(f"[bold red]Error:[/] {escape(str(exc))}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
