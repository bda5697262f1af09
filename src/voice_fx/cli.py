"""Command-line interface for voice-fx."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from pydantic import ValidationError

from voice_fx import settings
from voice_fx.catalog import build_effect, get_effect, list_effects
from voice_fx.models import clamp_intensity
from voice_fx.visualize import graph_to_dot, graph_to_dot_file


def _default_output(effect: str) -> Path:
    return Path(f"voice-effect-{effect}-{int(time.time() * 1000)}.wav")


def _check_effect(effect: str) -> bool:
    if get_effect(effect) is None:
        print(f"warning: unknown effect '{effect}', using pass-through", file=sys.stderr)
        return False
    return True


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_list(args: argparse.Namespace) -> int:
    for info in list_effects():
        print(f"{info.id.value:<12} {info.name:<12} {info.description}")
    return 0


def _cmd_graph(args: argparse.Namespace) -> int:
    _check_effect(args.effect)
    graph = build_effect(args.effect, args.intensity)
    sys.stdout.write(graph.model_dump_json(indent=2) + "\n")
    return 0


def _cmd_dot(args: argparse.Namespace) -> int:
    _check_effect(args.effect)
    graph = build_effect(args.effect, args.intensity)
    if args.output:
        path = graph_to_dot_file(graph, args.output)
        print(f"wrote {path}")
    else:
        sys.stdout.write(graph_to_dot(graph))
    return 0


def _cmd_render(args: argparse.Namespace) -> int:
    from voice_fx.render import render_file

    _check_effect(args.effect)
    output = Path(args.output) if args.output else _default_output(args.effect)
    path = render_file(args.input, output, args.effect, args.intensity)
    print(f"wrote {path} ({args.effect} at {clamp_intensity(args.intensity)}%)")
    return 0


def _cmd_preview(args: argparse.Namespace) -> int:
    from voice_fx.monitor import LiveMonitor

    _check_effect(args.effect)
    monitor = LiveMonitor(
        args.effect, args.intensity, sample_rate=args.sample_rate, channels=args.channels
    )
    with monitor:
        print("Speak into your microphone to hear the effect (Ctrl-C to stop)")
        _wait(args.duration)
    return 0


def _cmd_record(args: argparse.Namespace) -> int:
    from voice_fx.monitor import LiveMonitor
    from voice_fx.render import export_recording
    from voice_fx.wav import encode_wav

    _check_effect(args.effect)
    monitor = LiveMonitor(
        args.effect,
        args.intensity,
        sample_rate=args.sample_rate,
        channels=args.channels,
        record=True,
    )
    monitor.start()
    try:
        print("Recording... (Ctrl-C to stop)")
        _wait(args.duration)
    finally:
        captured = monitor.stop()

    if captured is None:  # pragma: no cover
        return 1
    output = Path(args.output) if args.output else _default_output(args.effect)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(export_recording(encode_wav(captured), args.effect, args.intensity))
    print(f"wrote {output} ({captured.duration:.2f}s)")
    return 0


def _wait(duration: float | None) -> None:
    try:
        if duration is not None:
            time.sleep(duration)
        else:
            while True:
                time.sleep(0.1)
    except KeyboardInterrupt:
        pass


def main(argv: list[str] | None = None) -> int:
    """Entry point for the voice-fx CLI."""
    parser = argparse.ArgumentParser(
        prog="voice-fx",
        description="Apply voice effects live or to recordings.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    def effect_args(p: argparse.ArgumentParser, positional: bool = False) -> None:
        if positional:
            p.add_argument("effect", help="Effect ID (see 'list')")
        else:
            p.add_argument(
                "-e", "--effect", default=settings.DEFAULT_EFFECT, help="Effect ID (see 'list')"
            )
        p.add_argument(
            "-i",
            "--intensity",
            type=float,
            default=settings.DEFAULT_INTENSITY,
            help="Effect amount 0-100",
        )

    # list
    sub.add_parser("list", help="List available effects")

    # graph
    p_graph = sub.add_parser("graph", help="Print an effect topology as JSON")
    effect_args(p_graph, positional=True)

    # dot
    p_dot = sub.add_parser("dot", help="Generate DOT visualization of an effect")
    effect_args(p_dot, positional=True)
    p_dot.add_argument("-o", "--output", help="Output directory")

    # render
    p_render = sub.add_parser("render", help="Apply an effect to an audio file")
    p_render.add_argument("input", help="Recorded audio file")
    effect_args(p_render)
    p_render.add_argument("-o", "--output", help="Output WAV file")

    # preview / record
    for name, help_text in (
        ("preview", "Monitor the microphone through an effect"),
        ("record", "Record the microphone and export it with an effect"),
    ):
        p = sub.add_parser(name, help=help_text)
        effect_args(p)
        p.add_argument("-d", "--duration", type=float, help="Stop after N seconds")
        p.add_argument("--sample-rate", type=int, help="Device sample rate")
        p.add_argument("--channels", type=int, help="Capture channels")
        if name == "record":
            p.add_argument("-o", "--output", help="Output WAV file")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help(sys.stderr)
        return 1

    try:
        if args.command == "list":
            return _cmd_list(args)
        elif args.command == "graph":
            return _cmd_graph(args)
        elif args.command == "dot":
            return _cmd_dot(args)
        elif args.command == "render":
            return _cmd_render(args)
        elif args.command == "preview":
            return _cmd_preview(args)
        elif args.command == "record":
            return _cmd_record(args)
    except FileNotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"error: invalid graph: {e}", file=sys.stderr)
        return 1
    except RuntimeError as e:
        # DeviceUnavailableError lands here
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0  # pragma: no cover


if __name__ == "__main__":
    sys.exit(main())
