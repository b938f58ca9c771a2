"""Deterministic fake coding agent for run-loop integration tests."""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

from ody.orchestrator.stream import COMPLETION_MARKER


def _bump_counter(path: Path) -> int:
    count = int(path.read_text("utf-8")) if path.exists() else 0
    count += 1
    path.write_text(str(count), "utf-8")
    return count


def _write(stream, text: str, delay: float) -> None:
    stream.write(text)
    stream.flush()
    if delay:
        time.sleep(delay)


def main(argv: list[str] | None = None) -> int:
    """Print some output, optionally the completion marker, then exit."""

    parser = argparse.ArgumentParser(allow_abbrev=False)
    parser.add_argument("--counter-file", help="Call counter shared across runs.")
    parser.add_argument(
        "--complete-on",
        type=int,
        default=0,
        help="Emit the completion marker on this call number (0 = never).",
    )
    parser.add_argument("--split-marker", action="store_true")
    parser.add_argument("--stderr", default="")
    parser.add_argument("--exit-code", type=int, default=0)
    parser.add_argument(
        "--hang-after-marker",
        type=float,
        default=0.0,
        help="Seconds to keep running after the marker was printed.",
    )
    parser.add_argument(
        "--linger-child",
        type=float,
        default=0.0,
        help="Start a child that inherits stdout and sleeps this many seconds.",
    )
    parser.add_argument("--delay", type=float, default=0.05)
    parser.add_argument("payload", nargs="*")
    # backend CLIs pass their own flags through; keep only the ones declared here
    args, _ = parser.parse_known_args(argv)

    call = _bump_counter(Path(args.counter_file)) if args.counter_file else 1
    if args.linger_child:
        subprocess.Popen(  # noqa: S603
            [sys.executable, "-c", f"import time; time.sleep({args.linger_child})"],
        )
    out = sys.stdout
    _write(out, f"echo-agent call {call}\n", args.delay)
    # the prompt itself mentions the marker, so never echo it
    _write(out, f"received {len(args.payload)} positional argument(s)\n", args.delay)
    if args.stderr:
        _write(sys.stderr, args.stderr + "\n", args.delay)

    if args.complete_on and call >= args.complete_on:
        if args.split_marker:
            half = len(COMPLETION_MARKER) // 2
            _write(out, "done " + COMPLETION_MARKER[:half], args.delay)
            _write(out, COMPLETION_MARKER[half:] + "\n", args.delay)
        else:
            _write(out, COMPLETION_MARKER + "\n", args.delay)
        if args.hang_after_marker:
            time.sleep(args.hang_after_marker)
    return args.exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
