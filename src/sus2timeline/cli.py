from __future__ import annotations
import argparse, logging, pathlib, sys
from . import process, write
from .config import load_config, get_ticks_per_beat
from .timeline import SongTimeline, SlideNote
from .watch import watch_chart

def _convert(in_path: pathlib.Path, args, cfg) -> SongTimeline:
    timeline = process.read_sus(in_path, cfg)
    export = cfg.get("export") or {}
    wrote_anything = False

    # 1) JSON (default) unless switched off
    if not args.no_json:
        out_path = pathlib.Path(args.json).expanduser().resolve() if args.json else in_path.with_suffix(".json")
        write.write_json(timeline, out_path, indent=int(export.get("indent", 2)))
        print(f"[cli] json      -> {out_path}")
        wrote_anything = True

    # 2) MIDI preview (conductor + notes)
    if args.midi:
        midi_path = pathlib.Path(args.midi).expanduser().resolve()
        write.write_midi(timeline, midi_path, **write.export_options(cfg))
        print(f"[cli] midi      -> {midi_path}")
        wrote_anything = True

    # 3) conductor only
    if args.conductor_out:
        cond_path = pathlib.Path(args.conductor_out).expanduser().resolve()
        write.write_conductor_only(timeline, cond_path, get_ticks_per_beat(cfg))
        print(f"[cli] conductor -> {cond_path}")
        wrote_anything = True

    if not wrote_anything:
        print("[cli] WARNING: no output produced (use --json, --midi, --conductor-out or omit --no-json).")

    n_slides = sum(1 for n in timeline.notes if isinstance(n, SlideNote))
    print(f"[cli] Done. notes={len(timeline.notes)} slides={n_slides} "
          f"bpm_changes={len(timeline.bpm_changes)} time_signatures={len(timeline.beat_per_measure_changes)}")
    return timeline

def main(argv=None):
    p = argparse.ArgumentParser(description="SUS chart -> resolved song timeline")
    p.add_argument("--in", dest="infile", required=True, help="Input chart (.sus)")
    p.add_argument("--json", dest="json", default=None, help="Output JSON timeline (default: <input>.json)")
    p.add_argument("--no-json", action="store_true", help="Do not write the JSON timeline")
    p.add_argument("--midi", dest="midi", default=None, help="Write a MIDI preview (tempo map + notes)")
    p.add_argument("--conductor-out", dest="conductor_out", default=None, help="Write a conductor-only MIDI (tempo/time signatures)")
    p.add_argument("--config", dest="config", default=None, help="YAML config (defaults applied if omitted)")
    p.add_argument("--watch", action="store_true", help="Re-run whenever the input file changes")
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")

    args = p.parse_args(argv)

    level = logging.WARNING if args.verbose == 0 else (logging.INFO if args.verbose == 1 else logging.DEBUG)
    logging.basicConfig(level=level, format="[%(name)s] %(levelname)s: %(message)s")

    in_path = pathlib.Path(args.infile).expanduser().resolve()
    if not in_path.exists():
        print(f"[cli] ERROR: Input not found: {in_path}", file=sys.stderr)
        sys.exit(1)

    cfg = load_config(args.config)
    print(f"[cli] infile = {in_path}")

    try:
        _convert(in_path, args, cfg)
    except (ValueError, OSError) as exc:
        print(f"[cli] ERROR: {exc}", file=sys.stderr)
        if not args.watch:
            sys.exit(2)

    if args.watch:
        def on_change():
            print(f"[cli] changed: {in_path}")
            try:
                _convert(in_path, args, cfg)
            except (ValueError, OSError) as exc:
                print(f"[cli] ERROR: {exc}", file=sys.stderr)

        debounce = float((cfg.get("watch") or {}).get("debounce_sec", 0.3))
        watch_chart(str(in_path), on_change, debounce_sec=debounce)

    return 0

if __name__ == "__main__":
    sys.exit(main())
