from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from layerplot import build, load_plot_config, save
from layerplot.theme import PRESETS

LOGGER = logging.getLogger("layerplot.cli")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="layerplot")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="WARNING")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render a TOML plot file to PNG or SVG.")
    render.add_argument("plot_file", type=Path)
    render.add_argument("-o", "--output", type=Path, default=None, help="Output path; the suffix picks the format.")
    render.add_argument("--width", type=int, default=None)
    render.add_argument("--height", type=int, default=None)

    inspect = sub.add_parser("inspect", help="Build a plot file and print its panels, scales and legends.")
    inspect.add_argument("plot_file", type=Path)

    sub.add_parser("presets", help="List theme presets.")
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "presets":
        for name in PRESETS:
            print(name)
        return 0

    try:
        config = load_plot_config(args.plot_file)
        if args.command == "render":
            output = args.output
            if output is None:
                output = Path(config.output) if config.output else args.plot_file.with_suffix(".png")
            written = save(
                config.scene,
                output,
                args.width if args.width is not None else config.width,
                args.height if args.height is not None else config.height,
            )
            print(f"wrote {written}")
            return 0
        if args.command == "inspect":
            print(json.dumps(_summary(config.scene), indent=2, sort_keys=True))
            return 0
    except (ValueError, FileNotFoundError) as exc:
        LOGGER.error("%s", exc)
        return 2
    raise RuntimeError(f"unsupported command: {args.command}")


def _summary(scene) -> dict:
    built = build(scene)
    return {
        "panels": [
            {"index": p.index, "row": p.row, "col": p.col, "label": p.label} for p in built.layout.panels
        ],
        "layout": {"nrow": built.layout.nrow, "ncol": built.layout.ncol},
        "layers": [layer.geom for layer in scene.layers],
        "x": {"limits": list(built.x_scale.limits), "transform": built.x_scale.transform},
        "y": {"limits": list(built.y_scale.limits), "transform": built.y_scale.transform},
        "scales": sorted(built.scales),
        "legends": [{"title": legend.title, "channels": list(legend.channels)} for legend in built.legends],
    }


if __name__ == "__main__":
    sys.exit(main())
