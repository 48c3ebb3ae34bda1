#!/usr/bin/env python3

"""
ishihara_cli.py

CLI for generating Ishihara colour-vision plates and for hiding/recovering
data in PNG images.

Typical usage:
    $ ishihara-tool ishihara 3a6a2f,76cd63 a32222,db5f5f mask.png red_green.png
    $ ishihara-tool ishihara - - mask.png plate.png --config config.yaml --seed 7
    $ ishihara-tool hide src.jpeg secret.dat img.png
    $ ishihara-tool find img.png --output secret.dat

Every command prints a JSON summary to stdout (``--pretty`` to indent). On
failure the summary is ``{"error": "..."}`` and the exit status is 1.

The public entry point is :func:`main`.
"""

from __future__ import annotations
import argparse, json, os
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from ishihara_plate import IshiharaPlate, PlateConfig, parse_hex, parse_palette
from ishihara_stego import capacity, find_data, hide_data
from ishihara_utils import announce, ensure_bool, read_rgba, write_rgba

# =========================
# Configurable constants
# =========================
OUTPUT_SUFFIX = ".png"
FROM_CONFIG = "-"                     # palette argument meaning "read from --config"

EXAMPLES = """\
examples:
  create a red green colorblind test image
    $ ishihara-tool ishihara 3a6a2f,76cd63 a32222,db5f5f mask.png red_green.png

  hide data from 'secret.dat' in 'img.png'
    $ ishihara-tool hide src.jpeg secret.dat img.png

  find hidden data inside 'img.png'
    $ ishihara-tool find img.png
"""


# =========================
# Config
# =========================
def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Read the YAML config; a missing path yields an empty config."""
    if not path:
        return {}
    with open(path, "r") as f:
        cfg = yaml.safe_load(f)
    if cfg is None:
        return {}
    ensure_bool(isinstance(cfg, dict), f"Config root must be a mapping: {path}")
    return cfg

def _palette(arg: str, cfg: Dict[str, Any], key: str) -> List[tuple]:
    if arg != FROM_CONFIG:
        return parse_palette(arg)
    entries = cfg.get(key)
    if not entries:
        raise ValueError(f"Palette '-' requires '{key}' in the config file.")
    return [parse_hex(str(e)) for e in entries]

def _require_png(path: str, what: str) -> None:
    if not path.lower().endswith(OUTPUT_SUFFIX):
        raise ValueError(f"png is the only supported {what} image format")


# =========================
# Commands
# =========================
def run_ishihara(args: argparse.Namespace) -> Dict[str, Any]:
    _require_png(args.output, "output")
    cfg = load_config(args.config)
    primary = _palette(args.primary, cfg, "primary_colors")
    secondary = _palette(args.secondary, cfg, "secondary_colors")
    plate_cfg = PlateConfig.from_dict(cfg)
    seed = args.seed if args.seed is not None else cfg.get("seed")
    rng = np.random.default_rng(seed)

    announce("LOAD_MASK", {"path": args.mask})
    mask = read_rgba(args.mask)
    print("[OK] Mask loaded.")

    plate = IshiharaPlate.generate(mask, rng=rng, config=plate_cfg)
    img = plate.render(primary, secondary, rng=rng)

    out_dir = os.path.dirname(args.output)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    announce("SAVE_PLATE", {"path": args.output, "size": plate_cfg.canvas_size})
    write_rgba(args.output, img)
    print("[OK] Plate saved.")

    return {
        "output": args.output,
        "image_size": plate_cfg.canvas_size,
        "circles": len(plate.circles),
        "circle_size_counts": plate.circle_summary(),
        "primary_colors": primary,
        "secondary_colors": secondary,
        "seed": seed,
    }

def run_hide(args: argparse.Namespace) -> Dict[str, Any]:
    _require_png(args.output, "output")
    announce("LOAD_IMAGE", {"path": args.input})
    pixels = read_rgba(args.input)

    with open(args.data, "rb") as f:
        data = f.read()

    announce("HIDE_DATA", {"bytes": len(data), "capacity": capacity(pixels)})
    hide_data(data, pixels)

    write_rgba(args.output, pixels)
    print(f"[OK] Data hidden in {args.output}")
    return {"output": args.output, "bytes": len(data)}

def run_find(args: argparse.Namespace) -> Dict[str, Any]:
    _require_png(args.image, "input")
    announce("LOAD_IMAGE", {"path": args.image})
    pixels = read_rgba(args.image)

    data = find_data(pixels)
    result: Dict[str, Any] = {"bytes": len(data)}
    if args.output:
        with open(args.output, "wb") as f:
            f.write(data)
        result["output"] = args.output
    else:
        result["data"] = data.decode("utf-8", errors="replace")
    print(f"[OK] Found {len(data)} hidden bytes.")
    return result


# =========================
# CLI
# =========================
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ishihara-tool",
        description="Ishihara plate generation and PNG steganography.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
    sub = p.add_subparsers(dest="command", required=True)

    ish = sub.add_parser("ishihara", help="create an ishihara image using the given color palettes and mask image")
    ish.add_argument("primary", help="Comma separated hex colors for background dots, or '-' to use the config.")
    ish.add_argument("secondary", help="Comma separated hex colors for mask dots, or '-' to use the config.")
    ish.add_argument("mask", help="Mask image; black pixels mark the hidden shape.")
    ish.add_argument("output", help="Output PNG path.")
    ish.add_argument("--config", help="Path to YAML config file (e.g., config.yaml).")
    ish.add_argument("--seed", type=int, help="Random seed for reproducible plates.")
    ish.set_defaults(func=run_ishihara)

    hide = sub.add_parser("hide", help="hide data inside an image using steganography")
    hide.add_argument("input", help="Source image.")
    hide.add_argument("data", help="File whose bytes are hidden.")
    hide.add_argument("output", help="Output PNG path.")
    hide.set_defaults(func=run_hide)

    find = sub.add_parser("find", help="find data hidden inside an image")
    find.add_argument("image", help="PNG image written by 'hide'.")
    find.add_argument("--output", help="Write recovered bytes here instead of the JSON summary.")
    find.set_defaults(func=run_find)
    return p

def tuplify(o):
    """Convert tuples to lists for JSON printing."""
    if isinstance(o, tuple):
        return [tuplify(v) for v in o]
    if isinstance(o, list):
        return [tuplify(v) for v in o]
    if isinstance(o, dict):
        return {k: tuplify(v) for k, v in o.items()}
    return o

def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the command-line interface.

    Parses arguments, dispatches to the sub-command and prints its JSON
    summary. Returns the process exit status.
    """
    args = build_parser().parse_args(argv)
    try:
        result = args.func(args)
        code = 0
    except Exception as e:
        # Any caught error returns the single-key error structure
        result = {"error": str(e)}
        code = 1
    print(json.dumps(tuplify(result), indent=2 if args.pretty else None))
    return code


if __name__ == "__main__":
    raise SystemExit(main())
