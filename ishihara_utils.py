"""
ishihara_utils.py

Small helpers shared by the plate generator, the steganography codec and the
CLI: step announcements, validation and image-array normalisation.
"""

from __future__ import annotations
from typing import Any, Dict

import cv2
import numpy as np


def announce(step: str, inputs: Dict[str, Any]):
    """
    Log a structured event to stdout for debugging and automation.
    State the step and its minimal inputs before significant calls.
    """
    print(f"[STEP] {step} | inputs: " + ", ".join(f"{k}={v}" for k, v in inputs.items()))

def ensure_bool(cond: bool, msg: str):
    if not cond:
        raise RuntimeError(msg)


# =========================
# Array <-> RGBA helpers
# =========================
def to_rgba(img: np.ndarray, premultiply: bool = False) -> np.ndarray:
    """
    Return ``img`` as an (H, W, 4) uint8 RGBA array.

    Grayscale and RGB inputs get an opaque alpha channel. When ``premultiply``
    is set, RGBA colour channels are scaled by alpha so transparent pixels
    read as black.
    """
    arr = np.asarray(img)
    if arr.ndim == 2:
        arr = np.repeat(arr[:, :, None], 3, axis=2)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"Unsupported image shape: {arr.shape}")
    arr = arr.astype(np.uint8, copy=False)
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        return np.concatenate([arr, alpha], axis=2)

    out = arr.copy()
    if premultiply:
        a = out[:, :, 3:4].astype(np.uint32)
        out[:, :, :3] = (out[:, :, :3].astype(np.uint32) * a // 255).astype(np.uint8)
    return out

def read_rgba(path: str) -> np.ndarray:
    """Load an image file as an RGBA array (alpha kept when present)."""
    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    ensure_bool(img is not None, f"Image loading failed for path: {path}")
    if img.dtype != np.uint8:
        # 16-bit PNGs: keep the high byte
        img = (img >> 8).astype(np.uint8)
    if img.ndim == 2:
        return to_rgba(img)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    return to_rgba(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))

def write_rgba(path: str, rgba: np.ndarray) -> None:
    ok = cv2.imwrite(path, cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))
    ensure_bool(ok, f"Failed to save image: {path}")
