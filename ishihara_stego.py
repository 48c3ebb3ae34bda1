"""
ishihara_stego.py

Hide and recover byte data in the lowest bit of each channel byte of an RGBA
image.

Layout of the hidden bit stream (MSB first), one bit per channel byte of the
flattened (H, W, 4) pixel buffer:
  - 16 bits  MAGIC_NUMBER
  - 16 bits  payload length in bytes
  - 8 * len  payload
"""

from __future__ import annotations

import numpy as np

MAGIC_NUMBER = 0x1337
HEADER_BITS = 32
MAX_PAYLOAD = 0xFFFF


# =========================
# Bit helpers
# =========================
def from_uint16(value: int) -> np.ndarray:
    """16 MSB-first booleans for ``value``."""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"value must fit in 16 bits, got {value}")
    return from_bytes(int(value).to_bytes(2, "big"))

def to_uint16(bits) -> int:
    bits = np.asarray(bits, dtype=bool)
    if bits.size != 16:
        raise ValueError("len of bits must be exactly 16")
    return int.from_bytes(to_bytes(bits), "big")

def from_bytes(data: bytes) -> np.ndarray:
    """MSB-first booleans, eight per byte."""
    return np.unpackbits(np.frombuffer(bytes(data), dtype=np.uint8)).astype(bool)

def to_bytes(bits) -> bytes:
    bits = np.asarray(bits, dtype=bool)
    if bits.size % 8 != 0:
        raise ValueError("len of bits must be divisible by 8")
    return np.packbits(bits.astype(np.uint8)).tobytes()


# =========================
# Codec
# =========================
def capacity(pixels: np.ndarray) -> int:
    """Largest payload (bytes) that fits in ``pixels``."""
    return max(0, min(MAX_PAYLOAD, (pixels.size - HEADER_BITS) // 8))

def hide_data(data: bytes, pixels: np.ndarray) -> None:
    """Write ``data`` into the low bits of ``pixels`` (uint8 RGBA), in place."""
    if pixels.dtype != np.uint8:
        raise ValueError(f"pixels must be uint8, got {pixels.dtype}")
    if len(data) > MAX_PAYLOAD:
        raise ValueError(f"data is {len(data)} bytes; at most {MAX_PAYLOAD} can be hidden")
    stream = np.concatenate([
        from_uint16(MAGIC_NUMBER),
        from_uint16(len(data)),
        from_bytes(data),
    ]).astype(np.uint8)
    if stream.size > pixels.size:
        raise ValueError(f"data is {len(data)} bytes; image can hold {capacity(pixels)}")

    if not pixels.flags.c_contiguous:
        raise ValueError("pixels must be a C-contiguous array")

    flat = pixels.reshape(-1)
    n = stream.size
    flat[:n] = (flat[:n] & 0xFE) | stream

def find_data(pixels: np.ndarray) -> bytes:
    """Recover data written by :func:`hide_data`."""
    flat = np.asarray(pixels).reshape(-1)
    if flat.size < HEADER_BITS:
        raise ValueError("image is too small to hold hidden data")
    low = (flat & 0x01).astype(bool)

    if to_uint16(low[:16]) != MAGIC_NUMBER:
        raise ValueError("magic number does not match")

    length = to_uint16(low[16:32])
    end = HEADER_BITS + length * 8
    if end > low.size:
        raise ValueError(f"hidden data length {length} exceeds image capacity")
    return to_bytes(low[HEADER_BITS:end])
