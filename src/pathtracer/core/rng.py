"""Explicit per-pixel random number streams for Taichi kernels.

Every pixel of a render owns one stream, addressed by its linear index
``j * width + i``. A stream is a 32-bit LCG state with a PCG output
permutation, stored in a Taichi field so that sampling routines can advance
it from inside ``@ti.func`` code.

Because each pixel only ever touches its own stream, a render seeded with a
fixed value produces the same image no matter how the parallel loop is
scheduled across worker threads.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.rng import random_float, seed_streams
    >>> seed_streams(seed=7, count=16)
    >>> # Inside a kernel: x = random_float(stream)
"""

import taichi as ti

# One stream per pixel of the largest supported image
MAX_STREAMS = 2048 * 2048

# LCG step (multiplier = 1 mod 4, odd increment: full period mod 2^32)
_LCG_MULTIPLIER = 747796405
_LCG_INCREMENT = 1013904223

# PCG RXS-M-XS output multiplier
_OUTPUT_MULTIPLIER = 277803737

# 2^-24, maps the top 24 bits of a word to [0, 1)
_INV_2_24 = 1.0 / 16777216.0

_rng_state = ti.field(dtype=ti.u32, shape=MAX_STREAMS)


@ti.func
def _permute(state: ti.u32) -> ti.u32:
    """PCG RXS-M-XS output permutation of a 32-bit state."""
    shift = (state >> ti.cast(28, ti.u32)) + ti.cast(4, ti.u32)
    word = ((state >> shift) ^ state) * ti.cast(_OUTPUT_MULTIPLIER, ti.u32)
    return (word >> ti.cast(22, ti.u32)) ^ word


@ti.func
def _advance(state: ti.u32) -> ti.u32:
    return state * ti.cast(_LCG_MULTIPLIER, ti.u32) + ti.cast(_LCG_INCREMENT, ti.u32)


@ti.func
def hash_u32(x: ti.u32) -> ti.u32:
    """Hash a 32-bit integer into a well-mixed 32-bit integer."""
    return _permute(_advance(x))


@ti.func
def seed_stream(stream: ti.i32, seed: ti.u32):
    """Reset one stream to a state derived from ``seed`` and its index.

    Args:
        stream: Stream index in [0, MAX_STREAMS).
        seed: Render-wide seed.
    """
    _rng_state[stream] = hash_u32(ti.cast(stream, ti.u32) ^ hash_u32(seed))


@ti.func
def random_u32(stream: ti.i32) -> ti.u32:
    """Advance a stream and return the next 32-bit output."""
    state = _advance(_rng_state[stream])
    _rng_state[stream] = state
    return _permute(state)


@ti.func
def random_float(stream: ti.i32) -> ti.f32:
    """Return a uniform float in [0, 1) drawn from ``stream``."""
    return ti.cast(random_u32(stream) >> ti.cast(8, ti.u32), ti.f32) * _INV_2_24


@ti.kernel
def _seed_streams(seed: ti.u32, offset: ti.i32, count: ti.i32):
    for k in range(offset, offset + count):
        seed_stream(k, seed)


def seed_streams(seed: int, count: int, offset: int = 0) -> None:
    """Seed ``count`` consecutive streams starting at ``offset``.

    Renders seed their own pixel streams; this is for callers that drive
    sampling routines directly (tests, tools).

    Args:
        seed: Seed value, reduced modulo 2^32.
        count: Number of streams to seed.
        offset: First stream index.

    Raises:
        ValueError: If the range falls outside [0, MAX_STREAMS).
    """
    if offset < 0 or count < 0 or offset + count > MAX_STREAMS:
        raise ValueError(
            f"Stream range [{offset}, {offset + count}) is outside [0, {MAX_STREAMS})"
        )
    _seed_streams(seed & 0xFFFFFFFF, offset, count)
