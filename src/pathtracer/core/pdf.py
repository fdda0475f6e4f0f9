"""Probability densities over directions.

A density record knows how to evaluate its value for a direction and how to
generate a direction distributed accordingly. Three kinds exist:

    SPHERE:  uniform over all directions, value 1 / (4 pi)
    COSINE:  cosine-weighted around an axis, value max(0, cos theta) / pi
    LIGHTS:  toward the scene's light list from an origin point

A mixture combines two records with equal weight: its value is the mean of
the component values and it generates from each component half of the time.
The integrator mixes the light density with the material's own density so
that paths find small bright lights without losing the material's lobe.

Example:
    >>> # Inside a Taichi function:
    >>> # mixture = MixturePdf(first=make_lights_pdf(p), second=make_cosine_pdf(n))
    >>> # direction = mixture_generate(mixture, stream)
    >>> # density = mixture_value(mixture, direction)
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.core.onb import build_onb, onb_transform
from pathtracer.core.ray import random_cosine_direction, random_unit_vector
from pathtracer.core.rng import random_float
from pathtracer.scene.instances import lights_pdf_value, lights_random

vec3 = tm.vec3


class PdfKind(IntEnum):
    """Kind of a density record."""

    SPHERE = 0
    COSINE = 1
    LIGHTS = 2


@ti.dataclass
class Pdf:
    """A density record.

    Attributes:
        kind: PdfKind value.
        origin: Point the LIGHTS density samples from.
        axis: Unit axis of the COSINE density (the surface normal).
    """

    kind: ti.i32
    origin: vec3
    axis: vec3


@ti.dataclass
class MixturePdf:
    """Equal-weight mixture of two density records."""

    first: Pdf
    second: Pdf


@ti.func
def make_sphere_pdf() -> Pdf:
    return Pdf(kind=int(PdfKind.SPHERE), origin=vec3(0.0, 0.0, 0.0), axis=vec3(0.0, 0.0, 1.0))


@ti.func
def make_cosine_pdf(normal: vec3) -> Pdf:
    return Pdf(kind=int(PdfKind.COSINE), origin=vec3(0.0, 0.0, 0.0), axis=tm.normalize(normal))


@ti.func
def make_lights_pdf(origin: vec3) -> Pdf:
    return Pdf(kind=int(PdfKind.LIGHTS), origin=origin, axis=vec3(0.0, 0.0, 1.0))


@ti.func
def pdf_value(pdf: Pdf, direction: vec3) -> ti.f32:
    """Density of ``direction`` (need not be unit length) under ``pdf``."""
    value = 0.0
    if pdf.kind == int(PdfKind.SPHERE):
        value = 1.0 / (4.0 * tm.pi)
    elif pdf.kind == int(PdfKind.COSINE):
        cosine_theta = tm.dot(tm.normalize(direction), pdf.axis)
        value = tm.max(0.0, cosine_theta) / tm.pi
    else:
        value = lights_pdf_value(pdf.origin, direction)
    return value


@ti.func
def pdf_generate(pdf: Pdf, stream: ti.i32) -> vec3:
    """Generate a direction distributed according to ``pdf``."""
    direction = vec3(1.0, 0.0, 0.0)
    if pdf.kind == int(PdfKind.SPHERE):
        direction = random_unit_vector(stream)
    elif pdf.kind == int(PdfKind.COSINE):
        axis0, axis1, axis2 = build_onb(pdf.axis)
        direction = onb_transform(random_cosine_direction(stream), axis0, axis1, axis2)
    else:
        direction = lights_random(pdf.origin, stream)
    return direction


@ti.func
def mixture_value(mixture: MixturePdf, direction: vec3) -> ti.f32:
    """Mean of the two component densities."""
    return 0.5 * pdf_value(mixture.first, direction) + 0.5 * pdf_value(mixture.second, direction)


@ti.func
def mixture_generate(mixture: MixturePdf, stream: ti.i32) -> vec3:
    """Generate from either component with probability 1/2."""
    direction = vec3(1.0, 0.0, 0.0)
    if random_float(stream) < 0.5:
        direction = pdf_generate(mixture.first, stream)
    else:
        direction = pdf_generate(mixture.second, stream)
    return direction
