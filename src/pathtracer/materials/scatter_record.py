"""Scatter record returned by material scattering.

A scatter either continues the path along one fixed direction
(``skip_pdf``, used by specular materials) or hands the integrator a
density record to sample the continuation from, which the integrator then
mixes with light sampling.
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.pdf import Pdf, make_sphere_pdf

vec3 = tm.vec3


@ti.dataclass
class ScatterRecord:
    """Outcome of a scatter event.

    Attributes:
        did_scatter: 1 if the path continues, 0 if the ray was absorbed.
        attenuation: Color the continuation's radiance is multiplied by.
        skip_pdf: 1 if the continuation direction is fixed.
        skip_pdf_direction: The fixed continuation direction.
        pdf: Density to sample the continuation from when skip_pdf == 0.
    """

    did_scatter: ti.i32
    attenuation: vec3
    skip_pdf: ti.i32
    skip_pdf_direction: vec3
    pdf: Pdf


@ti.func
def make_absorbed_record() -> ScatterRecord:
    """Create a ScatterRecord for an absorbed ray."""
    return ScatterRecord(
        did_scatter=0,
        attenuation=vec3(0.0, 0.0, 0.0),
        skip_pdf=0,
        skip_pdf_direction=vec3(0.0, 0.0, 0.0),
        pdf=make_sphere_pdf(),
    )


@ti.func
def make_specular_record(attenuation: vec3, direction: vec3) -> ScatterRecord:
    """Create a ScatterRecord continuing along a fixed direction."""
    return ScatterRecord(
        did_scatter=1,
        attenuation=attenuation,
        skip_pdf=1,
        skip_pdf_direction=direction,
        pdf=make_sphere_pdf(),
    )


@ti.func
def make_pdf_record(attenuation: vec3, pdf: Pdf) -> ScatterRecord:
    """Create a ScatterRecord whose continuation is sampled from ``pdf``."""
    return ScatterRecord(
        did_scatter=1,
        attenuation=attenuation,
        skip_pdf=0,
        skip_pdf_direction=vec3(0.0, 0.0, 0.0),
        pdf=pdf,
    )
