"""
Tanh-Sinh Row Formula

Closed forms for the abscissa, weight and abscissa complement of the
tanh-sinh transform at transform parameter t:

    x(t)  = tanh(pi/2 * sinh(t))
    w(t)  = (pi/2 * cosh(t)) / cosh(pi/2 * sinh(t))^2
    1 - x = 1 / (exp(u) * cosh(u)),  u = pi/2 * sinh(t)

All functions accept either a scalar or a whole grid (numpy array for
numpy types) of the given RealType.
"""

from .numeric import RealType


def abscissa_at_t(t, rt: RealType):
    """Abscissa ``tanh(pi/2 sinh t)``."""
    return rt.tanh(rt.half_pi * rt.sinh(t))


def weight_at_t(t, rt: RealType):
    """Unscaled quadrature weight ``dx/dt`` at ``t``."""
    cs = rt.cosh(rt.half_pi * rt.sinh(t))
    return rt.half_pi * rt.cosh(t) / (cs * cs)


def abscissa_complement_at_t(t, rt: RealType):
    """``1 - x(t)`` computed without cancellation."""
    u2 = rt.half_pi * rt.sinh(t)
    return rt.one / (rt.exp(u2) * rt.cosh(u2))


def t_from_abscissa_complement(xc, rt: RealType):
    """Invert :func:`abscissa_complement_at_t`.

    Args:
        xc: Target complement ``1 - x`` in (0, 1]
        rt: Numeric type profile

    Returns:
        Transform parameter t with ``abscissa_complement_at_t(t) == xc``
    """
    xc = rt.cast(xc)
    pi = rt.pi
    l = rt.log(rt.sqrt((2 - xc) / xc))
    return rt.log((rt.sqrt(4 * l * l + pi * pi) + 2 * l) / pi)
