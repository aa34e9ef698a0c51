#
# Saturating, checked and strict numeric conversions
#
# (c) The satcast authors 2026.  All rights reserved.
#

import logging
from itertools import product
from math import isfinite

from .binary import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, to_integral
from .limits import INTEGER_TYPES, int32, numeric_type
from .ranges import range_check_for, resolve_types, static_cast, static_range_relation
from .ranges import NumericRangeRepresentation

__all__ = ('SaturationPolicy', 'DefaultPolicy', 'ClampPolicy',
           'ConversionError', 'ConversionOverflow', 'ConversionUnderflow', 'InvalidConversion',
           'OP_CHECKED_CAST', 'OP_STRICT_CAST',
           'saturate', 'checked_cast', 'strict_cast',
           'clamp_floor', 'clamp_ceil', 'clamp_round',
           'register_fast_op', 'unregister_fast_op', 'get_fast_op', 'integral_fast_op')


logger = logging.getLogger(__name__)


# Operation names
OP_CHECKED_CAST = 'checked_cast'
OP_STRICT_CAST = 'strict_cast'


#
# Saturation policies
#

class SaturationPolicy:
    '''Supplies the values saturate() delivers when a value is out of range for, or not
    orderable in, the destination type.  Each method is passed the destination
    NumericType and must return a value of it.

    Override any of the three to substitute other boundary values.  The range check itself
    is unaffected by the policy.  This class implements the default limits: infinities
    where the destination has them and its extreme finite values otherwise, and a quiet
    NaN (or zero) for NaNs.
    '''

    def on_overflow(self, dst):
        if dst.has_infinity:
            return dst.infinity(False)
        return dst.max

    def on_underflow(self, dst):
        if dst.has_infinity:
            return dst.infinity(True)
        return dst.lowest

    def on_nan(self, dst):
        if dst.has_nan:
            return dst.quiet_nan()
        return dst.zero

    def __repr__(self):
        return f'<{self.__class__.__name__}>'


class ClampPolicy(SaturationPolicy):
    '''Saturate to the finite extremes of the destination even if it has infinities, and
    deliver zero for NaNs that are out of range.'''

    def on_overflow(self, dst):
        return dst.max

    def on_underflow(self, dst):
        return dst.lowest

    def on_nan(self, dst):
        return dst.zero


DefaultPolicy = SaturationPolicy()


#
# Exceptions
#

class ConversionError(ArithmeticError):
    '''All exceptions raised by checked conversions subclass from this.

    ConversionError expects two arguments:

         def __init__(self, op_tuple, result):

    op_tuple is a tuple of the operation name, the source value and the destination type.
    result is the value saturate() would have delivered instead.
    '''

    reason = 'out of range'

    @property
    def op_tuple(self):
        return self.args[0]

    @property
    def default_result(self):
        return self.args[1]

    @property
    def value(self):
        return self.op_tuple[1]

    @property
    def dst(self):
        return self.op_tuple[2]

    def __str__(self):
        return f'{self.value!r} cannot be converted to {self.dst.name}: {self.reason}'


class ConversionOverflow(ConversionError, OverflowError):
    '''Raised when a value exceeds the destination's maximum.'''

    reason = 'above the maximum'


class ConversionUnderflow(ConversionError):
    '''Raised when a value is below the destination's lowest value.'''

    reason = 'below the minimum'


class InvalidConversion(ConversionError, ValueError):
    '''Raised when a NaN is converted to a destination that cannot order it.'''

    reason = 'not a number'


#
# Accelerated paths.  These are keyed by the exact (dst, src) pair and must return what
# the general path with DefaultPolicy would.  Correctness never depends on one being
# registered.
#

_fast_ops = {}


def register_fast_op(dst, src):
    '''Return a decorator registering func(value) as the accelerated saturating conversion
    of src integers to dst, replacing any existing registration.'''
    dst, src = numeric_type(dst), numeric_type(src)
    if not (dst.is_integral and src.is_integral):
        raise TypeError(f'accelerated conversions require integral types, not '
                        f'{src.name} to {dst.name}')

    def decorator(func):
        if (dst, src) in _fast_ops:
            logger.debug('replacing accelerated conversion from %s to %s', src.name, dst.name)
        _fast_ops[(dst, src)] = func
        logger.debug('registered accelerated conversion from %s to %s: %r',
                     src.name, dst.name, func)
        return func

    return decorator


def unregister_fast_op(dst, src):
    '''Remove and return the accelerated conversion of src to dst.  Raises KeyError if there
    is none.'''
    dst, src = numeric_type(dst), numeric_type(src)
    func = _fast_ops.pop((dst, src))
    logger.debug('unregistered accelerated conversion from %s to %s', src.name, dst.name)
    return func


def get_fast_op(dst, src):
    '''Return the accelerated conversion of src to dst, or None.'''
    return _fast_ops.get((numeric_type(dst), numeric_type(src)))


def integral_fast_op(dst, src):
    '''Return a function saturating src integers to dst with a single range test.

    Which extreme an out-of-range value saturates to is mostly decided from the types:
    if src's maximum fits dst it can only be below the range; otherwise it is below only if
    negative and src's minimum does not fit.
    '''
    max_in_range = src.max <= dst.max
    min_in_range = src.lowest >= dst.lowest
    common_max = src.max if max_in_range else dst.max
    common_min = src.lowest if min_in_range else dst.lowest
    lowest, max_ = dst.lowest, dst.max

    def saturate_fast(value):
        if lowest <= value <= max_:
            return value
        if max_in_range or (not min_in_range and value < 0):
            return common_min
        return common_max

    saturate_fast.__qualname__ = f'integral_fast_op.<{src.name} to {dst.name}>'
    return saturate_fast


#
# Conversions
#

def _saturate_impl(dst, src, value, policy):
    constraint = range_check_for(dst, src)(value)
    if not constraint.overflow:
        if not constraint.underflow:
            return static_cast(dst, value)
        return policy.on_underflow(dst)
    # Integral sources cannot be NaN
    if src.is_integral or not constraint.underflow:
        return policy.on_overflow(dst)
    return policy.on_nan(dst)


def saturate(dst, value, src=None, policy=DefaultPolicy):
    '''Return value, of type src, converted to dst.  Out-of-range values and NaNs are
    replaced by the policy's values rather than wrapped or rejected.

    dst and src are NumericTypes or predefined type names.  If src is None it is inferred
    from the value.  Enumeration members are converted through their values.
    '''
    dst, value, src = resolve_types(dst, value, src)
    if policy is DefaultPolicy:
        fast_op = _fast_ops.get((dst, src))
        if fast_op:
            return fast_op(value)
    return _saturate_impl(dst, src, value, policy)


def checked_cast(dst, value, src=None):
    '''Return value, of type src, converted to dst.  Raise ConversionOverflow,
    ConversionUnderflow or InvalidConversion if it is not a value of dst.'''
    dst, value, src = resolve_types(dst, value, src)
    constraint = range_check_for(dst, src)(value)
    if constraint.is_valid():
        return static_cast(dst, value)

    result = _saturate_impl(dst, src, value, DefaultPolicy)
    op_tuple = (OP_CHECKED_CAST, value, dst)
    if constraint.is_invalid() and src.is_floating:
        raise InvalidConversion(op_tuple, result)
    if constraint.overflow:
        raise ConversionOverflow(op_tuple, result)
    raise ConversionUnderflow(op_tuple, result)


def strict_cast(dst, value, src=None):
    '''Return value, of type src, converted to dst.  Only conversions where every value of
    src is a value of dst are permitted; others raise TypeError whatever the value.'''
    dst, value, src = resolve_types(dst, value, src)
    if static_range_relation(dst, src) != NumericRangeRepresentation.CONTAINED:
        raise TypeError(f'{OP_STRICT_CAST}: {src.name} is not contained in {dst.name}')
    return static_cast(dst, value)


def _clamp_rounded(value, dst, rounding):
    if isinstance(value, float) and isfinite(value):
        value = to_integral(value, rounding)
    return saturate(dst, value)


# Generally saturate(dst, round(x)) is what you want: it rounds to nearest with ties to
# even, avoiding bias.  These round in other directions.

def clamp_floor(value, dst=int32):
    '''Round value towards negative infinity and saturate it to dst.'''
    return _clamp_rounded(value, dst, ROUND_FLOOR)


def clamp_ceil(value, dst=int32):
    '''Round value towards positive infinity and saturate it to dst.'''
    return _clamp_rounded(value, dst, ROUND_CEILING)


def clamp_round(value, dst=int32):
    '''Round value to nearest with ties away from zero, so 0.5 becomes 1 and -1.5 becomes
    -2, and saturate it to dst.'''
    return _clamp_rounded(value, dst, ROUND_HALF_UP)


for _dst, _src in product(INTEGER_TYPES, repeat=2):
    register_fast_op(_dst, _src)(integral_fast_op(_dst, _src))
del _dst, _src
