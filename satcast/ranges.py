#
# Classifying a value of one numeric type against the range of another
#
# (c) The satcast authors 2026.  All rights reserved.
#

from enum import IntEnum
from itertools import product

import attr

from .binary import ROUND_DOWN
from .limits import FLOATING_TYPES, INTEGER_TYPES, infer_type, numeric_type, underlying_value

__all__ = ('IntegerRepresentation', 'NumericRangeRepresentation', 'RangeCheck',
           'NarrowingRange', 'narrowing_shift', 'static_range_relation', 'is_type_in_range',
           'static_cast', 'classify', 'is_value_in_range', 'resolve_types', 'in_range_fast_op')


class IntegerRepresentation(IntEnum):
    UNSIGNED = 0
    SIGNED = 1

    @classmethod
    def of(cls, numeric_type):
        return cls.SIGNED if numeric_type.is_signed else cls.UNSIGNED


# Whether every value of a source type is statically known to fit a destination type.
class NumericRangeRepresentation(IntEnum):
    NOT_CONTAINED = 0
    CONTAINED = 1


@attr.s(slots=True, frozen=True, repr=False)
class RangeCheck:
    '''The relation of a value to a destination range as two independent flags.

    Both flags set is reserved for values unordered with respect to both bounds, i.e.
    NaNs.  Build from in-bound tests with from_bounds().
    '''

    underflow = attr.ib(default=False)
    overflow = attr.ib(default=False)

    @classmethod
    def from_bounds(cls, is_in_lower_bound, is_in_upper_bound):
        return cls(not is_in_lower_bound, not is_in_upper_bound)

    def __repr__(self):
        return f'<RangeCheck underflow={self.underflow} overflow={self.overflow}>'

    def is_valid(self):
        '''Return True if the value is within both bounds.'''
        return not self.overflow and not self.underflow

    def is_invalid(self):
        '''Return True if the value compares with neither bound (a NaN).'''
        return self.overflow and self.underflow

    def is_overflow(self):
        return self.overflow and not self.underflow

    def is_underflow(self):
        return self.underflow and not self.overflow

    def is_overflow_flag_set(self):
        return self.overflow

    def is_underflow_flag_set(self):
        return self.underflow


IN_RANGE = RangeCheck()


#
# Narrowing range adjustment
#

def narrowing_shift(dst, src):
    '''Return how many low bits of a dst bound lie beyond the precision of src.

    This is non-zero only when converting a floating src to an integral dst of larger
    precision but smaller range, e.g. float32 to uint32.  An integral maximum is one less
    than a power of two and cannot be held in the float's significand; rounding it to
    nearest inflates it to the power of two, so a naive comparison in the floating type
    passes a value one beyond the true maximum.
    '''
    if src.max_exponent > dst.max_exponent and src.digits < dst.digits:
        return dst.digits - src.digits
    return 0


@attr.s(slots=True, frozen=True)
class NarrowingRange:
    '''The bounds of dst, masked where needed so that they are exactly representable in
    src.  Adjustment only ever makes a bound more restrictive.'''

    dst = attr.ib()
    src = attr.ib()
    shift = attr.ib(init=False)

    @shift.default
    def _shift_default(self):
        return narrowing_shift(self.dst, self.src)

    def adjust(self, value):
        '''Mask out the integer bits of value beyond the precision of src, keeping the
        sign.  Floating bounds are returned unchanged.'''
        if self.dst.is_floating or not self.shift:
            return value
        mask = ~((1 << self.shift) - 1)
        magnitude = abs(value) & mask
        return -magnitude if value < 0 else magnitude

    @property
    def max(self):
        return self.adjust(self.dst.max)

    @property
    def lowest(self):
        return self.adjust(self.dst.lowest)


#
# Static range containment
#

def static_range_relation(dst, src):
    '''Return the NumericRangeRepresentation of src within dst, decided from the
    descriptors alone.'''
    # Infinities and NaNs exceed any integral range
    if src.is_floating and dst.is_integral:
        return NumericRangeRepresentation.NOT_CONTAINED
    if dst.is_signed and not src.is_signed:
        contained = dst.max_exponent > src.max_exponent
    elif not dst.is_signed and src.is_signed:
        contained = False
    else:
        contained = dst.max_exponent >= src.max_exponent
    if contained:
        return NumericRangeRepresentation.CONTAINED
    return NumericRangeRepresentation.NOT_CONTAINED


def is_type_in_range(dst, src):
    '''Return True if every value of src is statically known to be a value of dst.'''
    dst, src = numeric_type(dst), numeric_type(src)
    return static_range_relation(dst, src) == NumericRangeRepresentation.CONTAINED


def static_cast(dst, value):
    '''Return value converted to dst without range checking.

    Ints are unchanged; floats convert to integers by truncating towards zero; anything
    converts to a floating type by rounding to nearest with ties to even.  The value must
    be in range for an integral dst.
    '''
    if dst.is_floating:
        return dst.fmt.round(value)
    if isinstance(value, float):
        return int(value)
    return value


#
# Range checks.  Each case is a factory, called once per (dst, src) pair, returning the
# function that classifies a value.  Comparisons happen where C's usual arithmetic
# conversions would put them: integers compare exactly, an integral value against a
# floating dst compares after conversion to dst, and a floating value against an integral
# dst compares with the bound converted to src.
#

def _comparison_bounds(dst, src):
    bounds = NarrowingRange(dst, src)
    lowest, max_ = bounds.lowest, bounds.max
    if src.is_floating and dst.is_integral:
        # Rounding towards zero keeps a bound beyond src's finite range finite, and is
        # exact once adjusted.
        lowest = src.fmt.round(lowest, ROUND_DOWN)
        max_ = src.fmt.round(max_, ROUND_DOWN)
    return lowest, max_


def _comparison_value(dst, src):
    if src.is_integral and dst.is_floating:
        return dst.fmt.round
    return None


def _contained_check(dst, src):
    '''The destination range contains the source range; the bounds need testing only when
    they are narrower than the type's.'''
    lowest, max_ = _comparison_bounds(dst, src)
    lower_static = static_cast(dst, src.lowest) >= lowest
    upper_static = static_cast(dst, src.max) <= max_
    if lower_static and upper_static:
        return lambda value: IN_RANGE

    def check(value):
        value = static_cast(dst, value)
        return RangeCheck.from_bounds(lower_static or value >= lowest,
                                      upper_static or value <= max_)
    return check


def _signed_to_signed_check(dst, src):
    '''Signed to signed narrowing: both bounds may be exceeded.'''
    lowest, max_ = _comparison_bounds(dst, src)
    convert = _comparison_value(dst, src)

    def check(value):
        if convert:
            value = convert(value)
        return RangeCheck.from_bounds(value >= lowest, value <= max_)
    return check


def _unsigned_to_unsigned_check(dst, src):
    '''Unsigned to unsigned narrowing: only the upper bound can be exceeded, unless dst has
    a non-zero minimum.'''
    lowest, max_ = _comparison_bounds(dst, src)

    def check(value):
        return RangeCheck.from_bounds(lowest == 0 or value >= lowest, value <= max_)
    return check


def _unsigned_to_signed_check(dst, src):
    '''Unsigned to signed narrowing: only the upper bound can be exceeded, unless dst has
    a positive minimum.'''
    lowest, max_ = _comparison_bounds(dst, src)
    convert = _comparison_value(dst, src)

    def check(value):
        if convert:
            value = convert(value)
        return RangeCheck.from_bounds(lowest <= 0 or value >= lowest, value <= max_)
    return check


def _signed_to_unsigned_check(dst, src):
    '''Signed to unsigned: any negative value underflows, and the upper bound can be
    exceeded by a narrower or floating src.'''
    lowest, max_ = _comparison_bounds(dst, src)
    upper_static = not src.has_infinity and src.max <= max_
    is_floating = src.is_floating

    def check(value):
        # Converting floating-point to integer discards the fraction, so values in
        # (-1.0, -0.0] truncate to zero.
        ge_zero = value > -1 if is_floating else value >= 0
        return RangeCheck.from_bounds(ge_zero and (lowest == 0 or value >= lowest),
                                      upper_static or value <= max_)
    return check


_S = IntegerRepresentation.SIGNED
_U = IntegerRepresentation.UNSIGNED
_NOT_CONTAINED = NumericRangeRepresentation.NOT_CONTAINED

# Keyed by (dst sign, src sign, relation).  Contained pairs use _contained_check.
_range_checks = {
    (_S, _S, _NOT_CONTAINED): _signed_to_signed_check,
    (_U, _U, _NOT_CONTAINED): _unsigned_to_unsigned_check,
    (_S, _U, _NOT_CONTAINED): _unsigned_to_signed_check,
    (_U, _S, _NOT_CONTAINED): _signed_to_unsigned_check,
}


def _make_range_check(dst, src):
    key = (IntegerRepresentation.of(dst), IntegerRepresentation.of(src),
           static_range_relation(dst, src))
    return _range_checks.get(key, _contained_check)(dst, src)


def range_check_for(dst, src):
    '''Return the function classifying values of src against dst.

    Functions for pairs of predefined types are built once at import.  Other pairs, such
    as the wide integer types inferred for large ints, are built on each call.
    '''
    check = _predefined_checks.get((dst, src))
    if check is None:
        check = _make_range_check(dst, src)
    return check


def in_range_fast_op(dst, src):
    '''Return a function testing whether a src integer is a value of dst with a single
    comparison, or None unless both types are integral.'''
    if not (dst.is_integral and src.is_integral):
        return None
    if static_range_relation(dst, src) == NumericRangeRepresentation.CONTAINED:
        return lambda value: True
    lowest, max_ = dst.lowest, dst.max
    return lambda value: lowest <= value <= max_


def resolve_types(dst, value, src=None):
    '''Return a (dst, value, src) triple: dst and src as NumericTypes, and value as a value
    of src.  src is inferred from the value if None.'''
    dst = numeric_type(dst)
    value = underlying_value(value)
    src = infer_type(value) if src is None else numeric_type(src)
    return dst, src.coerce(value), src


def classify(dst, value, src=None):
    '''Return the RangeCheck of value, of type src, against the range of dst.

    If src is None it is inferred from the value.  NaNs, unordered with both bounds,
    set both flags.'''
    dst, value, src = resolve_types(dst, value, src)
    return range_check_for(dst, src)(value)


def is_value_in_range(dst, value, src=None):
    '''Return True if value, of type src, is a value of dst.'''
    dst, value, src = resolve_types(dst, value, src)
    fast_op = _in_range_fast_ops.get((dst, src))
    if fast_op:
        return fast_op(value)
    return range_check_for(dst, src)(value).is_valid()


_predefined_checks = {(dst, src): _make_range_check(dst, src)
                      for dst, src in product(INTEGER_TYPES + FLOATING_TYPES, repeat=2)}
_in_range_fast_ops = {(dst, src): in_range_fast_op(dst, src)
                      for dst, src in product(INTEGER_TYPES, repeat=2)}
