#
# Numeric type descriptors: the numeric_limits of each supported representation
#
# (c) The satcast authors 2026.  All rights reserved.
#

from enum import Enum

import attr

from .binary import BinaryFormat, IEEEhalf, IEEEsingle, IEEEdouble, brainfloat16

__all__ = ('NumericType', 'integer_type', 'floating_type', 'numeric_type',
           'underlying_value', 'infer_type',
           'int8', 'int16', 'int32', 'int64', 'uint8', 'uint16', 'uint32', 'uint64',
           'float16', 'bfloat16', 'float32', 'float64',
           'INTEGER_TYPES', 'FLOATING_TYPES')


@attr.s(slots=True, frozen=True, cache_hash=True, repr=False)
class NumericType:
    '''The static facts about a numeric representation.  Instances are immutable and
    hashable; two descriptors with the same facts are interchangeable.

    Integral types are two's complement or unsigned; their values are the Python ints in
    [lowest, max].  digits is the number of bits excluding any sign bit.

    Floating types are backed by a BinaryFormat; their values are the Python floats
    exactly representable in that format, the infinities and NaN.  digits is the format
    precision including the integer bit.

    Use integer_type() and floating_type() rather than constructing directly.
    '''

    name = attr.ib()
    digits = attr.ib()
    is_signed = attr.ib()
    is_integral = attr.ib()
    max = attr.ib()
    lowest = attr.ib()
    has_infinity = attr.ib(default=False)
    has_nan = attr.ib(default=False)
    # The BinaryFormat of a floating type; None for integral types
    fmt = attr.ib(default=None)

    def __attrs_post_init__(self):
        if not self.lowest < self.max:
            raise ValueError(f'{self.name}: lowest ({self.lowest}) must be less than '
                             f'max ({self.max})')
        if self.is_integral == (self.fmt is not None):
            raise TypeError(f'{self.name}: floating types, and only floating types, '
                            f'require a BinaryFormat')

    def __repr__(self):
        return f'NumericType({self.name})'

    @property
    def is_floating(self):
        return not self.is_integral

    @property
    def max_exponent(self):
        '''A measure of dynamic range comparable across integral and floating types.

        For floating types this is C's max_exponent.  Integers have no such thing but
        digits + 1 is its analogue: 2^max_exponent exceeds every value of the type.
        '''
        if self.is_integral:
            return self.digits + 1
        return self.fmt.max_exponent

    @property
    def zero(self):
        return 0 if self.is_integral else 0.0

    def infinity(self, negative=False):
        '''Return an infinity of the given sign.'''
        if not self.has_infinity:
            raise ValueError(f'{self.name} has no infinity')
        return float('-inf') if negative else float('inf')

    def quiet_nan(self):
        '''Return a quiet NaN.'''
        if not self.has_nan:
            raise ValueError(f'{self.name} has no NaN')
        return float('nan')

    def coerce(self, value):
        '''Return value, an int or float, as a value of this type.

        Floating types perform the implicit conversion, rounding to nearest with ties to
        even.  An integral type requires an int within its range; anything else is not a
        value of the type and raises TypeError or ValueError.
        '''
        if self.is_floating:
            return self.fmt.round(value)
        if not isinstance(value, int):
            raise TypeError(f'{self.name} values must be integers, not '
                            f'{type(value).__name__}')
        if not self.lowest <= value <= self.max:
            raise ValueError(f'{value} is not a value of {self.name}')
        return int(value)


def integer_type(bits, signed, name=None):
    '''Return the descriptor of a two's complement (if signed) or unsigned integer type of
    the given width in bits.'''
    if not isinstance(bits, int) or isinstance(bits, bool):
        raise TypeError('bits must be an integer')
    if bits < int(signed):
        raise ValueError(f'an integer type cannot have {bits} bits')
    digits = bits - bool(signed)
    if name is None:
        name = f'int{bits}' if signed else f'uint{bits}'
    lowest = -(1 << digits) if signed else 0
    return NumericType(name, digits, bool(signed), True, (1 << digits) - 1, lowest)


def floating_type(fmt, name):
    '''Return the descriptor of the floating type with the given BinaryFormat.'''
    if not isinstance(fmt, BinaryFormat):
        raise TypeError('fmt must be a BinaryFormat')
    if not fmt.fits_double():
        raise ValueError(f'{name}: values of {fmt!r} are not all representable as '
                         f'Python floats')
    largest = fmt.largest_finite
    return NumericType(name, fmt.precision, True, False, largest, -largest,
                       has_infinity=True, has_nan=True, fmt=fmt)


def numeric_type(t):
    '''Return the NumericType for t, a NumericType or the name of a predefined type.'''
    if isinstance(t, NumericType):
        return t
    if not isinstance(t, str):
        raise TypeError(f'expected a NumericType or type name, not {type(t).__name__}')
    result = _types_by_name.get(t)
    if result is None:
        raise ValueError(f'unknown numeric type {t!r}')
    return result


def underlying_value(value):
    '''Return the int or float underlying value.  Enumeration members are replaced by their
    values; bools are integers.'''
    while isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        # Strip int subclasses
        return int(value)
    if isinstance(value, float):
        return float(value)
    raise TypeError(f'{type(value).__name__} is not a numeric representation')


def infer_type(value):
    '''Return the type a bare int or float value is taken to have when no source type is
    given.

    Floats are float64.  Ints, bools included, are int64 if they fit, otherwise uint64 if
    they fit, otherwise a signed integer type just wide enough.
    '''
    if isinstance(value, float):
        return float64
    if isinstance(value, int):
        if int64.lowest <= value <= int64.max:
            return int64
        if uint64.lowest <= value <= uint64.max:
            return uint64
        return integer_type(value.bit_length() + 1, True)
    raise TypeError(f'cannot infer a numeric type for {type(value).__name__}')


int8 = integer_type(8, True)
int16 = integer_type(16, True)
int32 = integer_type(32, True)
int64 = integer_type(64, True)
uint8 = integer_type(8, False)
uint16 = integer_type(16, False)
uint32 = integer_type(32, False)
uint64 = integer_type(64, False)

float16 = floating_type(IEEEhalf, 'float16')
bfloat16 = floating_type(brainfloat16, 'bfloat16')
float32 = floating_type(IEEEsingle, 'float32')
float64 = floating_type(IEEEdouble, 'float64')

INTEGER_TYPES = (int8, int16, int32, int64, uint8, uint16, uint32, uint64)
FLOATING_TYPES = (float16, bfloat16, float32, float64)

_types_by_name = {t.name: t for t in INTEGER_TYPES + FLOATING_TYPES}
