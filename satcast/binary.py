#
# Binary floating point formats and correctly-rounded conversion into them
#
# (c) Neil Booth 2007-2021.  All rights reserved.
# (c) The satcast authors 2026.  All rights reserved.
#

from math import copysign, isfinite, ldexp, log2
from typing import NamedTuple

__all__ = ('ROUND_CEILING', 'ROUND_FLOOR', 'ROUND_DOWN', 'ROUND_UP',
           'ROUND_HALF_EVEN', 'ROUND_HALF_UP', 'ROUND_HALF_DOWN',
           'BinaryFormat', 'IEEEhalf', 'IEEEsingle', 'IEEEdouble', 'brainfloat16',
           'to_integral')


# Rounding modes
ROUND_CEILING   = 'ROUND_CEILING'       # Towards +infinity
ROUND_FLOOR     = 'ROUND_FLOOR'         # Towards -infinity
ROUND_DOWN      = 'ROUND_DOWN'          # Towards zero
ROUND_UP        = 'ROUND_UP'            # Away from zero
ROUND_HALF_EVEN = 'ROUND_HALF_EVEN'     # To nearest with ties towards even
ROUND_HALF_DOWN = 'ROUND_HALF_DOWN'     # To nearest with ties towards zero
ROUND_HALF_UP   = 'ROUND_HALF_UP'       # To nearest with ties away from zero

ALL_ROUNDINGS = frozenset((ROUND_CEILING, ROUND_FLOOR, ROUND_DOWN, ROUND_UP,
                           ROUND_HALF_EVEN, ROUND_HALF_DOWN, ROUND_HALF_UP))


# When precision is lost during a conversion these indicate what fraction of the LSB the
# lost bits represented.  It essentially combines the roles of 'guard' and 'sticky' bits.
LF_EXACTLY_ZERO = 0           # 000000
LF_LESS_THAN_HALF = 1         # 0xxxxx  x's not all zero
LF_EXACTLY_HALF = 2           # 100000
LF_MORE_THAN_HALF = 3         # 1xxxxx  x's not all zero


class BinaryFormat(NamedTuple):
    '''An IEEE-754 binary floating point arithmetic format.  Only instantiate indirectly
    through the from_ contructors.

    precision is the number of bits in the significand including the integer bit.

    e_max is largest e such that 2^e is representable; the largest representable
    number is then 2^e_max * (2 - 2^(1 - precision)) when the significand is all ones.

    e_min is the smallest e such that 2^e is not a subnormal number.  The smallest
    subnormal number is then 2^(e_min - (precision - 1)).

    Values of a format are delivered as Python floats, so a format is only usable for
    conversion if all its values are exactly representable as an IEEEdouble; see
    fits_double().
    '''

    # These three attributes determine max_significand, which is pre-calculated
    precision: int
    e_max: int
    e_min: int

    max_significand: int

    @classmethod
    def from_triple(cls, precision, e_max, e_min):
        '''Make a BinaryFormat with pre-calculated values.   All constructors ultimately
        call this one.'''
        if not all(isinstance(arg, int) for arg in (precision, e_max, e_min)):
            raise TypeError('precision, e_max and e_min must be integers')
        if precision < 3:
            raise ValueError('precision must be at least 3 bits')
        if e_max < 2:
            raise ValueError('e_max must be at least 2')
        if e_min > -1:
            raise ValueError('e_min must be negative')
        max_significand = (1 << precision) - 1
        return cls(precision, e_max, e_min, max_significand)

    @classmethod
    def from_pair(cls, precision, e_width):
        '''Construct from the specified precision and exponent width.'''
        e_max = (1 << (e_width - 1)) - 1
        return cls.from_triple(precision, e_max, 1 - e_max)

    @classmethod
    def from_IEEE(cls, fmt_width):
        '''The IEEE-754 required format for the given width.'''
        if fmt_width == 16:
            precision = 11
        elif fmt_width == 32:
            precision = 24
        elif fmt_width == 64 or (fmt_width >= 128 and fmt_width % 32 == 0):
            precision = fmt_width - round(4 * log2(fmt_width)) + 13
        else:
            raise ValueError(f'IEEE-754 does not define a standard format for width {fmt_width}')
        return cls.from_pair(precision, fmt_width - precision)

    def __repr__(self):
        return f'BinaryFormat(precision={self.precision}, e_max={self.e_max}, e_min={self.e_min})'

    @property
    def max_exponent(self):
        '''The C max_exponent of the format: one more than the largest binary exponent of a
        finite value.'''
        return self.e_max + 1

    @property
    def largest_finite(self):
        '''The finite number of maximal magnitude, as a positive float.'''
        return ldexp(self.max_significand, self.e_max - (self.precision - 1))

    def fits_double(self):
        '''Return True if every value of this format is exactly an IEEEdouble value.'''
        return (self.precision <= 53 and self.e_max <= 1023
                and self.e_min - (self.precision - 1) >= -1074)

    def make_overflow_value(self, rounding, sign):
        '''Return the value to deliver when an overflow occurs, because the exponent would be too
        large, delivering a result to this format with the given sign.  rounding is the rounding
        mode to apply.'''
        if round_up(rounding, LF_MORE_THAN_HALF, sign, False):
            return float('-inf') if sign else float('inf')
        return -self.largest_finite if sign else self.largest_finite

    def _normalize(self, sign, exponent, significand, rounding):
        '''Return the Python float that is the correctly-rounded (under rounding) value of the
        infinitely precise result

           ± 2^exponent * significand
        '''
        if significand == 0:
            return -0.0 if sign else 0.0

        size = significand.bit_length()

        # Shifting the significand so the MSB is one gives us the natural shift.  There it
        # is followed by a binary point, so the exponent must be adjusted to compensate.
        # However we cannot fully shift if the exponent would fall below e_min.
        exponent += self.precision - 1
        rshift = max(size - self.precision, self.e_min - exponent)

        # Shift the significand and update the exponent
        significand, lost_fraction = shift_right(significand, rshift)
        exponent += rshift

        # Round
        if round_up(rounding, lost_fraction, sign, bool(significand & 1)):
            # Increment the significand
            significand += 1
            # If the significand now overflows, halve it and increment the exponent
            if significand > self.max_significand:
                significand >>= 1
                exponent += 1

        if exponent > self.e_max:
            return self.make_overflow_value(rounding, sign)

        # Exact: the significand fits in 53 bits and the exponent is in double's range
        result = ldexp(significand, exponent - (self.precision - 1))
        return -result if sign else result

    def round(self, value, rounding=ROUND_HALF_EVEN):
        '''Return value, an int or float, rounded to this format as a Python float.

        NaNs and infinities are returned unchanged.  Results too large for the format
        become an infinity or the largest finite number, as the rounding mode dictates.
        '''
        if not self.fits_double():
            raise ValueError(f'{self!r} values are not all representable as Python floats')
        if rounding not in ALL_ROUNDINGS:
            raise ValueError(f'invalid rounding mode: {rounding!r}')
        if isinstance(value, bool):
            value = int(value)
        if isinstance(value, int):
            return self._normalize(value < 0, 0, abs(value), rounding)
        if not isinstance(value, float):
            raise TypeError(f'cannot round a value of type {type(value).__name__}')
        if not isfinite(value):
            return value
        sign = copysign(1.0, value) < 0
        significand, denominator = abs(value).as_integer_ratio()
        # The denominator is a power of two
        return self._normalize(sign, 1 - denominator.bit_length(), significand, rounding)

    def is_representable(self, value):
        '''Return True if the int or float value is exactly a value of this format.'''
        if isinstance(value, float) and not isfinite(value):
            return True
        return self.round(value) == value


def to_integral(value, rounding):
    '''Return the finite float value rounded to an integer as per rounding, as a Python
    int.'''
    if not isfinite(value):
        raise ValueError(f'cannot round {value} to an integer')
    if rounding not in ALL_ROUNDINGS:
        raise ValueError(f'invalid rounding mode: {rounding!r}')
    sign = value < 0
    numerator, denominator = abs(value).as_integer_ratio()
    # Strategy: truncate, capture the lost fraction, and round.
    result, lost_fraction = shift_right(numerator, denominator.bit_length() - 1)
    if round_up(rounding, lost_fraction, sign, bool(result & 1)):
        result += 1
    return -result if sign else result


#
# Useful internal helper routines
#

def lost_bits_from_rshift(significand, bits):
    '''Return what the lost bits would be were the significand shifted right the given number
    of bits (negative is a left shift).
    '''
    if bits <= 0:
        return LF_EXACTLY_ZERO
    # Prevent over-large shifts consuming memory
    bits = min(bits, significand.bit_length() + 2)
    bit_mask = 1 << (bits - 1)
    first_bit = bool(significand & bit_mask)
    second_bit = bool(significand & (bit_mask - 1))
    return first_bit * 2 + second_bit


def shift_right(significand, bits):
    '''Return the significand shifted right a given number of bits (left if bits is negative),
    and the fraction that is lost doing so.
    '''
    if bits <= 0:
        result = significand << -bits
    else:
        result = significand >> bits

    return result, lost_bits_from_rshift(significand, bits)


def round_up(rounding, lost_fraction, sign, is_odd):
    '''Return True if, when a conversion is inexact, the result should be rounded up (i.e.,
    away from zero by incrementing the significand).

    sign is the sign of the number, and is_odd indicates if the LSB of the new
    significand is set, which is needed for ties-to-even rounding.
    '''
    if lost_fraction == LF_EXACTLY_ZERO:
        return False

    if rounding == ROUND_HALF_EVEN:
        if lost_fraction == LF_EXACTLY_HALF:
            return is_odd
        else:
            return lost_fraction == LF_MORE_THAN_HALF
    elif rounding == ROUND_CEILING:
        return not sign
    elif rounding == ROUND_FLOOR:
        return sign
    elif rounding == ROUND_DOWN:
        return False
    elif rounding == ROUND_UP:
        return True
    elif rounding == ROUND_HALF_DOWN:
        return lost_fraction == LF_MORE_THAN_HALF
    else:
        return lost_fraction != LF_LESS_THAN_HALF


#
# Constants are predefined formats.
#

IEEEhalf = BinaryFormat.from_IEEE(16)
IEEEsingle = BinaryFormat.from_IEEE(32)
IEEEdouble = BinaryFormat.from_IEEE(64)

# The "brain floating point" format: IEEEsingle's exponent range with 8 bits of precision
brainfloat16 = BinaryFormat.from_pair(8, 8)
