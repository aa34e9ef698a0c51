import logging
import struct
from enum import Enum, IntEnum
from itertools import product
from math import isnan, trunc

import pytest

from satcast import *
from satcast import cast


ALL_TYPES = INTEGER_TYPES + FLOATING_TYPES
inf = float('inf')
nan = float('nan')


class Colour(IntEnum):
    RED = 300
    BLUE = -1


class Reading(Enum):
    HIGH = 1e10
    LOW = -0.5


class RecordingPolicy(SaturationPolicy):
    '''Fails if any boundary value is requested.'''

    def on_overflow(self, dst):
        raise AssertionError(f'on_overflow called for {dst.name}')

    def on_underflow(self, dst):
        raise AssertionError(f'on_underflow called for {dst.name}')

    def on_nan(self, dst):
        raise AssertionError(f'on_nan called for {dst.name}')


class SentinelPolicy(SaturationPolicy):

    def on_overflow(self, dst):
        return 11

    def on_underflow(self, dst):
        return 22

    def on_nan(self, dst):
        return 33


def interesting_values(t):
    if t.is_integral:
        values = {t.lowest, t.lowest + 1, -1, 0, 1, t.max - 1, t.max}
        return sorted(value for value in values if t.lowest <= value <= t.max)
    return [-t.max, -1.0, -0.5, -0.0, 0.0, 0.5, 1.0, 2048.0, t.max]


def is_value_of(t, value):
    if t.is_floating:
        return t.fmt.is_representable(value)
    if isinstance(value, float) and not value.is_integer():
        return False
    return t.lowest <= value <= t.max


def truncate_and_clamp(dst, value):
    if isnan(value):
        return 0
    if value == inf:
        return dst.max
    if value == -inf:
        return dst.lowest
    return min(max(trunc(value), dst.lowest), dst.max)


def float16_values():
    return [struct.unpack('<e', n.to_bytes(2, 'little'))[0] for n in range(65536)]


@pytest.fixture
def fast_ops():
    saved = dict(cast._fast_ops)
    yield cast._fast_ops
    cast._fast_ops.clear()
    cast._fast_ops.update(saved)


class TestSaturate:

    @pytest.mark.parametrize('dst, value, src, answer', (
        (uint8, 300, None, 255),
        (uint8, -5, None, 0),
        (int8, -300, None, -128),
        (int8, 127, None, 127),
        (uint32, -1.0, 'float32', 0),
        (uint32, -0.5, 'float32', 0),
        (uint32, 4294967296.0, 'float32', 4294967295),
        (uint32, 4294967040.0, 'float32', 4294967040),
        (int32, nan, 'float32', 0),
        (int32, inf, 'float16', 2147483647),
        (int32, -inf, 'float16', -2147483648),
        (int32, 65504.0, 'float16', 65504),
        (int64, 2.0**63, None, 9223372036854775807),
        (int64, -1e300, None, -9223372036854775808),
        (uint64, 1e20, None, 18446744073709551615),
        (uint8, 255.9, None, 255),
        (int8, -128.9, None, -128),
        (int16, 2**100, None, 32767),
        (float32, 2**63 - 1, None, 9.223372036854776e18),
        (float32, 0.1, None, 0.10000000149011612),
        (float32, 1e39, None, inf),
        (float32, -1e39, None, -inf),
        (float16, 65519, None, 65504.0),
        (float16, 65520, None, inf),
        (float16, -1e6, None, -inf),
        (float64, 2**64 - 1, 'uint64', 18446744073709551616.0),
        (bfloat16, 3.4028234663852886e38, 'float32', inf),
    ))
    def test_saturate(self, dst, value, src, answer):
        result = saturate(dst, value, src)
        assert result == answer
        assert type(result) is type(answer)

    @pytest.mark.parametrize('dst, src', list(product(ALL_TYPES, FLOATING_TYPES)))
    def test_nan(self, dst, src):
        result = saturate(dst, nan, src)
        if dst.is_integral:
            assert result == 0
        else:
            assert isnan(result)

    @pytest.mark.parametrize('dst, src', list(product(INTEGER_TYPES, FLOATING_TYPES)))
    def test_floating_to_integral(self, dst, src):
        assert saturate(dst, inf, src) == dst.max
        assert saturate(dst, -inf, src) == dst.lowest
        assert saturate(dst, 1.5, src) == 1
        assert saturate(dst, -0.5, src) == 0
        assert saturate(dst, src.max, src) == min(int(src.max), dst.max)
        assert saturate(dst, src.lowest, src) == max(int(src.lowest), dst.lowest)

    @pytest.mark.parametrize('dst, src', list(product(ALL_TYPES, repeat=2)))
    def test_common_values_preserved(self, dst, src):
        for value in interesting_values(src) + interesting_values(dst):
            if is_value_of(src, value) and is_value_of(dst, value):
                src_value = float(value) if src.is_floating else int(value)
                assert saturate(dst, src_value, src) == value

    @pytest.mark.parametrize('dst, src', [(dst, src) for dst, src in product(INTEGER_TYPES, ALL_TYPES)
                                          if src.max > dst.max])
    def test_above_max(self, dst, src):
        if src.is_integral:
            value = dst.max + 1
        else:
            value = src.fmt.round(dst.max + 1, ROUND_CEILING)
        assert saturate(dst, value, src) == dst.max

    @pytest.mark.parametrize('dst, src', [(dst, src) for dst, src in product(INTEGER_TYPES, ALL_TYPES)
                                          if src.lowest < dst.lowest])
    def test_below_lowest(self, dst, src):
        if src.is_integral:
            value = dst.lowest - 1
        else:
            value = src.fmt.round(dst.lowest - 1, ROUND_FLOOR)
        assert saturate(dst, value, src) == dst.lowest

    @pytest.mark.parametrize('dst', INTEGER_TYPES)
    def test_float16_exhaustive(self, dst):
        for value in float16_values():
            assert saturate(dst, value, float16) == truncate_and_clamp(dst, value)

    # Rounding a float to a shorter significand can carry its maximum beyond that of dst
    @pytest.mark.parametrize('dst, src', [(dst, src) for dst, src in product(ALL_TYPES, repeat=2)
                                          if is_type_in_range(dst, src)
                                          and not (src.is_floating and dst.digits < src.digits)])
    def test_contained_never_consults_policy(self, dst, src):
        for value in interesting_values(src):
            assert saturate(dst, value, src, policy=RecordingPolicy()) == static_cast(dst, value)

    def test_enumerations(self):
        assert saturate(uint8, Colour.RED) == 255
        assert saturate(uint8, Colour.BLUE) == 0
        assert saturate(int16, Colour.RED, 'uint16') == 300
        assert saturate(int32, Reading.HIGH) == 2147483647
        assert saturate(uint8, Reading.LOW) == 0
        assert saturate(int8, True) == 1

    def test_by_name(self):
        assert saturate('uint8', 1000, 'int16') == 255
        assert saturate('float16', 1e10) == inf

    def test_bad_arguments(self):
        with pytest.raises(TypeError):
            saturate(uint8, 'x')
        with pytest.raises(TypeError):
            saturate(uint8, None)
        with pytest.raises(ValueError):
            saturate(uint8, 300, int8)
        with pytest.raises(TypeError):
            saturate(uint8, 1.5, int32)
        with pytest.raises(ValueError):
            saturate('uint7', 1)
        with pytest.raises(TypeError):
            saturate(uint8, 1, 8)


class TestPolicies:

    def test_default(self):
        assert repr(DefaultPolicy) == '<SaturationPolicy>'
        assert DefaultPolicy.on_overflow(int8) == 127
        assert DefaultPolicy.on_underflow(uint8) == 0
        assert DefaultPolicy.on_nan(int8) == 0
        assert DefaultPolicy.on_overflow(float32) == inf
        assert DefaultPolicy.on_underflow(float32) == -inf
        assert isnan(DefaultPolicy.on_nan(float32))

    def test_clamp(self):
        policy = ClampPolicy()
        assert repr(policy) == '<ClampPolicy>'
        assert saturate(float32, 1e300, policy=policy) == float32.max
        assert saturate(float32, -inf, policy=policy) == -float32.max
        assert saturate(float32, nan, policy=policy) == 0.0
        assert saturate(float16, 65520, policy=policy) == 65504.0
        assert saturate(uint8, 300, policy=policy) == 255
        assert saturate(uint8, nan, policy=policy) == 0
        # In range values and NaNs passed through are unaffected
        assert saturate(float32, 1.5, policy=policy) == 1.5
        assert isnan(saturate(float64, nan, 'float32', policy=policy))

    @pytest.mark.parametrize('value, answer', (
        (300, 11),
        (-5, 22),
        (nan, 33),
        (inf, 11),
        (-inf, 22),
        (5, 5),
        (7.5, 7),
    ))
    def test_custom(self, value, answer):
        assert saturate(uint8, value, policy=SentinelPolicy()) == answer

    def test_policy_ignores_range_check(self):
        # The policy changes the results, never the classification
        assert classify(uint8, 300).is_overflow()
        assert saturate(uint8, 200, policy=SentinelPolicy()) == 200


class TestCheckedCast:

    def test_in_range(self):
        assert checked_cast(uint8, 255) == 255
        assert checked_cast(int32, 2.7) == 2
        assert checked_cast(float32, 0.1) == 0.10000000149011612
        assert checked_cast(int8, -128, 'int64') == -128

    def test_overflow(self):
        with pytest.raises(ConversionOverflow) as e:
            checked_cast(uint8, 256)
        assert e.value.op_tuple == (OP_CHECKED_CAST, 256, uint8)
        assert e.value.default_result == 255
        assert e.value.value == 256
        assert e.value.dst is uint8
        assert str(e.value) == '256 cannot be converted to uint8: above the maximum'
        assert isinstance(e.value, OverflowError)
        assert isinstance(e.value, ArithmeticError)

    def test_underflow(self):
        with pytest.raises(ConversionUnderflow) as e:
            checked_cast(uint8, -1)
        assert e.value.default_result == 0
        assert 'below the minimum' in str(e.value)
        assert not isinstance(e.value, OverflowError)

    def test_nan(self):
        with pytest.raises(InvalidConversion) as e:
            checked_cast(uint8, nan)
        assert e.value.default_result == 0
        assert isinstance(e.value, ValueError)
        assert str(e.value) == 'nan cannot be converted to uint8: not a number'
        with pytest.raises(InvalidConversion) as e:
            checked_cast(float32, nan)
        assert isnan(e.value.default_result)

    def test_floating(self):
        with pytest.raises(ConversionOverflow) as e:
            checked_cast(float32, 1e39)
        assert e.value.default_result == inf
        with pytest.raises(ConversionUnderflow) as e:
            checked_cast(int32, -inf, 'float16')
        assert e.value.default_result == int32.lowest

    def test_catch_all(self):
        for value in (1000, -1000, nan):
            with pytest.raises(ConversionError):
                checked_cast(int8, value)


class TestStrictCast:

    def test_contained(self):
        assert strict_cast(int16, -5, int8) == -5
        assert strict_cast(int64, 5) == 5
        assert strict_cast(float32, 2**24 + 1, int32) == 16777216.0
        assert strict_cast(float64, 0.1, float32) == 0.10000000149011612
        assert strict_cast(uint16, 255, 'uint8') == 255

    @pytest.mark.parametrize('dst, value, src', (
        (int8, 5, int16),
        (uint64, 5, None),
        (int8, 5, uint8),
        (int32, 1.0, float16),
        (float32, 1.0, float64),
    ))
    def test_not_contained(self, dst, value, src):
        with pytest.raises(TypeError) as e:
            strict_cast(dst, value, src)
        assert 'is not contained in' in str(e.value)


class TestClamp:

    @pytest.mark.parametrize('func, value, answer', (
        (clamp_floor, 2.5, 2),
        (clamp_floor, -2.5, -3),
        (clamp_floor, 5, 5),
        (clamp_floor, 1e20, 2147483647),
        (clamp_floor, -inf, -2147483648),
        (clamp_floor, nan, 0),
        (clamp_ceil, 2.1, 3),
        (clamp_ceil, -2.9, -2),
        (clamp_ceil, inf, 2147483647),
        (clamp_ceil, -3e9, -2147483648),
        (clamp_round, 0.5, 1),
        (clamp_round, -0.5, -1),
        (clamp_round, 1.5, 2),
        (clamp_round, 2.5, 3),
        (clamp_round, -1.5, -2),
        (clamp_round, 0.49999999999999994, 0),
        (clamp_round, nan, 0),
        (clamp_round, 2**40, 2147483647),
    ))
    def test_int32(self, func, value, answer):
        result = func(value)
        assert result == answer
        assert type(result) is int

    def test_other_destinations(self):
        assert clamp_floor(3.7, uint8) == 3
        assert clamp_ceil(-0.5, uint8) == 0
        assert clamp_round(300.4, uint8) == 255
        assert clamp_round(-0.4, 'uint8') == 0
        assert clamp_floor(-1e30, int64) == int64.lowest


class TestFastOps:

    @pytest.mark.parametrize('dst, src', list(product(INTEGER_TYPES, repeat=2)))
    def test_registered(self, dst, src):
        assert get_fast_op(dst, src) is not None
        assert get_fast_op(dst.name, src.name) is get_fast_op(dst, src)

    @pytest.mark.parametrize('dst, src', [(dst, src) for dst in ALL_TYPES for src in ALL_TYPES
                                          if dst.is_floating or src.is_floating])
    def test_not_registered(self, dst, src):
        assert get_fast_op(dst, src) is None

    @pytest.mark.parametrize('dst, src', list(product(INTEGER_TYPES, (int8, uint8))))
    def test_equivalence_exhaustive(self, dst, src):
        fast_op = get_fast_op(dst, src)
        general = SaturationPolicy()
        for value in range(src.lowest, src.max + 1):
            assert fast_op(value) == saturate(dst, value, src, policy=general)

    @pytest.mark.parametrize('dst, src', list(product(INTEGER_TYPES, repeat=2)))
    def test_equivalence_boundaries(self, dst, src):
        fast_op = get_fast_op(dst, src)
        general = SaturationPolicy()
        values = set(interesting_values(src))
        values.update(value + delta for value in interesting_values(dst) for delta in (-1, 0, 1))
        for value in sorted(values):
            if src.lowest <= value <= src.max:
                assert fast_op(value) == saturate(dst, value, src, policy=general)

    def test_integral_fast_op(self):
        fast_op = integral_fast_op(int8, uint16)
        assert fast_op(100) == 100
        assert fast_op(1000) == 127
        assert 'uint16 to int8' in fast_op.__qualname__

    def test_register(self, fast_ops):
        @register_fast_op(int8, int16)
        def always_seven(value):
            return 7

        assert get_fast_op('int8', 'int16') is always_seven
        assert saturate(int8, 1000, int16) == 7
        # Other policies take the general path
        assert saturate(int8, 1000, int16, policy=SaturationPolicy()) == 127

    def test_unregister(self, fast_ops):
        fast_op = get_fast_op(uint8, int64)
        assert unregister_fast_op(uint8, int64) is fast_op
        assert get_fast_op(uint8, int64) is None
        assert saturate(uint8, 300) == 255
        assert saturate(uint8, -300) == 0
        with pytest.raises(KeyError):
            unregister_fast_op(uint8, int64)

    def test_register_floating(self):
        with pytest.raises(TypeError):
            register_fast_op(float32, int8)
        with pytest.raises(TypeError):
            register_fast_op('int8', 'float64')

    def test_logging(self, fast_ops, caplog):
        with caplog.at_level(logging.DEBUG, logger='satcast.cast'):
            register_fast_op(int8, int16)(integral_fast_op(int8, int16))
            unregister_fast_op(int8, int16)
        assert 'replacing accelerated conversion from int16 to int8' in caplog.text
        assert 'unregistered accelerated conversion from int16 to int8' in caplog.text
