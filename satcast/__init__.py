#
# Saturating conversions between numeric types
#
# (c) The satcast authors 2026.  All rights reserved.
#

from .binary import *
from .limits import *
from .ranges import *
from .cast import *

from . import binary, limits, ranges, cast

__all__ = binary.__all__ + limits.__all__ + ranges.__all__ + cast.__all__
