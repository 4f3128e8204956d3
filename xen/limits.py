"""
Fixed-width integer limits used by xen's checked arithmetic.
"""

import numpy as np


I8_MIN = int(np.iinfo(np.int8).min)
I16_MIN = int(np.iinfo(np.int16).min)
I32_MIN = int(np.iinfo(np.int32).min)
I64_MIN = int(np.iinfo(np.int64).min)

I8_MAX = int(np.iinfo(np.int8).max)
I16_MAX = int(np.iinfo(np.int16).max)
I32_MAX = int(np.iinfo(np.int32).max)
I64_MAX = int(np.iinfo(np.int64).max)

U8_MIN = 0
U16_MIN = 0
U32_MIN = 0
U64_MIN = 0

U8_MAX = int(np.iinfo(np.uint8).max)
U16_MAX = int(np.iinfo(np.uint16).max)
U32_MAX = int(np.iinfo(np.uint32).max)
U64_MAX = int(np.iinfo(np.uint64).max)
