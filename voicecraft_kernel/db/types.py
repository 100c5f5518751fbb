"""
Module: voicecraft_kernel.db.types
Responsibility: Annotated type aliases for column types shared by the models,
    so that every credit amount and dollar figure is stored identically.
Architecture position: Kernel > DB.  May be imported by models/ and
    selectors/.  MUST NOT import from those layers.

No floats for money: credits are BigInteger, dollars are Numeric(38, 9).
Conversion between the two lives in voicecraft_kernel.domain.credits.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Signed whole credits (1 credit = $0.01)
Credits = Annotated[int, BigInteger]

# Dollar figures produced by estimation
Dollars = Annotated[Decimal, Numeric(38, 9)]

# Per-account monotonic entry counter
Sequence = Annotated[int, BigInteger]

# Enumerated status / reason codes
ShortCode = Annotated[str, String(50)]

# Free text
LongText = Annotated[str, String(5000)]
