"""
Module: ledger_kernel.db.types
Responsibility: Annotated column types shared by the models, so that every
    amount column has the identical definition across the schema.
Architecture position: Kernel > DB.  May be imported by models/.  MUST NOT
    import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - Amounts are Numeric(38, 2).  Rounding to two places happens in
      ledger_kernel.domain.amounts before a value reaches a column.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric
from sqlalchemy.orm import mapped_column

# Monetary amount at ledger precision
Money = Annotated[Decimal, mapped_column(Numeric(38, 2))]
