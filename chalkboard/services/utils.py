"""
Small helpers shared by the billing services
"""

from decimal import Decimal, ROUND_HALF_UP
import secrets

from sqlmodel import Session

from chalkboard.core.datetime_utils import utcnow

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Quantize to cents, half-up"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def guarded_update(session: Session, statement) -> int:
    """Run a conditional UPDATE and return the number of rows it matched.

    Callers encode their precondition in the WHERE clause, so a zero count
    means another request changed the row first. The identity map is not
    synchronized; refresh any loaded instance you keep using.
    """
    result = session.exec(statement.execution_options(synchronize_session=False))
    return result.rowcount


def generate_reference(prefix: str) -> str:
    """Human readable unique reference like ``TXN-20261019153000-4F9A2C``"""
    return f"{prefix}-{utcnow():%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"
