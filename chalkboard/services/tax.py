"""
Tax policy
Pure functions deciding how much tax a table or F&B charge carries
"""

from decimal import Decimal

from sqlmodel import Field, SQLModel

from chalkboard.services.utils import money


class TaxSettings(SQLModel):
    """Tax configuration, persisted as the ``tax_settings`` system setting"""
    enabled: bool = False
    percentage: Decimal = Field(default=Decimal("11"), ge=0, le=100)
    name: str = Field(default="PPN", max_length=50)
    apply_to_tables: bool = False
    apply_to_fnb: bool = True


def calculate_tax(amount: Decimal, settings: TaxSettings, is_table_charge: bool = False) -> Decimal:
    if not settings.enabled:
        return Decimal("0.00")

    applies = settings.apply_to_tables if is_table_charge else settings.apply_to_fnb
    if not applies:
        return Decimal("0.00")

    return money(Decimal(amount) * Decimal(settings.percentage) / Decimal(100))


def format_tax_label(settings: TaxSettings) -> str:
    if not settings.enabled:
        return "Tax"
    return f"{settings.name} ({settings.percentage.normalize():f}%)"
