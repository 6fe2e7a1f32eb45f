"""Click parameter types for ledger values."""

import datetime as dt
from decimal import Decimal, InvalidOperation

import click


class DecimalParamType(click.ParamType):
    """Decimal amount; accepts a decimal comma."""

    name = "decimal"

    def convert(self, value, param, ctx):
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value).strip().replace(",", "."))
        except InvalidOperation:
            self.fail(f"{value!r} is not a valid number", param, ctx)


class DateParamType(click.ParamType):
    """Calendar date in YYYY-MM-DD form."""

    name = "date"

    def convert(self, value, param, ctx):
        if isinstance(value, dt.date):
            return value
        try:
            return dt.date.fromisoformat(str(value).strip())
        except ValueError:
            self.fail(f"{value!r} is not a date (expected YYYY-MM-DD)", param, ctx)


class PriceAssignmentType(click.ParamType):
    """CODE=PRICE pair, e.g. AAPL=182.5."""

    name = "code=price"

    def convert(self, value, param, ctx):
        if isinstance(value, tuple):
            return value
        code, sep, price = str(value).partition("=")
        if not sep or not code.strip():
            self.fail(f"{value!r} is not of the form CODE=PRICE", param, ctx)
        return code.strip().upper(), DECIMAL.convert(price, param, ctx)


DECIMAL = DecimalParamType()
DATE = DateParamType()
PRICE_ASSIGNMENT = PriceAssignmentType()
