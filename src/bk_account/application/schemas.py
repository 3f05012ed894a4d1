"""Pydantic schemas for bk_account API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.bk_common.money import money_display

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    amount: Decimal = Field(
        ..., gt=0, max_digits=16, decimal_places=2, allow_inf_nan=False,
        description="Amount to deposit",
    )


class WithdrawRequest(BaseModel):
    amount: Decimal = Field(
        ..., gt=0, max_digits=16, decimal_places=2, allow_inf_nan=False,
        description="Amount to withdraw",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    balance: Decimal
    balance_display: str

    @classmethod
    def from_balance(cls, user_id: str, balance: Decimal) -> "BalanceResponse":
        return cls(user_id=user_id, balance=balance, balance_display=money_display(balance))


class BalanceChangeResponse(BaseModel):
    amount: Decimal
    amount_display: str
    new_balance: Decimal
    new_balance_display: str

    @classmethod
    def from_result(cls, amount: Decimal, new_balance: Decimal) -> "BalanceChangeResponse":
        return cls(
            amount=amount,
            amount_display=money_display(amount),
            new_balance=new_balance,
            new_balance_display=money_display(new_balance),
        )
