"""
Operator actions on the calendar.

Each request carries exactly one action, tagged by ``kind``; there is no way
to express two confirmations at once.
"""
from datetime import date
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from app.utils.dates import parse_calendar_date, to_date_key


class SettleAction(BaseModel):
    kind: Literal["settle"] = "settle"
    obligation_id: str
    amount_paid_cents: int = Field(..., gt=0)
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None


class WriteOffAction(BaseModel):
    kind: Literal["write_off"] = "write_off"
    obligation_id: str
    notes: str = Field(default="Written off by admin", min_length=1)


class UnsettleAction(BaseModel):
    kind: Literal["unsettle"] = "unsettle"
    obligation_id: str


class MarkUnpaidAction(BaseModel):
    kind: Literal["mark_unpaid"] = "mark_unpaid"
    rule_id: str
    due_date: date
    notes: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _calendar_date(cls, value):
        parsed = parse_calendar_date(value)
        if parsed is None:
            raise ValueError("due_date must be a YYYY-MM-DD date")
        return parsed


class StopRuleAction(BaseModel):
    kind: Literal["stop"] = "stop"
    rule_id: str


class DeleteRuleAction(BaseModel):
    kind: Literal["delete"] = "delete"
    rule_id: str


class ExcludeDateAction(BaseModel):
    kind: Literal["exclude_date"] = "exclude_date"
    rule_id: str
    date: str

    @field_validator("date")
    @classmethod
    def _date_key(cls, value: str) -> str:
        key = to_date_key(value)
        if key is None:
            raise ValueError("date must be a YYYY-MM-DD date")
        return key


OperatorAction = Annotated[
    Union[
        SettleAction,
        WriteOffAction,
        UnsettleAction,
        MarkUnpaidAction,
        StopRuleAction,
        DeleteRuleAction,
        ExcludeDateAction,
    ],
    Field(discriminator="kind"),
]


class ActionRequest(BaseModel):
    action: OperatorAction


class ActionResult(BaseModel):
    kind: str
    ok: bool = True
    result: Optional[dict] = None
