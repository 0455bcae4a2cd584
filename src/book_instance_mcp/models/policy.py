"""Library policy model: named numeric parameters configured by administrators."""

from pydantic import BaseModel, ConfigDict, Field

MAX_LOAN_DURATION = "MaxLoanDuration"


class LibraryPolicy(BaseModel):
    """A single policy entry such as ``MaxLoanDuration = 14``."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(..., min_length=1, max_length=100, examples=[MAX_LOAN_DURATION])
    value: int = Field(..., description="Numeric policy value", examples=[14])
    description: str | None = None
