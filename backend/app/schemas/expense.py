from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: float = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=64)
    currency: str = Field(default="BRL", min_length=1, max_length=8)


class ExpenseUpdate(BaseModel):
    description: Optional[str] = Field(default=None, max_length=500)
    amount: Optional[float] = None
    category: Optional[str] = Field(default=None, max_length=64)
    currency: Optional[str] = Field(default=None, max_length=8)


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    description: str
    amount: float
    category: str
    currency: str
    created_at: datetime
    updated_at: datetime


class ExpenseQuery(BaseModel):
    category: Optional[str] = None
    currency: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(default=100, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class ExpenseListResponse(BaseModel):
    items: list[ExpenseOut]
    count: int


class ExpenseStoreSummary(BaseModel):
    total_expenses: int
    total_amount: float
    categories: list[str]
    currencies: list[str]
    average_amount: float


class CategoriesResponse(BaseModel):
    categories: list[str]
    default: str


class ExtractExpensesRequest(BaseModel):
    text: str = Field(..., max_length=4000)
    language: Optional[str] = Field(default=None, max_length=32)
    override_provider: Optional[str] = None
    override_model: Optional[str] = None

    @field_validator("language")
    @classmethod
    def _blank_language_is_default(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class ExtractionSummaryOut(BaseModel):
    total_expenses: int
    total_amount: float
    categories: list[str]


class ExtractedExpensesData(BaseModel):
    expenses: list[ExpenseOut]
    summary: ExtractionSummaryOut
    extracted_at: datetime
    confidence: float
    source: str
    skipped: int = 0


class ExtractExpensesResponse(BaseModel):
    success: bool
    message: str
    data: ExtractedExpensesData
    request_id: str
    timestamp: datetime
