"""Request and response bodies for the HTTP API."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..domain.models import ChatMessage, Document, Loan, Transaction, User


class TransactionCreate(BaseModel):
    name: str
    amount: float
    category: str
    date: Optional[str] = None


class LoanCreate(BaseModel):
    """Loan application; numeric fields may arrive as strings from form inputs."""

    amount: float = Field(gt=0)
    duration: int = Field(ge=0, description="Term in months")
    purpose: Optional[str] = None


class DocumentCreate(BaseModel):
    name: str
    size: int = Field(ge=0)


class ChatRequest(BaseModel):
    """Chat turn with optional per-request gateway overrides."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    message: str = Field(min_length=1)
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    model: Optional[str] = None


class VerifyKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    api_key: str = Field(alias="apiKey")
    model: Optional[str] = None


class SignupRequest(BaseModel):
    email: str
    password: str
    name: str


class SigninRequest(BaseModel):
    email: str
    password: str


class TransactionsResponse(BaseModel):
    transactions: List[Transaction]


class TransactionResponse(BaseModel):
    transaction: Transaction


class SpendingSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: float
    category_totals: Dict[str, float] = Field(alias="categoryTotals")


class LoansResponse(BaseModel):
    loans: List[Loan]


class LoanResponse(BaseModel):
    loan: Loan


class DocumentsResponse(BaseModel):
    documents: List[Document]


class DocumentResponse(BaseModel):
    document: Document


class ChatHistoryResponse(BaseModel):
    messages: List[ChatMessage]


class ChatReplyResponse(BaseModel):
    message: ChatMessage


class UserResponse(BaseModel):
    user: User


class SuccessResponse(BaseModel):
    success: bool = True
