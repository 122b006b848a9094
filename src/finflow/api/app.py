"""
FastAPI Application Module

Backend for the FinFlow personal-finance app: per-user transactions, loans
and document metadata, plus a financial-advisor chatbot proxied to an
OpenRouter-compatible completion gateway.

Key Features:
- Bearer-token authorization against a pluggable identity provider
- Per-user record sequences in a pluggable key-value store
- Chat turns assembled from stored context and persisted only on success
- Structured logging, Prometheus metrics and OpenTelemetry tracing

Every failure is answered with a uniform ``{"error": ...}`` body.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CollectorRegistry, Counter, generate_latest
from structlog import get_logger

from ..config import Settings, get_settings
from ..domain.errors import (
    AuthorizationError,
    ConfigurationError,
    FinFlowError,
    UpstreamError,
)
from ..logging_config import configure_logging
from ..repositories.base import RecordStore
from ..repositories.memory import InMemoryRecordStore
from ..repositories.supabase import SupabaseRecordStore
from ..services.chat import ChatService
from ..services.completion import CompletionClient, KeyCheck
from ..services.identity import (
    IdentityProvider,
    InMemoryIdentityProvider,
    SupabaseIdentityProvider,
)
from ..services.records import RecordService
from .schemas import (
    ChatHistoryResponse,
    ChatReplyResponse,
    ChatRequest,
    DocumentCreate,
    DocumentResponse,
    DocumentsResponse,
    LoanCreate,
    LoanResponse,
    LoansResponse,
    SigninRequest,
    SignupRequest,
    SpendingSummaryResponse,
    SuccessResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionsResponse,
    UserResponse,
    VerifyKeyRequest,
)

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

REQUESTS = Counter("requests_total", "Total requests by route", ["path"], registry=CUSTOM_REGISTRY)
ERRORS = Counter("errors_total", "Total error responses by type", ["error"], registry=CUSTOM_REGISTRY)
CHAT_TURNS = Counter("chat_turns_total", "Chat turns persisted", registry=CUSTOM_REGISTRY)
GATEWAY_FAILURES = Counter(
    "gateway_failures_total", "Chat turns lost to gateway failures", registry=CUSTOM_REGISTRY
)

logger = get_logger()

security = HTTPBearer(auto_error=False)


def build_store(settings: Settings) -> RecordStore:
    """Creates the record store selected in settings"""
    if settings.store_backend == "supabase":
        if not (settings.supabase_url and settings.supabase_service_role_key):
            raise ValueError("Supabase store requires FINFLOW_SUPABASE_URL and FINFLOW_SUPABASE_SERVICE_ROLE_KEY")
        return SupabaseRecordStore(
            settings.supabase_url,
            settings.supabase_service_role_key,
            table=settings.supabase_kv_table,
        )
    return InMemoryRecordStore()


def build_identity(settings: Settings) -> IdentityProvider:
    """Creates the identity provider selected in settings"""
    if settings.identity_backend == "supabase":
        if not (settings.supabase_url and settings.supabase_service_role_key):
            raise ValueError("Supabase identity requires FINFLOW_SUPABASE_URL and FINFLOW_SUPABASE_SERVICE_ROLE_KEY")
        return SupabaseIdentityProvider(settings.supabase_url, settings.supabase_service_role_key)
    return InMemoryIdentityProvider()


def get_identity(request: Request) -> IdentityProvider:
    """Returns the identity provider"""
    return request.app.state.identity


def get_record_service(request: Request) -> RecordService:
    """Returns the record service"""
    return request.app.state.records


def get_chat_service(request: Request) -> ChatService:
    """Returns the chat orchestrator"""
    return request.app.state.chat


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    identity: IdentityProvider = Depends(get_identity),
) -> str:
    """Resolves the bearer credential to a user id or rejects with 401"""
    token = credentials.credentials if credentials else None
    user_id = await identity.verify(token)
    if not user_id:
        raise AuthorizationError()
    return user_id


router = APIRouter()


# ==================== TRANSACTIONS ====================

@router.get("/transactions", response_model=TransactionsResponse)
async def list_transactions(
    user_id: str = Depends(get_current_user),
    records: RecordService = Depends(get_record_service),
):
    """Lists the user's transactions in insertion order"""
    try:
        return {"transactions": await records.list_transactions(user_id)}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("list_transactions_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to fetch transactions")


@router.post("/transactions", response_model=TransactionResponse)
async def add_transaction(
    body: TransactionCreate,
    user_id: str = Depends(get_current_user),
    records: RecordService = Depends(get_record_service),
):
    """Appends a transaction; date defaults to today"""
    try:
        transaction = await records.add_transaction(
            user_id, body.name, body.amount, body.category, date=body.date
        )
        return {"transaction": transaction}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("add_transaction_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to add transaction")


@router.get("/transactions/summary", response_model=SpendingSummaryResponse)
async def spending_summary(
    user_id: str = Depends(get_current_user),
    records: RecordService = Depends(get_record_service),
):
    """Totals spending per category"""
    try:
        return await records.spending_summary(user_id)
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("spending_summary_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to summarize transactions")


# ==================== LOANS ====================

@router.get("/loans", response_model=LoansResponse)
async def list_loans(
    user_id: str = Depends(get_current_user),
    records: RecordService = Depends(get_record_service),
):
    """Lists the user's loans"""
    try:
        return {"loans": await records.list_loans(user_id)}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("list_loans_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to fetch loans")


@router.post("/loans", response_model=LoanResponse)
async def create_loan(
    body: LoanCreate,
    user_id: str = Depends(get_current_user),
    records: RecordService = Depends(get_record_service),
):
    """Opens a loan at the fixed interest rate"""
    try:
        loan = await records.create_loan(user_id, body.amount, body.duration, body.purpose)
        return {"loan": loan}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("create_loan_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to create loan")


# ==================== CHAT ====================

@router.get("/chat/history", response_model=ChatHistoryResponse)
async def chat_history(
    user_id: str = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    """Returns the full chat log in chronological order"""
    try:
        return {"messages": await chat.history(user_id)}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("chat_history_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to fetch chat history")


@router.post("/chat", response_model=ChatReplyResponse)
async def send_chat_message(
    body: ChatRequest,
    user_id: str = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Runs one chat turn through the completion gateway.
    Nothing is persisted when the gateway call fails.
    """
    try:
        reply = await chat.send_message(
            user_id, body.message, api_key=body.api_key, model=body.model
        )
        CHAT_TURNS.inc()
        return {"message": reply}
    except (ConfigurationError, UpstreamError):
        GATEWAY_FAILURES.inc()
        raise
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("chat_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to process chat message")


@router.post("/chat/verify-key", response_model=KeyCheck, response_model_exclude_none=True)
async def verify_gateway_key(
    body: VerifyKeyRequest,
    user_id: str = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    """Checks a user-supplied gateway key with a minimal completion"""
    try:
        result = await chat.gateway.verify_key(body.api_key, model=body.model)
        logger.info("gateway_key_checked", user_id=user_id, valid=result.valid)
        return result
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("verify_key_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to verify API key")


# ==================== DOCUMENTS ====================

@router.get("/documents", response_model=DocumentsResponse)
async def list_documents(
    user_id: str = Depends(get_current_user),
    records: RecordService = Depends(get_record_service),
):
    """Lists uploaded document metadata"""
    try:
        return {"documents": await records.list_documents(user_id)}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("list_documents_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to fetch documents")


@router.post("/documents", response_model=DocumentResponse)
async def upload_document(
    body: DocumentCreate,
    user_id: str = Depends(get_current_user),
    records: RecordService = Depends(get_record_service),
):
    """Records metadata for an uploaded document"""
    try:
        document = await records.add_document(user_id, body.name, body.size)
        return {"document": document}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("upload_document_error", user_id=user_id, error=str(e))
        raise FinFlowError("Failed to upload document")


@router.delete("/documents/{document_id}", response_model=SuccessResponse)
async def delete_document(
    document_id: str,
    user_id: str = Depends(get_current_user),
    records: RecordService = Depends(get_record_service),
):
    """Removes a document by id; unknown ids are a no-op"""
    try:
        await records.delete_document(user_id, document_id)
        return {"success": True}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("delete_document_error", user_id=user_id, document_id=document_id, error=str(e))
        raise FinFlowError("Failed to delete document")


# ==================== AUTH ====================

@router.post("/signup", response_model=UserResponse)
async def signup(body: SignupRequest, identity: IdentityProvider = Depends(get_identity)):
    """Registers a user with the identity provider"""
    try:
        user = await identity.create_user(body.email, body.password, body.name)
        return {"user": user}
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("signup_error", error=str(e))
        raise FinFlowError("Failed to create user")


@router.post("/signin")
async def signin(body: SigninRequest, identity: IdentityProvider = Depends(get_identity)):
    """Exchanges email and password for a bearer token"""
    try:
        session = await identity.sign_in(body.email, body.password)
        return session.model_dump(by_alias=True)
    except FinFlowError:
        raise
    except Exception as e:
        logger.error("signin_error", error=str(e))
        raise FinFlowError("Failed to sign in")


@router.get("/health")
async def health():
    return {"status": "ok", "message": "FinFlow backend is running"}


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    identity: Optional[IdentityProvider] = None,
    gateway: Optional[CompletionClient] = None,
) -> FastAPI:
    """Builds the application, wiring collaborators from settings unless given"""
    settings = settings or get_settings()
    configure_logging(settings)

    store = store or build_store(settings)
    identity = identity or build_identity(settings)
    gateway = gateway or CompletionClient(settings.gateway_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Releases outbound HTTP clients on shutdown"""
        logger.info("application_startup_complete")

        yield

        await gateway.close()
        await store.close()
        await identity.close()
        logger.info("application_shutdown_complete")

    app = FastAPI(
        title=settings.app_name,
        description="Personal-finance API with an AI financial advisor",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.identity = identity
    app.state.records = RecordService(store)
    app.state.chat = ChatService(store, gateway)

    # Enable cross-origin requests
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Set up request tracing
    FastAPIInstrumentor.instrument_app(app)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Tracks requests"""
        logger.info("request_started", method=request.method, path=request.url.path)
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("request_failed", path=request.url.path, error=str(e))
            raise
        finally:
            # Route template, not the raw path
            route = request.scope.get("route")
            REQUESTS.labels(path=getattr(route, "path", "unmatched")).inc()

    @app.exception_handler(FinFlowError)
    async def finflow_error_handler(request: Request, exc: FinFlowError):
        ERRORS.labels(error=type(exc).__name__).inc()
        logger.warning(
            "request_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            status_code=exc.status_code,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        ERRORS.labels(error="RequestValidationError").inc()
        logger.warning("request_invalid", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(status_code=422, content={"error": "Invalid request body"})

    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/metrics")
    async def metrics():
        """Provides Prometheus metrics for system monitoring"""
        return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")

    return app


app = create_app()
