"""DockSign REST API: FastAPI server for templates and documents.

Every endpoint except registration, login and health needs an
``Authorization: Bearer <token>`` header. The resolved caller is handed
to the store operations explicitly; nothing reads identity from globals.

Run with ``uvicorn --factory docksign.api:create_app`` or ``docksign serve``.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .auth import AccountService
from .categories import CategoryStore
from .config import Settings, get_settings
from .documents import DocumentStore
from .errors import DockSignError, ValidationError
from .models import (
    Category,
    CategoryInput,
    Document,
    DocumentFromTemplate,
    DocumentUpdate,
    Requester,
    SubmitRequest,
    Template,
    TemplateCreate,
    TemplateUpdate,
    User,
    Visibility,
)
from .store import FileStorage, Store
from .templates import TemplateStore

logger = logging.getLogger("docksign.api")

VERSION = "0.1.0"

_bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(_Body):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(_Body):
    email: str = ""
    password: str = ""


class ProfileUpdate(_Body):
    name: str = ""
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class UserProfile(_Body):
    id: str
    name: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)


class TokenResponse(_Body):
    access_token: str
    token_type: str = "bearer"
    user: UserProfile


class MessageResponse(_Body):
    message: str


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def _accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def _categories(request: Request) -> CategoryStore:
    return request.app.state.categories


def _templates(request: Request) -> TemplateStore:
    return request.app.state.templates


def _documents(request: Request) -> DocumentStore:
    return request.app.state.documents


def get_requester(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    accounts: AccountService = Depends(_accounts),
) -> Requester:
    """Resolve the bearer token into the calling user, or fail with 401."""
    token = credentials.credentials if credentials else None
    return accounts.resolve_token(token)


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and the RFC 5987 UTF-8 name."""
    fallback = FileStorage.safe_name(filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Auth endpoints
# ---------------------------------------------------------------------------

@router.post("/auth/register", status_code=201)
async def register(
    req: RegisterRequest,
    accounts: AccountService = Depends(_accounts),
) -> dict:
    """Create an account."""
    user = accounts.register(req.name, req.email, req.password)
    return {"message": "User created successfully", "userId": user.id}


@router.post("/auth/token", response_model=TokenResponse)
async def login(
    req: LoginRequest,
    accounts: AccountService = Depends(_accounts),
) -> TokenResponse:
    """Exchange email and password for a bearer token."""
    user = accounts.authenticate(req.email, req.password)
    return TokenResponse(access_token=accounts.issue_token(user), user=UserProfile.from_user(user))


@router.get("/user/profile", response_model=UserProfile)
async def get_profile(
    requester: Requester = Depends(get_requester),
    accounts: AccountService = Depends(_accounts),
) -> UserProfile:
    return UserProfile.from_user(accounts.get_user(requester))


@router.put("/user/profile", response_model=UserProfile)
async def update_profile(
    req: ProfileUpdate,
    requester: Requester = Depends(get_requester),
    accounts: AccountService = Depends(_accounts),
) -> UserProfile:
    """Rename the caller and optionally change the password."""
    user = accounts.update_profile(
        requester,
        req.name,
        current_password=req.current_password,
        new_password=req.new_password,
        confirm_password=req.confirm_password,
    )
    return UserProfile.from_user(user)


# ---------------------------------------------------------------------------
# Category endpoints
# ---------------------------------------------------------------------------

@router.get("/categories", response_model=list[Category])
async def list_categories(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    requester: Requester = Depends(get_requester),
    categories: CategoryStore = Depends(_categories),
) -> list[Category]:
    """List categories by name. ``parentId=null`` keeps top-level ones."""
    return categories.list(parent_id)


@router.post("/categories", response_model=Category, status_code=201)
async def create_category(
    data: CategoryInput,
    requester: Requester = Depends(get_requester),
    categories: CategoryStore = Depends(_categories),
) -> Category:
    return categories.create(data)


@router.get("/categories/{category_id}", response_model=Category)
async def get_category(
    category_id: str,
    requester: Requester = Depends(get_requester),
    categories: CategoryStore = Depends(_categories),
) -> Category:
    return categories.get(category_id)


@router.put("/categories/{category_id}", response_model=Category)
async def update_category(
    category_id: str,
    data: CategoryInput,
    requester: Requester = Depends(get_requester),
    categories: CategoryStore = Depends(_categories),
) -> Category:
    return categories.update(category_id, data)


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: str,
    requester: Requester = Depends(get_requester),
    categories: CategoryStore = Depends(_categories),
) -> MessageResponse:
    """Delete a category that has no children and no templates."""
    categories.delete(category_id)
    return MessageResponse(message="Category deleted successfully")


# ---------------------------------------------------------------------------
# Template endpoints
# ---------------------------------------------------------------------------

@router.get("/templates", response_model=list[Template])
async def list_templates(
    name: Optional[str] = Query(None),
    visibility: Optional[Visibility] = Query(None),
    requester: Requester = Depends(get_requester),
    templates: TemplateStore = Depends(_templates),
) -> list[Template]:
    """List the caller's templates plus every shared template."""
    return templates.list(requester, name=name, visibility=visibility)


@router.post("/templates", response_model=Template, status_code=201)
async def create_template(
    data: TemplateCreate,
    requester: Requester = Depends(get_requester),
    templates: TemplateStore = Depends(_templates),
) -> Template:
    return templates.create(requester, data)


@router.get("/templates/{template_id}", response_model=Template)
async def get_template(
    template_id: str,
    requester: Requester = Depends(get_requester),
    templates: TemplateStore = Depends(_templates),
) -> Template:
    return templates.get(template_id, requester)


@router.put("/templates/{template_id}", response_model=Template)
async def update_template(
    template_id: str,
    patch: TemplateUpdate,
    requester: Requester = Depends(get_requester),
    templates: TemplateStore = Depends(_templates),
) -> Template:
    """Partially update a template. Creator only."""
    return templates.update(template_id, requester, patch)


@router.delete("/templates/{template_id}", response_model=MessageResponse)
async def delete_template(
    template_id: str,
    requester: Requester = Depends(get_requester),
    templates: TemplateStore = Depends(_templates),
) -> MessageResponse:
    templates.delete(template_id, requester)
    return MessageResponse(message="Template deleted successfully")


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------

@router.post("/documents", response_model=Document, status_code=201)
async def upload_document(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    requester: Requester = Depends(get_requester),
    documents: DocumentStore = Depends(_documents),
) -> Document:
    """Create a draft document from an uploaded file (multipart form)."""
    data = await file.read() if file is not None else None
    return documents.create_from_upload(
        requester,
        title=title,
        description=description,
        filename=file.filename if file is not None else None,
        data=data,
        content_type=file.content_type if file is not None else None,
    )


@router.post("/documents/from-template/{template_id}", response_model=Document, status_code=201)
async def create_from_template(
    template_id: str,
    data: Optional[DocumentFromTemplate] = None,
    requester: Requester = Depends(get_requester),
    documents: DocumentStore = Depends(_documents),
) -> Document:
    """Instantiate a draft document from an own or shared template."""
    return documents.create_from_template(template_id, requester, data)


@router.get("/documents", response_model=list[Document])
async def list_documents(
    requester: Requester = Depends(get_requester),
    documents: DocumentStore = Depends(_documents),
) -> list[Document]:
    """List the caller's documents, newest first."""
    return documents.list(requester)


@router.get("/documents/{document_id}", response_model=Document)
async def get_document(
    document_id: str,
    requester: Requester = Depends(get_requester),
    documents: DocumentStore = Depends(_documents),
) -> Document:
    return documents.get(document_id, requester)


@router.patch("/documents/{document_id}", response_model=Document)
async def update_document(
    document_id: str,
    patch: DocumentUpdate,
    requester: Requester = Depends(get_requester),
    documents: DocumentStore = Depends(_documents),
) -> Document:
    """Merge content values and/or change title and description."""
    return documents.update(document_id, requester, patch)


@router.delete("/documents/{document_id}", response_model=MessageResponse)
async def delete_document(
    document_id: str,
    requester: Requester = Depends(get_requester),
    documents: DocumentStore = Depends(_documents),
) -> MessageResponse:
    documents.delete(document_id, requester)
    return MessageResponse(message="Document deleted successfully")


@router.post("/documents/{document_id}/submit", response_model=Document)
async def submit_document(
    document_id: str,
    req: Optional[SubmitRequest] = None,
    requester: Requester = Depends(get_requester),
    documents: DocumentStore = Depends(_documents),
) -> Document:
    """Replace the content and mark the document submitted."""
    content = req.content if req is not None else {}
    return documents.submit(document_id, requester, content)


@router.get("/documents/{document_id}/download")
async def download_document(
    document_id: str,
    requester: Requester = Depends(get_requester),
    documents: DocumentStore = Depends(_documents),
) -> Response:
    """Download the rendered PDF, or the original upload."""
    artifact = documents.download(document_id, requester)
    return Response(
        content=artifact.data,
        media_type=artifact.media_type,
        headers={"Content-Disposition": content_disposition(artifact.filename)},
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@router.get("/health")
async def health() -> dict:
    """Health check."""
    return {"status": "ok", "service": "docksign", "version": VERSION}


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DockSignError)
    async def docksign_error_handler(request: Request, exc: DockSignError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": exc.message, "code": exc.code},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        err = ValidationError(
            "Invalid input data",
            details={"errors": jsonable_encoder(exc.errors())},
        )
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
        )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(store: Optional[Store] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around a store.

    Args:
        store: Backing repositories (default: rooted at ``settings.data_dir``).
        settings: Configuration (default: from the environment).
    """
    settings = settings or get_settings()
    store = store or Store(settings.data_dir)

    app = FastAPI(
        title="DockSign",
        description="Document templates, field filling and submission.",
        version=VERSION,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.accounts = AccountService(
        store,
        secret_key=settings.secret_key,
        token_max_age=settings.token_max_age,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    app.state.categories = CategoryStore(store, default_color=settings.default_category_color)
    app.state.templates = TemplateStore(store)
    app.state.documents = DocumentStore(store, max_upload_bytes=settings.max_upload_bytes)

    _install_error_handlers(app)
    app.include_router(router)
    logger.info("DockSign API ready (data dir %s)", store.base)
    return app
