import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy.orm import Session

from . import __version__
from .citation_service import CitationService
from .citation_store import CitationStore, PersistenceError
from .config import Settings, configure_logging, get_settings
from .courtlistener import CourtListenerClient
from .database import init_db, make_engine, make_session_factory
from .document_extractor import (
    DocumentTextExtractor,
    ExtractionFailed,
    UnsupportedFormat,
    clean_citation_lines,
)
from .models import STATUS_DISPLAY, Citation
from .token_store import TokenStore

logger = logging.getLogger(__name__)


# Pydantic models for request/response
class ValidateRequest(BaseModel):
    text: str
    clear_existing: bool = False


class TokenRequest(BaseModel):
    token: str


class StatusOut(BaseModel):
    value: str
    label: str
    severity: str


class CitationOut(BaseModel):
    id: str
    original_text: str
    normalized_citation: Optional[str] = None
    case_name: Optional[str] = None
    citation_status: StatusOut
    case_name_status: StatusOut
    cluster_id: Optional[str] = None
    courtlistener_url: Optional[str] = None
    opinion_text: Optional[str] = None
    notes: Optional[str] = None
    created_at: str


def _status_out(status) -> StatusOut:
    label, severity = STATUS_DISPLAY[status]
    return StatusOut(value=status.value, label=label, severity=severity)


def serialize_citation(citation: Citation) -> CitationOut:
    return CitationOut(
        id=citation.id,
        original_text=citation.original_text,
        normalized_citation=citation.normalized_citation,
        case_name=citation.case_name,
        citation_status=_status_out(citation.citation_status),
        case_name_status=_status_out(citation.case_name_status),
        cluster_id=citation.cluster_id,
        courtlistener_url=citation.courtlistener_url,
        opinion_text=citation.opinion_text,
        notes=citation.notes,
        created_at=citation.created_at.isoformat(),
    )


# Dependencies
def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.token_store


def get_client(request: Request) -> CourtListenerClient:
    return request.app.state.client


def get_citation_service(
    request: Request,
    db: Session = Depends(get_db),
    client: CourtListenerClient = Depends(get_client),
) -> CitationService:
    return CitationService(
        client,
        CitationStore(db),
        fetch_opinions=request.app.state.settings.fetch_opinion_text,
    )


def get_document_extractor() -> DocumentTextExtractor:
    return DocumentTextExtractor()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    engine = make_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        init_db(engine)
        yield
        app.state.client.close()
        engine.dispose()

    app = FastAPI(title="Cite Verifier API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.token_store = TokenStore.from_settings(settings)
    app.state.client = CourtListenerClient.from_settings(settings, app.state.token_store)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


def register_routes(app: FastAPI):

    @app.get("/")
    async def root():
        return {"message": "Cite Verifier API", "version": __version__}

    @app.post("/api/citations/validate", response_model=List[CitationOut])
    async def validate_citations(
        request: ValidateRequest,
        service: CitationService = Depends(get_citation_service),
    ):
        """
        Validate every line of the submitted text against CourtListener.
        Optionally clears previous results first.
        """
        try:
            if request.clear_existing:
                service.clear_all()
            citations = await service.validate_text(request.text)
        except PersistenceError as e:
            raise HTTPException(status_code=500, detail=str(e))

        return [serialize_citation(c) for c in citations]

    @app.get("/api/citations", response_model=List[CitationOut])
    async def list_citations(service: CitationService = Depends(get_citation_service)):
        """List all stored citation records in the order they were created."""
        return [serialize_citation(c) for c in service.list_citations()]

    @app.get("/api/citations/{citation_id}", response_model=CitationOut)
    async def get_citation(
        citation_id: str,
        service: CitationService = Depends(get_citation_service),
    ):
        citation = service.get_citation(citation_id)
        if not citation:
            raise HTTPException(status_code=404, detail="Citation not found")
        return serialize_citation(citation)

    @app.delete("/api/citations/{citation_id}")
    async def delete_citation(
        citation_id: str,
        service: CitationService = Depends(get_citation_service),
    ):
        citation = service.get_citation(citation_id)
        if not citation:
            raise HTTPException(status_code=404, detail="Citation not found")

        try:
            service.delete_citation(citation)
        except PersistenceError as e:
            raise HTTPException(status_code=500, detail=str(e))

        return {"message": "Citation deleted", "id": citation_id}

    @app.delete("/api/citations")
    async def clear_citations(service: CitationService = Depends(get_citation_service)):
        """Delete every stored citation record."""
        try:
            service.clear_all()
        except PersistenceError as e:
            raise HTTPException(status_code=500, detail=str(e))

        return {"message": "All citations deleted"}

    @app.post("/api/documents/extract")
    async def extract_document(
        file: UploadFile = File(...),
        clean: bool = Form(True),
        extractor: DocumentTextExtractor = Depends(get_document_extractor),
    ):
        """
        Extract text from an uploaded PDF, Word or text file.
        With clean=true only candidate citation lines are returned.
        """
        suffix = Path(file.filename or "").suffix.lower()

        with tempfile.TemporaryDirectory() as tmp_dir:
            file_path = Path(tmp_dir) / f"upload{suffix}"
            with open(file_path, "wb") as buffer:
                shutil.copyfileobj(file.file, buffer)

            try:
                text = extractor.extract_text(file_path)
            except UnsupportedFormat as e:
                raise HTTPException(status_code=400, detail=str(e))
            except ExtractionFailed as e:
                raise HTTPException(status_code=422, detail=str(e))

        if clean:
            text = clean_citation_lines(text)

        return {"filename": file.filename, "text": text}

    @app.get("/api/token")
    async def token_status(token_store: TokenStore = Depends(get_token_store)):
        return {"has_token": token_store.has_token()}

    @app.put("/api/token")
    async def set_token(
        request: TokenRequest,
        token_store: TokenStore = Depends(get_token_store),
    ):
        try:
            token_store.set(request.token)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return {"message": "API token saved", "has_token": True}

    @app.delete("/api/token")
    async def delete_token(token_store: TokenStore = Depends(get_token_store)):
        token_store.clear()
        return {"message": "API token deleted", "has_token": False}


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
