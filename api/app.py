"""FastAPI application for translation pipeline."""
import asyncio
import logging
import threading
import time
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from config import Config
from exceptions import (
    CardinalityError,
    ExtractionError,
    OracleError,
    RenderingError,
    StorageError,
)
from models import GlossaryTerm, JobRecord, format_glossary, low_confidence_ids, outcome_to_dict, page_to_dict
from pipeline import TranslationPipeline

logger = logging.getLogger(__name__)

# Configuration
config = Config.from_env()

# In-memory job store
jobs: Dict[str, JobRecord] = {}
cancel_events: Dict[str, threading.Event] = {}
retry_locks: Dict[str, asyncio.Lock] = {}


@lru_cache(maxsize=1)
def get_pipeline() -> TranslationPipeline:
    return TranslationPipeline(config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if get_pipeline.cache_info().currsize:
        await get_pipeline().close()


app = FastAPI(title="Document Translation API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class GlossaryTermIn(BaseModel):
    source: str
    target: str


class TranslateRequest(BaseModel):
    source_lang: str = "auto"
    target_lang: str = Field(..., min_length=1)
    formality: str = "default"
    glossary: List[GlossaryTermIn] = Field(default_factory=list)


class TextEdit(BaseModel):
    text: str


def _get_job(job_id: str) -> JobRecord:
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    return jobs[job_id]


def _ensure_not_translating(job: JobRecord) -> None:
    if job.status == "translating":
        raise HTTPException(status_code=409, detail="A translation is running for this document")


def _ensure_idle(job: JobRecord) -> None:
    _ensure_not_translating(job)
    lock = retry_locks.get(job.job_id)
    if lock is not None and lock.locked():
        raise HTTPException(status_code=409, detail="A page retry is running for this document")


def _job_to_dict(job: JobRecord) -> dict:
    return {
        "job_id": job.job_id,
        "status": job.status,
        "filename": job.filename,
        "progress": job.progress,
        "source_lang": job.source_lang,
        "target_lang": job.target_lang,
        "pages": [page_to_dict(page) for page in job.pages],
        "outcomes": [outcome_to_dict(outcome) for outcome in job.outcomes],
        "low_confidence": {
            str(page.page_number): low_confidence_ids(page, config.low_confidence_threshold)
            for page in job.pages
        },
        "error": job.error,
        "duration_seconds": job.duration_seconds,
    }


async def run_translation(job_id: str, pipeline: TranslationPipeline):
    """Background task to run the document translation."""
    job = jobs[job_id]
    cancel = cancel_events[job_id]
    start_time = time.time()

    def progress_callback(fraction: float):
        job.progress = int(fraction * 100)

    try:
        job.outcomes = await pipeline.translate(
            job.pages,
            job.source_lang,
            job.target_lang,
            job.formality,
            job.glossary,
            on_progress=progress_callback,
            cancel=cancel,
        )
        if len(job.outcomes) < len(job.pages):
            job.status = "cancelled"
        else:
            job.status = "done"
            job.progress = 100
            pipeline.record_history(job.filename, job.source_lang, job.target_lang, job.outcomes)
    except Exception as e:
        job.status = "failed"
        job.error = str(e)
        logger.exception("Translation failed for job %s", job_id)
    finally:
        job.duration_seconds = time.time() - start_time


@app.post("/documents")
async def upload_document(
    file: UploadFile = File(...),
    pipeline: TranslationPipeline = Depends(get_pipeline),
):
    """
    Upload a PDF or image and extract its pages.

    Word documents are not extracted; send them to POST /markup/translate.
    """
    content = await file.read()
    filename = file.filename or "upload"
    try:
        key, pages = await pipeline.ingest(content, filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExtractionError as e:
        raise HTTPException(status_code=422, detail=f"Could not extract the document: {e}")
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

    job_id = str(uuid.uuid4())[:8]
    jobs[job_id] = JobRecord(job_id=job_id, status="extracted", filename=filename, storage_key=key, pages=pages)
    return _job_to_dict(jobs[job_id])


@app.get("/documents/{job_id}")
async def get_document(job_id: str):
    """Get the pages, status and outcomes of a document."""
    return _job_to_dict(_get_job(job_id))


@app.patch("/documents/{job_id}/pages/{page_number}/elements/{element_id}")
async def edit_element(job_id: str, page_number: int, element_id: str, edit: TextEdit):
    """Correct the extracted text of a block or table cell."""
    job = _get_job(job_id)
    _ensure_idle(job)
    page = next((p for p in job.pages if p.page_number == page_number), None)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Page {page_number} not found")
    try:
        page.set_text(element_id, edit.text)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Element {element_id} not found on page {page_number}")
    return page_to_dict(page)


@app.post("/documents/{job_id}/translate")
async def translate_document(
    job_id: str,
    request: TranslateRequest,
    background_tasks: BackgroundTasks,
    pipeline: TranslationPipeline = Depends(get_pipeline),
):
    """
    Start translating every page of a document.

    Returns immediately. Use GET /documents/{job_id} to check progress.
    """
    job = _get_job(job_id)
    _ensure_idle(job)

    job.source_lang = request.source_lang
    job.target_lang = request.target_lang
    job.formality = request.formality
    job.glossary = format_glossary([GlossaryTerm(t.source, t.target) for t in request.glossary])
    job.status = "translating"
    job.outcomes = []
    job.progress = 0
    job.error = None
    cancel_events[job_id] = threading.Event()

    background_tasks.add_task(run_translation, job_id, pipeline)
    return {
        "job_id": job_id,
        "message": "Translation job started",
        "status_url": f"/documents/{job_id}",
    }


@app.post("/documents/{job_id}/cancel")
async def cancel_translation(job_id: str):
    """Stop a running translation after the current page."""
    job = _get_job(job_id)
    if job.status != "translating":
        raise HTTPException(status_code=409, detail=f"Nothing to cancel. Current status: {job.status}")
    cancel_events[job_id].set()
    return {"job_id": job_id, "message": "Cancellation requested"}


@app.post("/documents/{job_id}/pages/{page_number}/retry")
async def retry_page(
    job_id: str,
    page_number: int,
    pipeline: TranslationPipeline = Depends(get_pipeline),
):
    """
    Translate one page again and replace only its outcome.

    Retries of the same document wait for each other, so only one oracle
    call per document is in flight.
    """
    job = _get_job(job_id)
    _ensure_not_translating(job)
    lock = retry_locks.setdefault(job_id, asyncio.Lock())
    async with lock:
        _ensure_not_translating(job)
        if not job.outcomes:
            raise HTTPException(status_code=400, detail="The document has not been translated yet")
        try:
            job.outcomes = await pipeline.retry_page(
                job.outcomes, job.pages, page_number, job.source_lang, job.target_lang, job.formality, job.glossary
            )
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Page {page_number} has no translation outcome")
    outcome = next(o for o in job.outcomes if o.page_number == page_number)
    return outcome_to_dict(outcome)


@app.get("/documents/{job_id}/download")
async def download_document(
    job_id: str,
    format: str = Query("pdf", pattern="^(pdf|docx)$"),
    pipeline: TranslationPipeline = Depends(get_pipeline),
):
    """Download the translated document as PDF or DOCX."""
    job = _get_job(job_id)
    _ensure_idle(job)
    try:
        artifact = pipeline.export(job.outcomes, job.filename, formats=[format])[0]
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RenderingError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


@app.delete("/documents/{job_id}")
async def delete_document(job_id: str, pipeline: TranslationPipeline = Depends(get_pipeline)):
    """Discard a document and its stored upload."""
    job = _get_job(job_id)
    _ensure_idle(job)
    pipeline.discard(job.storage_key)
    del jobs[job_id]
    cancel_events.pop(job_id, None)
    retry_locks.pop(job_id, None)
    return {"job_id": job_id, "deleted": True}


@app.post("/markup/translate")
async def translate_markup(
    file: UploadFile = File(...),
    target_lang: str = Form(...),
    source_lang: str = Form("auto"),
    formality: str = Form("default"),
    glossary: str = Form(""),
    pipeline: TranslationPipeline = Depends(get_pipeline),
):
    """Translate a Word document in place and return the new .docx."""
    content = await file.read()
    filename = file.filename or "document.docx"
    try:
        artifact = await pipeline.translate_markup(content, filename, source_lang, target_lang, formality, glossary)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (OracleError, CardinalityError) as e:
        raise HTTPException(status_code=502, detail=f"Translation failed: {e}")

    pipeline.history.append(filename, source_lang, target_lang, formats=["docx"])
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


@app.get("/history")
async def list_history(
    limit: Optional[int] = Query(None, ge=1),
    pipeline: TranslationPipeline = Depends(get_pipeline),
):
    """Completed translations, most recent first."""
    return [record.to_dict() for record in pipeline.history.list(limit=limit)]


@app.delete("/history/{record_id}")
async def delete_history(record_id: str, pipeline: TranslationPipeline = Depends(get_pipeline)):
    if not pipeline.history.delete(record_id):
        raise HTTPException(status_code=404, detail="History record not found")
    return {"id": record_id, "deleted": True}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "oracle_url": config.oracle_url,
        "oracle_model": config.oracle_model,
        "translation_payload": config.translation_payload,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
