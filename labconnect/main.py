# --- Imports ---
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.datastructures import UploadFile

from labconnect.config import settings
from labconnect.services.db import LabStore, database_health
from labconnect.services.image_preproc import IMAGE_ACCEPT
from labconnect.services.llm import LlmClient, model_health
from labconnect.services.search import SearchSession, list_all_labs, run_search

app = FastAPI(title="LabConnect")

# Module logger
logger = logging.getLogger(__name__)
if settings.DEBUG:
    logger.setLevel(logging.DEBUG)
else:
    logger.setLevel(logging.INFO)

app.mount("/static", StaticFiles(directory=str(Path(__file__).parent / "static")), name="static")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.globals["image_accept"] = IMAGE_ACCEPT

# Form field name of the resume picker
UPLOAD_FIELD = "resume"


# Upstream clients are resolved per request so tests can override them
def get_llm_client() -> LlmClient:
    return LlmClient()


def get_lab_store() -> LabStore:
    return LabStore()


def _session_json(session: SearchSession) -> Dict[str, Any]:
    return {
        "state": session.state.value,
        "filename": session.filename,
        "error": session.error,
        "details": session.details.model_dump() if session.details else None,
        "labs": [lab.model_dump() | {"is_top_match": lab.is_top_match} for lab in session.labs],
        "elapsed_sec": session.elapsed_sec,
    }


# Pull the uploaded resume out of the multipart form, tolerating an empty picker
async def _read_resume(request: Request) -> tuple[Optional[bytes], str, Optional[str]]:
    form = await request.form()
    upload = form.get(UPLOAD_FIELD)
    if not isinstance(upload, UploadFile):
        return None, "", None
    content = await upload.read()
    return content, upload.filename or "", upload.content_type


# --- Search page ---
@app.get("/", response_class=HTMLResponse)
# Render the upload form with no results
async def home(request: Request):
    return templates.TemplateResponse(request, "search.html", {"session": SearchSession.idle()})


@app.get("/favicon.ico")
# Serve the SVG favicon from static assets
async def favicon():
    fav = Path(__file__).parent / "static" / "favicon.svg"
    if fav.exists():
        return FileResponse(str(fav), media_type="image/svg+xml")
    return HTMLResponse(status_code=404, content="favicon not found")


@app.post("/search", response_class=HTMLResponse)
# Run the match workflow on the uploaded resume and render ranked labs
async def search(
    request: Request,
    client: LlmClient = Depends(get_llm_client),
    store: LabStore = Depends(get_lab_store),
):
    content, filename, content_type = await _read_resume(request)
    session = await run_in_threadpool(
        run_search, content, filename, content_type, client=client, store=store
    )
    return templates.TemplateResponse(request, "search.html", {"session": session})


@app.post("/api/search")
# JSON variant of /search for scripted use
async def api_search(
    request: Request,
    client: LlmClient = Depends(get_llm_client),
    store: LabStore = Depends(get_lab_store),
):
    content, filename, content_type = await _read_resume(request)
    session = await run_in_threadpool(
        run_search, content, filename, content_type, client=client, store=store
    )
    status = 200 if session.error is None else 422
    return JSONResponse(_session_json(session), status_code=status)


# --- Lab listing ---
@app.get("/labs", response_class=HTMLResponse)
# Plain listing of every lab, no matching
async def labs_page(request: Request, store: LabStore = Depends(get_lab_store)):
    session = await run_in_threadpool(list_all_labs, store)
    return templates.TemplateResponse(request, "labs.html", {"session": session})


@app.get("/health")
# Report model endpoint and lab table reachability
async def health(
    client: LlmClient = Depends(get_llm_client),
    store: LabStore = Depends(get_lab_store),
):
    model = await run_in_threadpool(model_health, client)
    database = await run_in_threadpool(database_health, store)
    return {"ok": bool(model.get("ok") and database.get("ok")), "model": model, "database": database}
