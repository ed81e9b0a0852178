import json
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response

from converter import ConversionRequest, StackConverter
from errors import InputValidationError, StackMorphError, UncaughtProcessingError
from llm_client import ModelClient
from settings import Settings
from workspace import WorkspaceRoot, scratch_workspace

settings = Settings.from_env()

# Logging configuration
os.makedirs(settings.log_dir, exist_ok=True)
log_file = os.path.join(settings.log_dir, f"conversion_{datetime.now():%Y%m%d}.log")

logger = logging.getLogger("StackMorph")
logger.setLevel(logging.DEBUG)

if not logger.handlers:
    file_handler = TimedRotatingFileHandler(log_file, when="midnight", interval=1, backupCount=7)
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    logger.addHandler(console_handler)

if not settings.api_key:
    logger.error("FATAL ERROR: OPENAI_API_KEY environment variable not set.")

ZIP_CONTENT_TYPES = {
    "application/zip",
    "application/x-zip-compressed",
    "application/x-zip",
    "multipart/x-zip",
}

_model_client: Optional[ModelClient] = None


def get_settings() -> Settings:
    return settings


def get_workspace_root(settings: Settings = Depends(get_settings)) -> WorkspaceRoot:
    return WorkspaceRoot(settings.workspace_root)


def get_model_client(settings: Settings = Depends(get_settings)) -> ModelClient:
    global _model_client
    settings.require_api_key()
    if _model_client is None:
        _model_client = ModelClient(settings)
    return _model_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    WorkspaceRoot(settings.workspace_root).ensure()
    logger.info(f"Stack Morph running in '{settings.mode.value}' mode with model {settings.model}")
    yield


app = FastAPI(title="Stack Morph", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Conversion-Status"],
)


@app.exception_handler(StackMorphError)
async def stack_morph_error_handler(request: Request, exc: StackMorphError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(str(error["loc"][-1]) for error in exc.errors() if error.get("loc"))
    logger.warning(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
    error = InputValidationError(f"Invalid form field(s): {fields}" if fields else None)
    return await stack_morph_error_handler(request, error)


def _is_zip_upload(upload: UploadFile) -> bool:
    if upload.filename and upload.filename.lower().endswith(".zip"):
        return True
    return (upload.content_type or "").split(";")[0].strip() in ZIP_CONTENT_TYPES


def _download_name(filename: str) -> str:
    name = Path(filename.replace("\\", "/")).name.replace('"', "")
    try:
        name.encode("latin-1")
    except UnicodeEncodeError:
        name = "project.zip"
    return f"converted-{name or 'project.zip'}"


@app.get("/health")
def health():
    logger.info("Health check endpoint accessed")
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.post("/convert")
async def convert_project(
    source_code: UploadFile = File(None, alias="sourceCode"),
    target_stack: str = Form(None, alias="targetStack"),
    settings: Settings = Depends(get_settings),
    workspace_root: WorkspaceRoot = Depends(get_workspace_root),
    model_client: ModelClient = Depends(get_model_client),
):
    logger.info("[API /convert] Received conversion request.")
    start_time = time.time()

    settings.require_api_key()

    if source_code is None or not source_code.filename:
        raise InputValidationError('No .zip file was uploaded under the "sourceCode" field.')
    if not target_stack or not target_stack.strip():
        raise InputValidationError('The "targetStack" field is required.')
    if not _is_zip_upload(source_code):
        raise InputValidationError("The uploaded file must be a .zip archive.")

    data = await source_code.read()
    if len(data) == 0:
        raise InputValidationError("Uploaded file is empty")

    request = ConversionRequest(
        source_archive=data,
        filename=source_code.filename,
        target_stack=target_stack.strip(),
        mode=settings.mode,
    )
    logger.info(
        f"[API /convert] Converting {request.filename} to {request.target_stack} ({request.mode.value} mode)"
    )

    converter = StackConverter(model_client, strict_raw_output=settings.strict_raw_output)
    try:
        with scratch_workspace(workspace_root) as workspace:
            result = await converter.convert(request, workspace)
    except StackMorphError:
        raise
    except Exception as e:
        logger.exception(f"[API /convert] A critical error occurred during the conversion process: {e}")
        raise UncaughtProcessingError()

    elapsed = round(time.time() - start_time, 2)
    status = {"status": "completed", "mode": request.mode.value, "duration_seconds": elapsed}
    status.update(result.summary())
    logger.info(f"[API /convert] Sent converted .zip file to client in {elapsed} seconds.")

    return Response(
        content=result.archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{_download_name(request.filename)}"',
            "X-Conversion-Status": json.dumps(status),
        },
    )


def register_frontend(app: FastAPI, dist: Path) -> None:
    """Serve the pre-built client, falling back to index.html for client-side routes."""
    dist = dist.resolve()
    index = dist / "index.html"

    @app.get("/{full_path:path}", include_in_schema=False)
    def serve_frontend(full_path: str):
        candidate = (dist / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(dist):
            return FileResponse(candidate)
        return FileResponse(index)


if settings.frontend_dist.is_dir():
    register_frontend(app, settings.frontend_dist)
else:
    logger.warning(
        f'Frontend build directory "{settings.frontend_dist}" not found. The server will only handle API routes.'
    )

    @app.get("/")
    def root():
        logger.info("Root endpoint accessed")
        return {
            "message": "Stack Morph backend is running. Build the frontend to serve it from this server.",
            "version": app.version,
            "mode": settings.mode.value,
            "endpoints": {
                "/convert": "POST - Upload a project ZIP (sourceCode) and a target stack (targetStack)",
                "/health": "GET - Health check",
            },
        }


def main() -> None:
    logger.info("Starting FastAPI application")
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
