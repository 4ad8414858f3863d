"""Browser-facing upload/status/download API.

  POST /upload              — receive a PDF, start an optimisation job
  GET  /status/{job_id}     — poll job progress
  GET  /download/{job_id}   — stream the optimised PDF, once
"""

from typing import Optional

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from app.errors import JobError

router = APIRouter()

# Wired in during lifespan
_manager = None
_gate = None


def set_manager(manager):
    global _manager
    _manager = manager


def set_gate(gate):
    global _gate
    _gate = gate


# ---------------------------------------------------------------------------
# POST /upload
# ---------------------------------------------------------------------------

@router.post("/upload", status_code=202)
async def upload_pdf(file: Optional[UploadFile] = File(None)):
    """Accept a PDF upload, persist it, and start a processing job.

    Returns:
        202 {jobId}
    """
    if _manager is None:
        raise HTTPException(status_code=503, detail="Job manager not ready")

    if file is None or not file.filename:
        return JSONResponse(
            status_code=400,
            content={"error": 'No file uploaded (field name must be "file").'},
        )

    try:
        job = await _manager.submit(file, file.filename)
    except JobError as exc:
        return JSONResponse(
            status_code=exc.status_code,
            content={"jobId": exc.job_id, "status": "error", "message": exc.message},
        )
    finally:
        await file.close()

    return JSONResponse(status_code=202, content={"jobId": job.id})


# ---------------------------------------------------------------------------
# GET /status/{job_id}
# ---------------------------------------------------------------------------

@router.get("/status/{job_id}")
async def get_status(job_id: str):
    if _manager is None:
        raise HTTPException(status_code=503, detail="Job manager not ready")

    job = _manager.store.get(job_id)
    if job is None:
        return JSONResponse(
            status_code=404,
            content={"status": "missing", "message": "Unknown job id."},
        )
    return job.public_view()


# ---------------------------------------------------------------------------
# GET /download/{job_id}
# ---------------------------------------------------------------------------

@router.get("/download/{job_id}")
async def download_result(job_id: str):
    """Stream the optimised PDF under its original filename.

    The file is gone after this call, whether or not the transfer
    completed. Errors: 404 unknown, 409 not ready, 410 gone, 422 failed.
    """
    if _gate is None:
        raise HTTPException(status_code=503, detail="Download gate not ready")

    ticket = _gate.claim(job_id)
    return _gate.response(ticket)
