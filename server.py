import os
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from prompt_wizard.backend import Backend

app = FastAPI(title="Prompt Wizard")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class WizardRequest(BaseModel):
    type: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    session_id: Optional[str] = None
    payload: Optional[Any] = None


@lru_cache(maxsize=1)
def get_backend() -> Backend:
    return Backend()


@app.post("/requests")
def handle_request(request: WizardRequest, backend: Backend = Depends(get_backend)):
    return backend.process_request(request.model_dump())


@app.get("/history/{entry_id}/download")
def download_history_entry(entry_id: str, user_id: str, backend: Backend = Depends(get_backend)):
    exported = backend.export_history_entry(user_id, entry_id)
    if exported is None:
        raise HTTPException(status_code=404, detail="History entry not found")

    return Response(
        content=exported["content"],
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{exported["filename"]}"'},
    )


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
