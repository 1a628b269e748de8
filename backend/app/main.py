"""FastAPI application entrypoints for ZPM.

Each `/run` request constructs a fresh `Interpreter` so no variables leak
between requests, and applies server-side caps so clients cannot lift the
step and output limits.
"""

import logging
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI
from pydantic import BaseModel

from .. import db
from ..zpm.interpreter import Interpreter
from ..zpm.logging_config import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="ZPM API", version="0.1")

# Server-side ceilings for per-run tunables.
SERVER_CAPS: Dict[str, int] = {
    "max_steps": 100000,
    "max_output_chars": 5000,
}


def _cap_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, int]:
    """Clamp client-requested limits to the server's ceilings.

    Missing values fall back to the ceiling itself. Returns keyword arguments
    suitable for `Interpreter(...)`.
    """
    safe = dict(SERVER_CAPS)
    if not settings:
        return safe
    caps = {}
    for key, ceiling in safe.items():
        value = settings.get(key)
        # missing or null means "use the ceiling"
        if value is None:
            value = ceiling
        caps[key] = max(0, min(int(value), ceiling))
    return caps


@app.on_event('startup')
def startup():
    """Initialize logging and the database schema."""
    setup_logging()
    db.init_db()


class RunRequest(BaseModel):
    """Body of a `/run` request.

    Fields:
        code: ZPM source text, one statement per line.
        settings: optional `max_steps` / `max_output_chars`; capped server-side.
        script_id: optional id of a saved script this run belongs to.
    """
    code: str
    settings: Optional[Dict[str, Any]] = None
    script_id: Optional[int] = None


@app.post("/run")
async def run_code(req: RunRequest):
    """Run ZPM code and return its captured output.

    The response always has the keys `output`, `errors`, `steps`, `warnings`
    and `duration_ms`. Unexpected exceptions become a SERVER_ERROR payload.
    """
    start = time.time()
    try:
        capped = _cap_settings(req.settings)
        it = Interpreter(output_sink=None, **capped)
        result: Dict[str, Any] = it.run(req.code)
    except Exception as e:
        logger.exception("run failed")
        return {
            "output": "",
            "errors": {"code": "SERVER_ERROR", "message": str(e)},
            "steps": 0,
            "warnings": [],
            "duration_ms": int((time.time() - start) * 1000),
        }
    result["warnings"] = []
    result["duration_ms"] = int((time.time() - start) * 1000)

    # persisting the run is best-effort
    errors = result.get("errors")
    try:
        db.save_run(
            req.script_id,
            errors is None,
            errors.get("line") if errors else None,
            result.get("steps"),
            it.output_chars,
            result["duration_ms"],
        )
    except Exception as e:
        logger.warning("failed to persist run: %s", e)
        result["warnings"].append(f"Failed to persist run: {e}")

    return result


class SaveScriptRequest(BaseModel):
    title: str
    code: str


@app.post('/save')
async def save_script(req: SaveScriptRequest):
    try:
        script_id = db.save_script(req.title, req.code)
    except Exception as e:
        logger.warning("failed to save script: %s", e)
        return {'error': str(e)}
    return {'script_id': script_id}


@app.get('/scripts')
async def list_scripts():
    return db.list_scripts()


@app.get('/scripts/{script_id}')
async def get_script(script_id: int):
    s = db.get_script(script_id)
    if not s:
        return {'error': 'not found'}
    return s


@app.get('/stats')
async def list_stats(script_id: Optional[int] = None):
    return db.list_runs(script_id)
