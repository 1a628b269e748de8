import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_DB_PATH = Path(__file__).parent / 'zpm.db'


def db_path() -> Path:
    """Return the database file, honouring ZPM_DB_PATH at call time (tests override it)."""
    return Path(os.environ.get('ZPM_DB_PATH') or DEFAULT_DB_PATH)


def get_conn():
    """Return a new sqlite3 connection configured to return rows as dict-like objects.

    We create a fresh connection per-call; the API opens at most a couple per
    request.
    """
    conn = sqlite3.connect(str(db_path()))
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Ensure the database file and required tables exist.

    Idempotent; called at application startup and by tests.
    """
    db_path().parent.mkdir(parents=True, exist_ok=True)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute('''
    CREATE TABLE IF NOT EXISTS Scripts (
      script_id INTEGER PRIMARY KEY,
      title TEXT NOT NULL,
      code_text TEXT NOT NULL,
      created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS Runs (
      run_id INTEGER PRIMARY KEY,
      script_id INTEGER NULL,
      ok INTEGER NOT NULL,
      error_line INTEGER NULL,
      steps INTEGER,
      output_chars INTEGER,
      duration_ms INTEGER,
      created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''')
    conn.commit()
    conn.close()


def save_script(title: str, code_text: str) -> int:
    """Persist a script and return its new script_id."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'INSERT INTO Scripts (title, code_text) VALUES (?, ?)',
        (title, code_text),
    )
    script_id = cur.lastrowid
    conn.commit()
    conn.close()
    return script_id


def list_scripts() -> List[Dict[str, Any]]:
    """Return saved scripts (id, title, created_at), newest first."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'SELECT script_id, title, created_at FROM Scripts '
        'ORDER BY created_at DESC, script_id DESC'
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_script(script_id: int) -> Optional[Dict[str, Any]]:
    """Fetch a single script by id, returning None if not found."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'SELECT script_id, title, code_text, created_at FROM Scripts '
        'WHERE script_id = ?',
        (script_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def save_run(
    script_id: Optional[int],
    ok: bool,
    error_line: Optional[int],
    steps: Optional[int],
    output_chars: Optional[int],
    duration_ms: Optional[int],
) -> int:
    """Persist a run row and return its run_id.

    Callers treat this as non-fatal: if saving fails the API still returns
    the interpreter result.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO Runs (
            script_id, ok, error_line, steps, output_chars, duration_ms
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (script_id, int(ok), error_line, steps, output_chars, duration_ms),
    )
    run_id = cur.lastrowid
    conn.commit()
    conn.close()
    return run_id


def list_runs(script_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """List run rows, optionally filtering by script_id. ``ok`` is returned as a bool."""
    conn = get_conn()
    cur = conn.cursor()
    columns = (
        "SELECT run_id, script_id, ok, error_line, steps, output_chars,"
        " duration_ms, created_at FROM Runs"
    )
    if script_id:
        cur.execute(
            columns + " WHERE script_id = ? ORDER BY created_at DESC, run_id DESC",
            (script_id,),
        )
    else:
        cur.execute(columns + " ORDER BY created_at DESC, run_id DESC")
    rows = cur.fetchall()
    conn.close()
    out = []
    for r in rows:
        d = dict(r)
        d['ok'] = bool(d['ok'])
        out.append(d)
    return out
