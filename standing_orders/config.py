"""
Config: one JSON file (.standing_orders.json) holding the default book, the decision API
endpoint and token, the state file for saved progress, and the search excerpt radius.
Paths are relative to the config file directory. Env STANDING_ORDERS_API_TOKEN (or a
.env file) overrides the stored token.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_FILENAME = ".standing_orders.json"
DEFAULT_STATE_FILENAME = ".standing_orders_state.json"
DEFAULT_EXCERPT_RADIUS = 50
TOKEN_ENV = "STANDING_ORDERS_API_TOKEN"

CONFIG_KEYS = ("book_path", "api_base_url", "api_token", "state_path", "excerpt_radius")


def _load_dotenv_if_available() -> None:
    """Load .env from cwd or repo root so the API token can live outside the config file."""
    from dotenv import load_dotenv

    candidates = [Path.cwd() / ".env"]
    repo = _find_repo_root()
    if repo is not None:
        candidates.append(repo / ".env")
    for path in candidates:
        if path.is_file():
            load_dotenv(path)
            break


def _find_repo_root() -> Path | None:
    """Walk up from package dir to find a directory containing pyproject.toml or the config file."""
    start = Path(__file__).resolve().parent
    for parent in [start, *start.parents]:
        if (parent / "pyproject.toml").exists() or (parent / CONFIG_FILENAME).exists():
            return parent
    return None


def _find_config_file() -> Path | None:
    """Return path to an existing config file, or None. Env STANDING_ORDERS_CONFIG wins."""
    env_path = os.environ.get("STANDING_ORDERS_CONFIG")
    if env_path:
        p = Path(env_path).resolve()
        return p if p.exists() else None
    for d in [Path.cwd(), *Path.cwd().parents]:
        cf = (d / CONFIG_FILENAME).resolve()
        if cf.exists():
            return cf
    repo = _find_repo_root()
    if repo is not None and (repo / CONFIG_FILENAME).exists():
        return (repo / CONFIG_FILENAME).resolve()
    return None


def get_config_path() -> Path:
    """Path to the config file in use, or where a new one would be created."""
    env_path = os.environ.get("STANDING_ORDERS_CONFIG")
    if env_path:
        return Path(env_path).resolve()
    found = _find_config_file()
    if found is not None:
        return found
    return (Path.cwd() / CONFIG_FILENAME).resolve()


def _default_config() -> Dict[str, Any]:
    return {
        "book_path": None,
        "api_base_url": None,
        "api_token": None,
        "state_path": DEFAULT_STATE_FILENAME,
        "excerpt_radius": DEFAULT_EXCERPT_RADIUS,
    }


def load_config() -> Dict[str, Any]:
    """Load config from file, filling defaults. A missing or broken file yields defaults."""
    path = _find_config_file()
    out = _default_config()
    if path is None:
        out["_config_file"] = str(get_config_path())
        out["_no_file"] = True
        return out
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        out["_config_file"] = str(path)
        out["_load_error"] = True
        return out
    if isinstance(data, dict):
        out.update({k: v for k, v in data.items() if k in CONFIG_KEYS})
    if not isinstance(out.get("excerpt_radius"), int) or out["excerpt_radius"] < 0:
        out["excerpt_radius"] = DEFAULT_EXCERPT_RADIUS
    out["_config_file"] = str(path)
    out["_no_file"] = False
    return out


def save_config(data: Dict[str, Any]) -> None:
    """Save config. Only known keys are written; resolved/marker keys are dropped."""
    path = data.get("_config_file")
    path = Path(path) if path else get_config_path()
    to_save = {k: data.get(k, v) for k, v in _default_config().items()}
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_save, f, indent=2)


def _config_base_path(data: Dict[str, Any]) -> Path:
    """Directory to resolve relative paths from (config file dir or cwd)."""
    cf = data.get("_config_file")
    if cf and not data.get("_no_file"):
        return Path(cf).parent
    return Path.cwd()


def set_value(key: str, value: str) -> Dict[str, Any]:
    """Set one config key and save. excerpt_radius must be a non-negative integer."""
    if key not in CONFIG_KEYS:
        return {"ok": False, "error": f"Unknown key '{key}'. Choose: {', '.join(CONFIG_KEYS)}"}
    data = load_config()
    if data.get("_load_error"):
        data = _default_config()
        data["_config_file"] = str(get_config_path())
    stored: Any = value
    if key == "excerpt_radius":
        try:
            stored = int(value)
        except ValueError:
            stored = -1
        if stored < 0:
            return {"ok": False, "error": "excerpt_radius must be a non-negative integer"}
    elif key == "book_path":
        candidate = (_config_base_path(data) / value).resolve()
        if not candidate.is_file():
            return {"ok": False, "error": f"Book file not found: {candidate}"}
    data[key] = stored
    save_config(data)
    return {"ok": True, "config": get_config()}


def get_api_token(data: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """API token: env (after loading .env) first, then the config file."""
    _load_dotenv_if_available()
    token = os.environ.get(TOKEN_ENV)
    if token:
        return token
    data = data if data is not None else load_config()
    return data.get("api_token") or None


def get_book_path(path: Optional[Path] = None) -> Optional[Path]:
    """Explicit path if given, else the configured book_path resolved against the config dir."""
    if path is not None:
        return Path(path).resolve()
    data = load_config()
    raw = data.get("book_path")
    if not raw:
        return None
    return (_config_base_path(data) / raw).resolve()


def get_state_path() -> Path:
    data = load_config()
    return (_config_base_path(data) / (data.get("state_path") or DEFAULT_STATE_FILENAME)).resolve()


def get_config() -> Dict[str, Any]:
    """Full config with resolved paths and whether a token is available (never the token itself)."""
    data = load_config()
    book = get_book_path()
    data["_resolved_book_path"] = str(book) if book else None
    data["_resolved_state_path"] = str(get_state_path())
    data["_has_api_token"] = bool(get_api_token(data))
    data.pop("api_token", None)
    return data
