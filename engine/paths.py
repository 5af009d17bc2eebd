import os
from dataclasses import dataclass
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent.parent

def _is_container_runtime():
    if os.path.exists("/.dockerenv"):
        return True
    return os.path.isdir("/data")


def _default_root_paths():
    if _is_container_runtime():
        base = Path("/data")
    else:
        base = PROJECT_ROOT / "data"
    return {
        "data": base,
        "cache": base / "cache",
        "logs": base / "logs",
        "tokens": base / "tokens",
    }


_DEFAULTS = _default_root_paths()

DATA_DIR = Path(os.environ.get("MIGRATR_DATA_DIR", _DEFAULTS["data"])).resolve()
CACHE_DIR = Path(os.environ.get("CACHE_PATH", _DEFAULTS["cache"])).resolve()
LOG_DIR = Path(os.environ.get("MIGRATR_LOG_DIR", _DEFAULTS["logs"])).resolve()
TOKENS_DIR = Path(os.environ.get("MIGRATR_TOKENS_DIR", _DEFAULTS["tokens"])).resolve()


@dataclass(frozen=True)
class EnginePaths:
    cache_dir: str
    search_cache_file: str
    log_dir: str
    tokens_dir: str


def ensure_dir(path):
    if path:
        os.makedirs(path, exist_ok=True)


def build_engine_paths(cache_dir=None, log_dir=None, tokens_dir=None):
    cache_root = Path(cache_dir).resolve() if cache_dir else CACHE_DIR
    log_root = Path(log_dir).resolve() if log_dir else LOG_DIR
    tokens_root = Path(tokens_dir).resolve() if tokens_dir else TOKENS_DIR

    # Ensure required directories exist
    for d in (cache_root, log_root, tokens_root):
        ensure_dir(d)

    return EnginePaths(
        cache_dir=str(cache_root),
        search_cache_file=str(cache_root / "search_cache.json"),
        log_dir=str(log_root),
        tokens_dir=str(tokens_root),
    )
