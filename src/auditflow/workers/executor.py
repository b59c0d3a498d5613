"""Audit executor contract and the default page-summary executor."""

import importlib
import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from auditflow.errors.exceptions import ExecutionError

logger = logging.getLogger(__name__)

AuditExecutor = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_USER_AGENT = "auditflow/1.0 (+https://github.com/auditflow)"


async def fetch_page_summary(url: str, options: dict[str, Any]) -> dict[str, Any]:
    """Fetch ``url`` and report basic transport facts.

    Stand-in for the external scoring engine; deployments point the
    ``executor`` setting at the real one.
    """
    timeout = float(options.get("requestTimeoutMs", 30_000)) / 1000
    started = time.perf_counter()
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        ) as client:
            resp = await client.get(url)
    except httpx.HTTPError as exc:
        raise ExecutionError(f"Failed to fetch {url}: {exc}") from exc
    elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

    if resp.status_code >= 400:
        raise ExecutionError(f"HTTP {resp.status_code} from {url}")

    match = _TITLE_RE.search(resp.text)
    return {
        "url": url,
        "finalUrl": str(resp.url),
        "statusCode": resp.status_code,
        "responseTimeMs": elapsed_ms,
        "contentLength": len(resp.content),
        "contentType": resp.headers.get("content-type"),
        "title": match.group(1).strip() if match else None,
        "redirects": len(resp.history),
    }


def load_executor(path: str) -> AuditExecutor:
    """Resolve a ``"package.module:attribute"`` path to an executor callable."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"executor path must look like 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    executor = getattr(module, attr)
    if not callable(executor):
        raise TypeError(f"{path} is not callable")
    logger.info("Using audit executor %s", path)
    return executor
