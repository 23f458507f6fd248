"""Port, service, and model-catalog checks against a single host."""

import asyncio
import ipaddress
import json
import logging

import httpx

from llamaprobe.models import ModelDescriptor, ProbeOutcome

logger = logging.getLogger(__name__)

SERVICE_MARKER = "Ollama is running"
MARKER_PATH = "/"
CATALOG_PATH = "/api/tags"

DEFAULT_TIMEOUT = 3.0

# Request failures that just mean "nothing useful here", bad encodings included
TRANSPORT_ERRORS = (httpx.RequestError, httpx.InvalidURL, OSError, asyncio.TimeoutError)


def address_url(address: str, port: int) -> str:
    """Base URL for a host, bracketing IPv6 literals."""
    try:
        if ipaddress.ip_address(address).version == 6:
            address = f"[{address}]"
    except ValueError:
        pass
    return f"http://{address}:{port}"


async def check_port(address: str, port: int, timeout: float) -> bool:
    """TCP-connect to address:port. Any failure at all counts as closed."""
    try:
        _reader, writer = await asyncio.wait_for(
            asyncio.open_connection(address, port), timeout=timeout
        )
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def _get(client: httpx.AsyncClient, url: str, timeout: float) -> httpx.Response:
    """GET with one deadline over the whole exchange, body included."""
    return await asyncio.wait_for(client.get(url), timeout=timeout)


async def check_service(
    client: httpx.AsyncClient,
    base_url: str,
    mode: str = "marker",
    timeout: float = DEFAULT_TIMEOUT,
) -> ProbeOutcome:
    """Confirm the port speaks the inference API.

    In "marker" mode the root endpoint must answer 2xx with the service banner.
    In "catalog" mode the tags endpoint must return a non-empty model list.
    """
    path = MARKER_PATH if mode == "marker" else CATALOG_PATH
    try:
        resp = await _get(client, f"{base_url}{path}", timeout)
    except TRANSPORT_ERRORS as e:
        logger.debug("Service check failed for %s: %s", base_url, e)
        return ProbeOutcome.SERVICE_ABSENT

    if not resp.is_success:
        return ProbeOutcome.SERVICE_ABSENT

    if mode == "marker":
        found = SERVICE_MARKER in resp.text
    else:
        found = bool(_catalog_entries(resp))
    return ProbeOutcome.SERVICE_OK if found else ProbeOutcome.SERVICE_ABSENT


async def fetch_models(
    client: httpx.AsyncClient,
    base_url: str,
    sort_by_size: bool = False,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[ModelDescriptor]:
    """Deduplicated, deterministically ordered catalog. Empty on any failure."""
    try:
        resp = await _get(client, f"{base_url}{CATALOG_PATH}", timeout)
    except TRANSPORT_ERRORS as e:
        logger.debug("Catalog fetch failed for %s: %s", base_url, e)
        return []
    if not resp.is_success:
        return []
    return order_models(model_names(_catalog_entries(resp)), sort_by_size=sort_by_size)


def model_names(entries: list) -> list[str]:
    """Pull identifiers out of catalog entries, keeping the first of any duplicates.

    Entries carry the identifier under "model" or "name"; "model" wins when both exist.
    """
    names: list[str] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get("model") or entry.get("name")
        if not isinstance(name, str) or not name or name in seen:
            continue
        seen.add(name)
        names.append(name)
    return names


def order_models(names: list[str], sort_by_size: bool = False) -> list[ModelDescriptor]:
    models = [ModelDescriptor.from_name(name) for name in names]
    if sort_by_size:
        # unsized tags sort after sized ones
        return sorted(models, key=lambda m: (m.size is None, m.size or 0, m.name))
    return sorted(models, key=lambda m: m.name)


def _catalog_entries(resp: httpx.Response) -> list:
    try:
        data = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return []
    if not isinstance(data, dict):
        return []
    models = data.get("models")
    return models if isinstance(models, list) else []
