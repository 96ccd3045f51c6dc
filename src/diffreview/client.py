from __future__ import annotations

from typing import Any

import httpx

from diffreview.errors import ReviewApiError
from diffreview.models import ReviewPayload

DEFAULT_TIMEOUT = 600.0


async def submit_review(
    payload: ReviewPayload,
    *,
    api_key: str,
    endpoint: str,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(endpoint, json=payload.to_dict(), headers=headers)
    except httpx.HTTPError as exc:
        raise ReviewApiError(f"Request to review API failed: {exc}") from exc

    if response.is_error:
        try:
            data: Any = response.json()
        except ValueError:
            data = response.text
        raise ReviewApiError(
            f"Review API returned status {response.status_code}",
            status_code=response.status_code,
            data=data,
        )

    try:
        return response.json()
    except ValueError as exc:
        raise ReviewApiError(
            "Review API returned a non-JSON response",
            status_code=response.status_code,
            data=response.text,
        ) from exc


def error_output(exc: ReviewApiError) -> dict[str, Any]:
    output: dict[str, Any] = {"success": False, "error": str(exc)}
    if exc.status_code is not None:
        output["status"] = exc.status_code
        output["data"] = exc.data
    return output
