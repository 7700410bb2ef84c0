"""Chat function: streams completions from the AI gateway, or generates an image."""

import logging

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from ..config import Settings
from ..models.messages import ChatFunctionRequest
from .deps import error_response, get_http_client, get_settings
from .prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])


def gateway_error(status_code: int) -> JSONResponse:
    """Translate an upstream failure into the function's error body."""
    if status_code == 429:
        return error_response(429, "Rate limits exceeded, please try again later.")
    if status_code == 402:
        return error_response(402, "Payment required, please add funds to your AI workspace.")
    return error_response(500, "AI gateway error")


@router.post("/chat")
async def chat(
    body: ChatFunctionRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
    config: Settings = Depends(get_settings),
) -> Response:
    """
    Stream a chat completion as server-sent events.

    With ``generateImage`` set, answers ``{"imageUrl": ...}`` instead.
    """
    if not config.AI_GATEWAY_API_KEY:
        return error_response(500, "AI_GATEWAY_API_KEY is not set")

    headers = {"Authorization": f"Bearer {config.AI_GATEWAY_API_KEY}"}

    if body.generate_image:
        return await _generate_image(body, client, config, headers)

    payload = {
        "model": config.CHAT_MODEL,
        "messages": [{"role": "system", "content": SYSTEM_PROMPT}]
        + [m.to_api() for m in body.messages],
        "stream": True,
    }
    logger.info(f"Chat request with {len(body.messages)} message(s)")

    request = client.build_request(
        "POST", f"{config.AI_GATEWAY_URL.rstrip('/')}/chat/completions", json=payload, headers=headers
    )
    try:
        upstream = await client.send(request, stream=True)
    except httpx.HTTPError as e:
        logger.error(f"AI gateway unreachable: {e}")
        return error_response(500, "AI gateway error")

    if not upstream.is_success:
        detail = await upstream.aread()
        await upstream.aclose()
        logger.error(f"AI gateway error {upstream.status_code}: {detail[:200]!r}")
        return gateway_error(upstream.status_code)

    return StreamingResponse(
        upstream.aiter_raw(),
        media_type="text/event-stream",
        background=BackgroundTask(upstream.aclose),
    )


async def _generate_image(
    body: ChatFunctionRequest,
    client: httpx.AsyncClient,
    config: Settings,
    headers: dict,
) -> JSONResponse:
    prompt = next(
        (m.content for m in reversed(body.messages) if m.role == "user" and m.content.strip()),
        None,
    )
    if prompt is None:
        return error_response(400, "Missing required field: a user message is required")

    logger.info(f"Generating image: {prompt[:80]}")
    try:
        response = await client.post(
            f"{config.AI_GATEWAY_URL.rstrip('/')}/images/generations",
            json={"model": config.IMAGE_MODEL, "prompt": prompt, "n": 1, "size": "1024x1024"},
            headers=headers,
        )
    except httpx.HTTPError as e:
        logger.error(f"AI gateway unreachable: {e}")
        return error_response(500, "AI gateway error")

    if not response.is_success:
        logger.error(f"Image generation error {response.status_code}: {response.text[:200]}")
        return gateway_error(response.status_code)

    image = _first_image(response)
    if image.get("url"):
        image_url = image["url"]
    elif image.get("b64_json"):
        image_url = f"data:image/png;base64,{image['b64_json']}"
    else:
        logger.error("Image generation returned no image")
        return error_response(500, "No image was generated")

    return JSONResponse({"imageUrl": image_url})


def _first_image(response: httpx.Response) -> dict:
    """First entry of the gateway's ``data`` list, or {} when the body has none."""
    try:
        body = response.json()
    except ValueError:
        return {}
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return {}
    return data[0]
