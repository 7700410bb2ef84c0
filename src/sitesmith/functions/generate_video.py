"""Video function: starts and checks Replicate predictions."""

import logging

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..config import Settings
from ..models.messages import VideoFunctionRequest
from .deps import error_response, get_http_client, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])


@router.post("/generate-video")
async def generate_video(
    body: VideoFunctionRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
    config: Settings = Depends(get_settings),
) -> JSONResponse:
    """
    ``{"predictionId": ...}`` returns the prediction's current state;
    ``{"prompt": ...}`` starts a new one. The prediction JSON is passed
    through unchanged.
    """
    if not config.REPLICATE_API_KEY:
        return error_response(500, "REPLICATE_API_KEY is not set")

    base_url = config.REPLICATE_API_URL.rstrip("/")
    headers = {"Authorization": f"Bearer {config.REPLICATE_API_KEY}"}

    try:
        if body.prediction_id:
            logger.info(f"Checking video status for prediction: {body.prediction_id}")
            response = await client.get(
                f"{base_url}/predictions/{body.prediction_id}", headers=headers
            )
        else:
            if not body.prompt or not body.prompt.strip():
                return error_response(400, "Missing required field: prompt is required")

            logger.info(f"Generating video with prompt: {body.prompt[:80]}")
            response = await client.post(
                f"{base_url}/predictions",
                json={
                    "version": config.VIDEO_MODEL_VERSION,
                    "input": {
                        "prompt": body.prompt,
                        "num_frames": config.VIDEO_NUM_FRAMES,
                        "guidance_scale": config.VIDEO_GUIDANCE_SCALE,
                    },
                },
                headers=headers,
            )
    except httpx.HTTPError as e:
        logger.error(f"Error in generate-video function: {e}")
        return error_response(500, str(e) or "Video service unreachable")

    if not response.is_success:
        return error_response(500, _upstream_message(response))

    try:
        prediction = response.json()
    except ValueError:
        prediction = None
    if not isinstance(prediction, dict):
        logger.error(f"Video service returned an unreadable prediction: {response.text[:200]}")
        return error_response(500, "Video service returned an invalid response")

    logger.debug(f"Prediction {prediction.get('id')}: {prediction.get('status')}")
    return JSONResponse(prediction)


def _upstream_message(response: httpx.Response) -> str:
    """Replicate reports problems in a ``detail`` field."""
    try:
        data = response.json()
    except ValueError:
        data = {}
    detail = data.get("detail") if isinstance(data, dict) else None
    message = detail or f"Video service returned status {response.status_code}"
    logger.error(f"Error in generate-video function: {message}")
    return message
