"""Video generation backend."""

import logging

from pydantic import ValidationError

from .base import GenerationBackend
from ..exceptions import BackendError
from ..models.prediction import Prediction

logger = logging.getLogger(__name__)


class VideoBackend(GenerationBackend):
    """Submits video predictions and checks on them."""

    endpoint = "generate-video"

    async def submit(self, prompt: str) -> Prediction:
        """Start a prediction for ``prompt``."""
        prediction = self._parse(await self._post_json({"prompt": prompt}))
        logger.info(f"Video prediction {prediction.id} submitted ({prediction.status})")
        return prediction

    async def get(self, prediction_id: str) -> Prediction:
        """Fetch the current state of a prediction."""
        prediction = self._parse(await self._post_json({"predictionId": prediction_id}))
        logger.debug(f"Video prediction {prediction.id}: {prediction.status}")
        return prediction

    @staticmethod
    def _parse(data: dict) -> Prediction:
        try:
            return Prediction(**data)
        except ValidationError as e:
            raise BackendError("Invalid prediction returned", detail=str(e)) from e
