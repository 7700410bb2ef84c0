"""Polling of long-running generation jobs."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .backends.video import VideoBackend
from .exceptions import BackendError, GenerationFailedError, PollTimeoutError
from .models.prediction import Prediction

logger = logging.getLogger(__name__)

SubmittedCallback = Callable[[Prediction], Awaitable[None]]


class JobPoller:
    """
    Submit a video job and wait for it to finish.

    States: submitted -> pending -> succeeded | failed. While pending the
    status is re-checked every ``interval`` seconds, at most
    ``max_attempts`` times.
    """

    def __init__(
        self,
        backend: VideoBackend,
        interval: float = 3.0,
        max_attempts: Optional[int] = 200,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def run(self, prompt: str, on_submitted: Optional[SubmittedCallback] = None) -> str:
        """
        Generate a video for ``prompt`` and return its URL.

        ``on_submitted`` is awaited once the job exists and before the first
        status check.

        Raises:
            GenerationFailedError: The job failed or finished without output
            PollTimeoutError: ``max_attempts`` checks without a terminal state
            BackendError: Transport or status failure on any request
        """
        prediction = await self.backend.submit(prompt)
        if not prediction.id:
            raise BackendError("Video service did not return a prediction id")

        if on_submitted:
            await on_submitted(prediction)

        return await self.wait(prediction)

    async def wait(self, prediction: Prediction) -> str:
        """Poll ``prediction`` until it reaches a terminal state."""
        attempts = 0
        while not prediction.is_terminal:
            if self.max_attempts is not None and attempts >= self.max_attempts:
                logger.warning(f"Giving up on prediction {prediction.id} after {attempts} checks")
                raise PollTimeoutError(attempts)

            await self._sleep(self.interval)
            attempts += 1
            prediction = await self.backend.get(prediction.id)
            logger.debug(f"Prediction {prediction.id} check {attempts}: {prediction.status}")

        if not prediction.succeeded:
            logger.warning(f"Prediction {prediction.id} ended as {prediction.status}: {prediction.error}")
            raise GenerationFailedError(detail=str(prediction.error or ""))

        urls = prediction.output_urls()
        if not urls:
            raise GenerationFailedError("Video generation returned no output")

        logger.info(f"Prediction {prediction.id} succeeded after {attempts} check(s)")
        return urls[0]
