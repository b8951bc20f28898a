"""Description: Sports posture analysis service using OpenAI's Responses API."""

import logging
import time
from typing import Any, Dict, List, Sequence

from openai import AsyncOpenAI

from services.analysis.media_inputs import build_inputs, to_image_data_url
from services.analysis.prompts import analysis_system_prompt, image_analysis_prompt, video_analysis_prompt
from services.analysis.response_parser import extract_text, extract_usage


class PostureAnalyzer:
    """Produce Markdown posture reports from images or sampled video frames."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4.1", max_output_tokens: int = 4000) -> None:
        """Initialize the analyzer with an OpenAI async client."""
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.system_prompt = analysis_system_prompt()

    async def analyze_images(self, image_urls: Sequence[str]) -> Dict[str, Any]:
        """Analyze one to three publicly reachable images."""
        prompt = image_analysis_prompt(len(image_urls))
        return await self._analyze(prompt, list(image_urls))

    async def analyze_frames(self, frames_b64: Sequence[str]) -> Dict[str, Any]:
        """Analyze base64 JPEG frames sampled in order from a video."""
        prompt = video_analysis_prompt(len(frames_b64))
        return await self._analyze(prompt, [to_image_data_url(frame) for frame in frames_b64])

    async def _analyze(self, user_prompt: str, image_urls: List[str]) -> Dict[str, Any]:
        start_time = time.time()
        inputs = build_inputs(self.system_prompt, user_prompt, image_urls)
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=inputs,
                max_output_tokens=self.max_output_tokens,
            )
        except Exception as exc:
            logging.error("Error during OpenAI Responses API call: %s", exc)
            raise

        text = extract_text(response)
        if not text:
            logging.error("No analysis text received from OpenAI. Full response object: %r", response)
            raise RuntimeError("No analysis text received from the model")

        latency = time.time() - start_time
        logging.info("Posture analysis latency: %.3fs", latency)
        result: Dict[str, Any] = {"text": text, "model_used": self.model, "latency": latency}
        result.update(extract_usage(response))
        return result
