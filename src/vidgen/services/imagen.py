"""Google Imagen upscaling client via Vertex AI."""

import base64
import io
import logging
from typing import Optional

import google.auth
import google.auth.transport.requests
import numpy as np
import requests
from PIL import Image

from ..config import config

logger = logging.getLogger(__name__)


class ImagenError(RuntimeError):
    """Imagen returned an error or an unusable prediction."""


class ImagenUpscaler:
    """Frame upscaler backed by Imagen's 2x super-resolution mode."""

    DEFAULT_LOCATION = "us-central1"
    SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]

    def __init__(
        self,
        project_id: Optional[str] = None,
        location: str = DEFAULT_LOCATION,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize the Imagen upscaler.

        Args:
            project_id: Google Cloud project ID.
            location: GCP region for Vertex AI.
            model: Imagen upscale model name.
            timeout: Per-request timeout in seconds.
        """
        self._project_id = project_id or config.google_cloud_project
        self._location = location
        self._model = model or config.imagen_upscale_model
        self._timeout = timeout if timeout is not None else config.request_timeout
        self._credentials = None

        if not self._project_id:
            raise ValueError("GOOGLE_CLOUD_PROJECT not set")

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def model(self) -> str:
        return self._model

    @property
    def endpoint(self) -> str:
        return (
            f"https://{self._location}-aiplatform.googleapis.com/v1/"
            f"projects/{self._project_id}/locations/{self._location}/"
            f"publishers/google/models/{self._model}:predict"
        )

    def _token(self) -> str:
        """Return a valid OAuth token, refreshing credentials when needed."""
        if self._credentials is None:
            self._credentials, _ = google.auth.default(scopes=self.SCOPES)
        if not self._credentials.valid:
            self._credentials.refresh(google.auth.transport.requests.Request())
        return self._credentials.token

    def upscale_frame(self, pixels: np.ndarray) -> np.ndarray:
        """Upscale one RGB frame to exactly twice its width and height.

        Args:
            pixels: ``(H, W, 3)`` uint8 array.

        Returns:
            ``(2H, 2W, 3)`` uint8 array.

        Raises:
            ImagenError: If the API call fails or returns no image.
        """
        height, width = pixels.shape[:2]

        buffer = io.BytesIO()
        Image.fromarray(pixels).save(buffer, format="PNG")
        request_body = {
            "instances": [
                {
                    "prompt": "",
                    "image": {"bytesBase64Encoded": base64.b64encode(buffer.getvalue()).decode("ascii")},
                }
            ],
            "parameters": {
                "mode": "upscale",
                "upscaleConfig": {"upscaleFactor": "x2"},
                "outputOptions": {"mimeType": "image/png"},
            },
        }

        headers = {
            "Authorization": f"Bearer {self._token()}",
            "Content-Type": "application/json",
        }

        logger.debug(f"Upscaling {width}x{height} frame with Imagen")
        response = requests.post(self.endpoint, json=request_body, headers=headers, timeout=self._timeout)

        if response.status_code != 200:
            error_msg = f"{response.status_code}: {response.text[:500]}"
            logger.error(f"Imagen API error: {error_msg}")
            raise ImagenError(error_msg)

        predictions = response.json().get("predictions", [])
        if not predictions:
            raise ImagenError("No predictions in response")

        image_data = predictions[0].get("bytesBase64Encoded")
        if not image_data:
            raise ImagenError("No image data in response")

        with Image.open(io.BytesIO(base64.b64decode(image_data))) as image:
            image = image.convert("RGB")
            target = (width * 2, height * 2)
            if image.size != target:
                logger.debug(f"Imagen returned {image.size}, resizing to {target}")
                image = image.resize(target, Image.Resampling.LANCZOS)
            return np.asarray(image, dtype=np.uint8).copy()
