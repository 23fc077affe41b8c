"""TTS (Text-to-Speech) client abstraction for multiple providers."""

import base64
import io
import wave
from typing import Any, Optional

import requests

from scenecast.core.config import Settings
from scenecast.models.schemas import AudioAsset
from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.text_utils import estimate_spoken_duration


class TTSClient:
    """TTS client supporting ElevenLabs, a generic HTTP endpoint or an offline stub."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize TTS client.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.provider = self._detect_provider()

    def _detect_provider(self) -> str:
        """Detect which TTS provider to use based on available credentials."""
        if getattr(self.settings, "elevenlabs_api_key", None):
            return "elevenlabs"
        elif getattr(self.settings, "tts_endpoint_url", None):
            return "http"
        else:
            return "stub"

    def synthesize(
        self,
        text: str,
        *,
        voice: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AudioAsset:
        """
        Generate speech for narration text.

        Args:
            text: Text to convert to speech
            voice: Optional voice selector (provider-specific)
            cancel_token: Optional cancellation token

        Returns:
            AudioAsset with encoded speech

        Raises:
            Exception: If generation fails
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        voice = voice or self.settings.default_voice
        self.logger.info(f"Generating speech using {self.provider} provider for {len(text)} characters...")

        if self.provider == "elevenlabs":
            return self._generate_elevenlabs(text)
        elif self.provider == "http":
            return self._generate_http(text, voice)
        else:
            return self._generate_stub(text)

    def _estimated_cost(self, text: str) -> float:
        return len(text) / 1000 * self.settings.estimated_tts_cost_per_1k_chars

    def _generate_elevenlabs(self, text: str) -> AudioAsset:
        """Generate speech using ElevenLabs API."""
        voice_id = getattr(self.settings, "elevenlabs_voice_id", None)
        if not voice_id:
            raise ValueError("ElevenLabs voice ID not configured")

        url = f"https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"

        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.settings.elevenlabs_api_key,
        }

        data = {
            "text": text,
            "model_id": "eleven_turbo_v2",
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
            },
        }

        try:
            response = requests.post(url, json=data, headers=headers, timeout=self.settings.generation_timeout_seconds)
        except requests.exceptions.RequestException as e:
            raise Exception(f"Network error calling ElevenLabs API: {e}")

        if response.status_code != 200:
            raise Exception(f"ElevenLabs API returned status {response.status_code}: {response.text[:200]}")

        return AudioAsset(data=response.content, content_type="audio/mpeg", cost=self._estimated_cost(text))

    def _generate_http(self, text: str, voice: str) -> AudioAsset:
        """Generate speech using the configured HTTP endpoint."""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.settings.tts_endpoint_token:
            headers["Authorization"] = f"Bearer {self.settings.tts_endpoint_token}"

        try:
            response = requests.post(
                self.settings.tts_endpoint_url,
                json={"text": text, "voice": voice},
                headers=headers,
                timeout=self.settings.generation_timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise Exception(f"Network error calling TTS endpoint: {e}")

        if response.status_code != 200:
            raise Exception(f"TTS endpoint returned status {response.status_code}: {response.text[:200]}")

        body = response.json()
        if not body.get("audioBase64"):
            raise Exception("TTS endpoint response is missing audioBase64")

        return AudioAsset(
            data=base64.b64decode(body["audioBase64"]),
            content_type=body.get("contentType") or "audio/mpeg",
            duration_seconds=body.get("durationSeconds") or None,
            cost=float(body.get("cost", self._estimated_cost(text))),
        )

    def _generate_stub(self, text: str) -> AudioAsset:
        """
        Generate stub audio (silent WAV).

        This creates a silent track sized to the narration at 150 words per
        minute, for running the pipeline when no TTS provider is configured.
        """
        self.logger.warning("Using stub TTS - generating silent audio placeholder")
        duration_seconds = max(1.0, estimate_spoken_duration(text))
        sample_rate = 44100
        num_samples = int(duration_seconds * sample_rate)

        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav_file:
            wav_file.setnchannels(1)  # Mono
            wav_file.setsampwidth(2)  # 16-bit
            wav_file.setframerate(sample_rate)
            wav_file.writeframes(b"\x00\x00" * num_samples)

        return AudioAsset(
            data=buffer.getvalue(),
            content_type="audio/wav",
            duration_seconds=num_samples / sample_rate,
            cost=0.0,
        )
