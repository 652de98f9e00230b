"""Generic structured-extraction call against the Gemini document API.

Every stage (field extraction, charge classification, quotation rates) is a
:class:`ExtractionRequest`: an instruction, the output model the response must
validate against, and how many leading pages of the PDF the model may see.
:class:`StructuredExtractor` runs any such request the same way.
"""
import json
import logging
from typing import Optional

from google import genai
from google.genai import errors, types
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import Settings
from ..core.exceptions import MalformedModelOutputError, ModelServiceError, SecurityError
from ..core.json_utils import extract_json_object, find_json_block
from ..core.models import SourceDocument
from ..core.pdf_utils import scoped_pdf_bytes
from ..core.rate_limit import RateLimitedExecutor, RetryError
from ..core.security import sanitize_filename

logger = logging.getLogger(__name__)

TRANSIENT_RESPONSE_MARKERS = ("502 Bad Gateway", "Service Unavailable", "server error")


class TransientModelError(RuntimeError):
    """A model call failed in a way worth retrying."""


RETRYABLE_EXCEPTIONS = (errors.ServerError, TransientModelError, TimeoutError, ConnectionError)


class ExtractionRequest(BaseModel):
    """One stage's parameters for a structured extraction call."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    stage: str = Field(..., description="Short stage name used in logs and errors")
    instruction: str = Field(..., description="System instruction for the model")
    prompt: str = Field(..., description="User turn sent alongside the document")
    output_model: type[BaseModel] = Field(..., description="Shape the response must validate against")
    max_pages: int = Field(..., ge=1, description="Leading pages of the document the model may see")

    def system_instruction(self) -> str:
        schema = json.dumps(self.output_model.model_json_schema(), indent=2)
        return f"{self.instruction}\n\nThe JSON object must match this JSON schema:\n{schema}"


def create_executor(settings: Settings) -> RateLimitedExecutor:
    """Executor tuned for Gemini calls from the retry settings."""
    return RateLimitedExecutor(
        capacity=settings.quota_limit,
        max_retries=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
        jitter_range=settings.retry_jitter_range,
        retry_exceptions=RETRYABLE_EXCEPTIONS,
    )


def create_client(settings: Settings) -> genai.Client:
    return genai.Client(**settings.api_client_kwargs)


class StructuredExtractor:
    """Runs :class:`ExtractionRequest` calls and validates their output."""

    def __init__(
        self,
        client: genai.Client,
        settings: Settings,
        executor: Optional[RateLimitedExecutor] = None
    ) -> None:
        self._client = client
        self._settings = settings
        self._executor = executor or create_executor(settings)

    @property
    def model(self) -> str:
        return self._settings.extraction_model

    async def extract(self, document: SourceDocument, request: ExtractionRequest) -> BaseModel:
        """Run ``request`` against ``document`` and return a validated output model.

        Raises:
            DocumentReadError: If the page-scoped PDF cannot be produced
            ModelServiceError: If the model call fails after retries
            MalformedModelOutputError: If the response has no usable JSON object
        """
        pdf_bytes = await scoped_pdf_bytes(document, request.max_pages)
        pages_sent = min(document.page_count, request.max_pages)

        contents = [
            types.Part.from_bytes(data=pdf_bytes, mime_type=document.mime_type),
            request.prompt,
        ]
        config = types.GenerateContentConfig(
            system_instruction=request.system_instruction(),
            response_mime_type="application/json",
            temperature=self._settings.temperature,
        )

        async def call_model() -> str:
            try:
                response = await self._client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                )
            except errors.ClientError as exc:
                if exc.code == 429:
                    raise TransientModelError(f"Rate limited: {exc}") from exc
                raise

            response_text = response.text or ""
            if find_json_block(response_text) is None and any(
                marker in response_text for marker in TRANSIENT_RESPONSE_MARKERS
            ):
                raise TransientModelError("Transient upstream error - will retry")
            return response_text

        logger.info(f"[{request.stage.upper()}] {document.filename} - Calling {self.model} ({pages_sent}/{document.page_count} pages)")
        try:
            response_text = await self._executor.execute(
                call_model,
                operation_name=f"{request.stage} {document.filename}",
            )
        except RetryError as exc:
            raise ModelServiceError(
                request.stage, document.filename, exc.last_exception, self.model, exc.attempts
            ) from exc

        self._save_debug_response(document, request, response_text)
        return self.parse_response(response_text, request, document.filename)

    @staticmethod
    def parse_response(response_text: str, request: ExtractionRequest, filename: str) -> BaseModel:
        """Validate a raw response against the request's output model.

        Raises:
            MalformedModelOutputError: If no JSON object can be recovered or it fails validation
        """
        if not response_text or not response_text.strip():
            raise MalformedModelOutputError(request.stage, filename, "empty response")

        try:
            data = extract_json_object(response_text)
        except ValueError as exc:
            raise MalformedModelOutputError(request.stage, filename, str(exc), response_text, exc) from exc

        try:
            return request.output_model.model_validate(data)
        except ValidationError as exc:
            reason = f"{exc.error_count()} validation error(s)"
            raise MalformedModelOutputError(request.stage, filename, reason, response_text, exc) from exc

    def _save_debug_response(self, document: SourceDocument, request: ExtractionRequest, response_text: str) -> None:
        if not self._settings.debug_responses:
            return

        stage_folder = self._settings.responses_directory / request.stage
        try:
            stem = sanitize_filename(document.filename.rsplit(".", 1)[0] or "document")
            stage_folder.mkdir(parents=True, exist_ok=True)
            (stage_folder / f"{stem}_{request.stage}.txt").write_text(response_text, encoding="utf-8")
        except (OSError, SecurityError) as exc:
            logger.warning(f"[{request.stage.upper()}] {document.filename} - Could not save debug response: {exc}")
