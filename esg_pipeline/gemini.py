"""
Gemini client: one GenerativeModel per extraction task, schema-validated
replies and report uploads, all behind the shared retry policy.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

import google.generativeai as genai

from .config import PipelineConfig
from .errors import RetryableAPIError
from .retry import RetryPolicy
from .schemas import parse_model_response
from .tasks import ExtractionTask

logger = logging.getLogger(__name__)

UPLOAD_POLL_SECONDS = 2
UPLOAD_MAX_POLLS = 60


class GeminiClient:
    """Runs ExtractionTasks against the Gemini API."""

    def __init__(self, config: PipelineConfig, policy: Optional[RetryPolicy] = None):
        config.require_gemini()
        self.config = config
        self.policy = policy or RetryPolicy.from_config(config)
        genai.configure(api_key=config.gemini_api_key)
        self._models: Dict[ExtractionTask, genai.GenerativeModel] = {}

    def model_name(self, task: ExtractionTask) -> str:
        return self.config.model_override or task.config.model

    def _model(self, task: ExtractionTask) -> genai.GenerativeModel:
        if task not in self._models:
            cfg = task.config
            self._models[task] = genai.GenerativeModel(
                model_name=self.model_name(task),
                system_instruction=cfg.system_instruction,
                generation_config={
                    "temperature": cfg.temperature,
                    "response_mime_type": "application/json",
                },
            )
        return self._models[task]

    def generate(self, task: ExtractionTask, prompt: str, attachment=None):
        """Run one task and return an instance of its response schema.

        Raises MalformedResponseError when the reply does not fit the schema.
        """
        contents = [attachment, prompt] if attachment is not None else prompt

        def _call():
            response = self._model(task).generate_content(contents)
            return parse_model_response(response.text, task.schema)

        return self.policy.call(_call, operation=f"Gemini {task.name.lower()}")

    def upload_report(self, pdf_path: Path):
        """Upload a PDF for use as a prompt attachment."""
        logger.info(f"Uploading {pdf_path.name} to Gemini")
        uploaded = self.policy.call(
            genai.upload_file,
            path=str(pdf_path),
            mime_type="application/pdf",
            display_name=pdf_path.name,
            operation=f"Gemini upload {pdf_path.name}",
        )
        polls = 0
        while uploaded.state.name == "PROCESSING":
            if polls >= UPLOAD_MAX_POLLS:
                raise RetryableAPIError(
                    f"Gemini still processing {pdf_path.name} after {polls * UPLOAD_POLL_SECONDS}s"
                )
            self.policy.sleep(UPLOAD_POLL_SECONDS)
            uploaded = genai.get_file(uploaded.name)
            polls += 1
        if uploaded.state.name == "FAILED":
            raise RuntimeError(f"Gemini could not process {pdf_path.name}")
        return uploaded

    def delete_upload(self, uploaded):
        try:
            genai.delete_file(uploaded.name)
        except Exception as e:
            logger.warning(f"Could not delete uploaded file {uploaded.name}: {e}")

    def clean_uploads(self) -> int:
        """Delete every file this API key has uploaded. Returns the count."""
        deleted = 0
        for uploaded in genai.list_files():
            genai.delete_file(uploaded.name)
            deleted += 1
        logger.info(f"Deleted {deleted} uploaded files")
        return deleted
