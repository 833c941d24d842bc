import pytest
import requests

from esg_pipeline.config import PipelineConfig
from esg_pipeline.retry import RetryPolicy
from esg_pipeline.schemas import EmissionsReport


class FakeClient:
    """Stands in for GeminiClient: answers each task from a dict."""

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def generate(self, task, prompt, attachment=None):
        self.calls.append((task, prompt, attachment))
        answer = self.answers[task]
        if isinstance(answer, Exception):
            raise answer
        return answer

    def upload_report(self, pdf_path):
        return f"upload:{pdf_path.name}"

    def delete_upload(self, uploaded):
        self.calls.append(("delete", uploaded, None))


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(
        gemini_api_key="test-gemini",
        serp_api_key="test-serp",
        partitions=2,
        max_retries=3,
        retry_base_delay=0,
        retry_max_delay=0,
        output_dir=tmp_path / "outputs",
        reports_dir=tmp_path / "reports",
    )


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, jitter=0, sleep=lambda s: None)


@pytest.fixture
def emissions_report():
    return EmissionsReport.model_validate({
        "containsRelevantData": True,
        "reportingPeriod": 2023,
        "standardUnit": "tCO2e",
        "scope1": {"value": 1200.5},
        "scope2": {"locationBased": {"value": "3,400"}, "marketBased": {"value": 2100}},
        "scope3": {
            "total": {"value": 98000},
            "categories": {"1": {"value": 50000}, "6": {"value": "N/A"}},
        },
        "confidence": 0.8,
    })


@pytest.fixture
def make_client():
    return FakeClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", content=b""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = content

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def iter_content(self, chunk_size=8192):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]


class FakeSession:
    """requests.Session stand-in that replays queued responses per URL."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        queued = self.responses[url]
        response = queued.pop(0) if isinstance(queued, list) else queued
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_response():
    return FakeResponse
