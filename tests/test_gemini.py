from pathlib import Path
from types import SimpleNamespace

import pytest

from esg_pipeline import gemini as gemini_module
from esg_pipeline.config import PipelineConfig
from esg_pipeline.errors import ConfigError, MalformedResponseError, RetryableAPIError
from esg_pipeline.gemini import UPLOAD_MAX_POLLS, UPLOAD_POLL_SECONDS, GeminiClient
from esg_pipeline.retry import RetryPolicy
from esg_pipeline.schemas import CountryInfo
from esg_pipeline.tasks import ExtractionTask


class FakeModel:
    def __init__(self, replies, **kwargs):
        self.kwargs = kwargs
        self.replies = replies
        self.contents = []

    def generate_content(self, contents):
        self.contents.append(contents)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


class FakeGenai:
    def __init__(self, replies=None, files=(), upload_states=("ACTIVE",)):
        self.upload_states = list(upload_states)
        self.polled = 0
        self.replies = list(replies or [])
        self.models = []
        self.files = list(files)
        self.deleted = []
        self.api_key = None

    def configure(self, api_key):
        self.api_key = api_key

    def GenerativeModel(self, **kwargs):
        model = FakeModel(self.replies, **kwargs)
        self.models.append(model)
        return model

    def upload_file(self, path, mime_type, display_name):
        return self._file(f"files/{display_name}")

    def get_file(self, name):
        self.polled += 1
        return self._file(name)

    def _file(self, name):
        state = self.upload_states.pop(0) if len(self.upload_states) > 1 else self.upload_states[0]
        return SimpleNamespace(name=name, state=SimpleNamespace(name=state))

    def delete_file(self, name):
        self.deleted.append(name)

    def list_files(self):
        return iter(self.files)


@pytest.fixture
def fake_genai(monkeypatch):
    def install(**kwargs):
        fake = FakeGenai(**kwargs)
        monkeypatch.setattr(gemini_module, "genai", fake)
        return fake
    return install


def test_requires_api_key(fake_genai):
    fake_genai()
    with pytest.raises(ConfigError):
        GeminiClient(PipelineConfig())


def test_generate_parses_schema(config, policy, fake_genai):
    genai = fake_genai(replies=['{"country": "Spain", "confidence": 9}'])
    client = GeminiClient(config, policy)

    info = client.generate(ExtractionTask.COUNTRY, "Where is Inditex?")

    assert isinstance(info, CountryInfo)
    assert info.country == "Spain"
    assert genai.api_key == "test-gemini"
    settings = genai.models[0].kwargs
    assert settings["model_name"] == "gemini-2.0-flash"
    assert settings["generation_config"]["response_mime_type"] == "application/json"


def test_model_is_cached_per_task(config, policy, fake_genai):
    genai = fake_genai(replies=['{"country": "Spain"}', '{"country": "Peru"}'])
    client = GeminiClient(config, policy)
    client.generate(ExtractionTask.COUNTRY, "a")
    client.generate(ExtractionTask.COUNTRY, "b")
    assert len(genai.models) == 1


def test_model_override(config, policy, fake_genai):
    fake_genai()
    config.model_override = "gemini-1.5-pro"
    assert GeminiClient(config, policy).model_name(ExtractionTask.EMISSIONS) == "gemini-1.5-pro"


def test_generate_retries_rate_limits(config, policy, fake_genai):
    fake_genai(replies=[RetryableAPIError("429 quota", 429), '{"country": "Chile"}'])
    assert GeminiClient(config, policy).generate(ExtractionTask.COUNTRY, "x").country == "Chile"


def test_malformed_reply_is_not_retried(config, policy, fake_genai):
    genai = fake_genai(replies=["I am not sure", '{"country": "Chile"}'])
    with pytest.raises(MalformedResponseError):
        GeminiClient(config, policy).generate(ExtractionTask.COUNTRY, "x")
    assert len(genai.models[0].contents) == 1


def test_attachment_goes_before_prompt(config, policy, fake_genai):
    genai = fake_genai(replies=['{"country": "Chile"}'])
    GeminiClient(config, policy).generate(ExtractionTask.COUNTRY, "prompt", attachment="file")
    assert genai.models[0].contents[0] == ["file", "prompt"]


def test_upload_and_cleanup(config, policy, fake_genai):
    genai = fake_genai(files=[SimpleNamespace(name="files/a"), SimpleNamespace(name="files/b")])
    client = GeminiClient(config, policy)

    uploaded = client.upload_report(Path("/tmp/report.pdf"))
    client.delete_upload(uploaded)

    assert genai.deleted == ["files/report.pdf"]
    assert client.clean_uploads() == 2
    assert genai.deleted[1:] == ["files/a", "files/b"]


def test_upload_waits_for_processing(config, fake_genai):
    genai = fake_genai(upload_states=["PROCESSING", "PROCESSING", "ACTIVE"])
    delays = []
    policy = RetryPolicy(max_attempts=1, sleep=delays.append)

    uploaded = GeminiClient(config, policy).upload_report(Path("/tmp/report.pdf"))

    assert uploaded.state.name == "ACTIVE"
    assert genai.polled == 2
    assert delays == [UPLOAD_POLL_SECONDS, UPLOAD_POLL_SECONDS]


def test_upload_stuck_in_processing_raises(config, fake_genai):
    genai = fake_genai(upload_states=["PROCESSING"])
    policy = RetryPolicy(max_attempts=1, sleep=lambda s: None)

    with pytest.raises(RetryableAPIError):
        GeminiClient(config, policy).upload_report(Path("/tmp/report.pdf"))
    assert genai.polled == UPLOAD_MAX_POLLS


def test_failed_upload_raises(config, policy, fake_genai):
    fake_genai(upload_states=["PROCESSING", "FAILED"])
    with pytest.raises(RuntimeError, match="could not process"):
        GeminiClient(config, policy).upload_report(Path("/tmp/report.pdf"))
