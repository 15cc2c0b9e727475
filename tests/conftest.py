import json

import pytest

from ingredient_scan.config import Settings
from ingredient_scan.records import RecordStore
from ingredient_scan.schemas import ScanStatus
from ingredient_scan.services import wire_services
from ingredient_scan.storage import ObjectStorage

ANALYSIS_JSON = json.dumps(
    {
        "score": 7,
        "explanation": "Mostly whole ingredients with some added sugar.",
        "pros": ["Whole grains", "Low sodium"],
        "cons": ["Added sugar"],
    }
)


class FakeModel:
    """Scripted stand-in for a generative model; exceptions in the script are raised."""

    def __init__(self, *responses, on_call=None):
        self.responses = list(responses)
        self.calls = []
        self.on_call = on_call

    def generate(self, prompt, image=None):
        self.calls.append((prompt, image))
        if self.on_call:
            self.on_call(prompt, image)
        if not self.responses:
            raise AssertionError("unexpected model call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def assert_record_invariants(record):
    assert (record.analysis_result is not None) == (record.status is ScanStatus.COMPLETE)
    assert (record.error_message is not None) == (record.status is ScanStatus.ERROR)
    if record.status is ScanStatus.ANALYZING:
        assert record.extracted_ingredients


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openai_api_key=None,
        database_url="sqlite://",
        storage_root=str(tmp_path / "storage"),
        storage_bucket="test-bucket",
        storage_public_base_url="http://testserver/files",
        scan_namespace="scan_images",
        cors_origins=["*"],
    )


@pytest.fixture
def records():
    return RecordStore.from_url("sqlite://")


@pytest.fixture
def storage(settings):
    return ObjectStorage(settings.storage_root, settings.storage_bucket, settings.storage_public_base_url)


@pytest.fixture
def extraction_model():
    return FakeModel()


@pytest.fixture
def analysis_model():
    return FakeModel()


@pytest.fixture
def services(settings, records, storage, extraction_model, analysis_model):
    return wire_services(settings, records, storage, extraction_model, analysis_model)


@pytest.fixture
def failed_scan(records):
    """A scan whose analysis failed after extraction succeeded."""
    records.create("scan-err", "user-1", "http://testserver/files/test-bucket/scan_images/user-1/scan-err_1.jpg")
    records.transition(
        "scan-err",
        ScanStatus.PROCESSING,
        ScanStatus.ANALYZING,
        extracted_ingredients=["Water", "Sugar", "Salt"],
    )
    return records.transition(
        "scan-err",
        ScanStatus.ANALYZING,
        ScanStatus.ERROR,
        error_message="Invalid response format from AI",
    )
