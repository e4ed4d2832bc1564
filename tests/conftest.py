from __future__ import annotations

import pytest
from botocore.credentials import Credentials

from s3connector.common.config import Settings, get_settings
from s3connector.infra.storage.connector import S3Connector
from tests.infra.mock_executor import FIXED_NOW, RecordingExecutor


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]

@pytest.fixture
def settings() -> Settings:
    return Settings(
        S3_ACCESS_KEY_ID="AKIDEXAMPLE",
        S3_SECRET_ACCESS_KEY="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        S3_REGION="us-east-1",
        S3_ENDPOINT="s3.example.test",
        S3_USE_SSL=True,
        S3_ADDRESSING_STYLE="path",
        S3_SIGNATURE_METHOD="v4",
    )

@pytest.fixture
def credentials(settings: Settings) -> Credentials:
    return Credentials(settings.S3_ACCESS_KEY_ID, settings.S3_SECRET_ACCESS_KEY)

@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()

@pytest.fixture
def connector(settings, credentials, executor) -> S3Connector:
    return S3Connector(
        settings=settings,
        executor=executor,
        credentials=credentials,
        clock=lambda: FIXED_NOW,
    )
