from typing import List

import pytest

from hiring_pipeline.models.round_template import RoundTemplate
from tests.fakes import FakeEvaluationClient, FakeGateway, make_templates


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def evaluation_client() -> FakeEvaluationClient:
    return FakeEvaluationClient()


@pytest.fixture
def templates() -> List[RoundTemplate]:
    return make_templates()
