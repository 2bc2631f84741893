from datetime import date

import pytest
import requests

from backend.exceptions import SummarizationUnavailableError
from backend.schemas.series import AnalyteSeries, ReferenceRange, SeriesPoint
from backend.services.summarizer import (
    OpenAICompletionClient,
    SummarizationGateway,
    build_series_prompt,
    is_gut_health,
)
from tests.fakes import FakeCompletionClient

SERIES = [
    AnalyteSeries(
        name="Progesterone",
        unit="ng/mL",
        points=[SeriesPoint(date=date(2024, 1, 5), value=0.4), SeriesPoint(date=date(2024, 2, 5), value=1.2)],
    )
]


def test_prompt_carries_data_and_reference_range():
    prompt = build_series_prompt(SERIES, ReferenceRange(low=0.1, high=3.3), "Progesterone", pivoted=False)
    assert '{"date": "2024-01-05", "value": 0.4}' in prompt
    assert "(unit: ng/mL)" in prompt
    assert prompt.endswith("Reference range: 0.1 to 3.3 ng/mL.")


def test_prompt_template_placeholders_and_payload_cap():
    prompt = build_series_prompt(
        SERIES,
        ReferenceRange(high=3.3),
        "Progesterone",
        pivoted=True,
        template="{analyte} in {unit}: {data}",
        max_payload_chars=10,
    )
    assert prompt.startswith('Progesterone in ng/mL: [{"analyte')
    assert "Reference range: - to 3.3 ng/mL." in prompt


def test_gateway_sends_token_budget_and_temperature():
    completion = FakeCompletionClient(reply="Levels rose in February.")
    gateway = SummarizationGateway(completion, max_tokens=440, temperature=0.6)

    assert gateway.summarize_series(SERIES, None, "Progesterone", pivoted=False) == "Levels rose in February."
    assert completion.calls[0]["max_tokens"] == 440
    assert completion.calls[0]["temperature"] == 0.6


@pytest.mark.parametrize(
    "error",
    [
        SummarizationUnavailableError("OPENAI_API_KEY is missing"),
        requests.ConnectionError("unreachable"),
        RuntimeError("429 Too Many Requests"),
    ],
)
def test_gateway_failures_become_none(error):
    gateway = SummarizationGateway(FakeCompletionClient(error=error))
    assert gateway.summarize_series(SERIES, None, "Progesterone", pivoted=False) is None


def test_missing_api_key_raises_before_any_request():
    with pytest.raises(SummarizationUnavailableError):
        OpenAICompletionClient(None, "gpt-4o-mini").complete("system", "prompt", 10, 0.0)


def test_custom_analysis_budget_by_type():
    completion = FakeCompletionClient()
    gateway = SummarizationGateway(completion, genetic_max_tokens=400, gut_health_max_tokens=350, custom_model="gpt-4")

    gateway.summarize_custom({"categoryName": "Cardio"}, "Analyse these variants")
    gateway.summarize_custom({"testType": "gut_health"}, "Review this stool panel")

    assert [call["max_tokens"] for call in completion.calls] == [400, 350]
    assert completion.calls[0]["model"] == "gpt-4"


def test_is_gut_health():
    assert is_gut_health({}, "You are a gastroenterologist")
    assert is_gut_health({}, "intestinal markers")
    assert not is_gut_health({"testType": "genetic"}, "variants")
