from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from backend.config import settings
from backend.database import get_db
from backend.services.pipeline import SeriesPipeline
from backend.services.sources import CardQueryClient, SqlRowStore
from backend.services.summarizer import OpenAICompletionClient, SummarizationGateway


def get_settings():
    return settings


def get_card_client() -> Generator[CardQueryClient, None, None]:
    client = CardQueryClient(settings.metabase_url, settings.metabase_session, timeout=settings.card_timeout_seconds)
    try:
        yield client
    finally:
        client.close()


def get_row_store(db: Session = Depends(get_db)) -> SqlRowStore:
    return SqlRowStore(db)


def get_summarizer() -> SummarizationGateway:
    client = OpenAICompletionClient(
        settings.openai_api_key,
        settings.summary_model,
        timeout=settings.summary_timeout_seconds,
    )
    return SummarizationGateway(
        client,
        max_tokens=settings.summary_max_tokens,
        temperature=settings.summary_temperature,
        max_payload_chars=settings.summary_max_payload_chars,
        prompt_template=settings.smart_blurb_prompt,
        custom_model=settings.custom_analysis_model,
        custom_temperature=settings.custom_analysis_temperature,
        genetic_max_tokens=settings.genetic_analysis_max_tokens,
        gut_health_max_tokens=settings.gut_health_max_tokens,
    )


def get_pipeline(
    app_settings=Depends(get_settings),
    card_client: CardQueryClient = Depends(get_card_client),
    store: SqlRowStore = Depends(get_row_store),
    gateway: SummarizationGateway = Depends(get_summarizer),
) -> SeriesPipeline:
    return SeriesPipeline(app_settings, card_client, store, gateway)
