"""Unit tests for gift card code generation."""

import pytest
from services.giftcard_service.errors import CodeGenerationExhaustedError
from services.giftcard_service.models import GiftCard
from services.giftcard_service.services import lifecycle
from services.giftcard_service.services.code_generator import (
    CODE_PATTERN,
    generate_code,
    generate_unique_code,
    normalize_code,
)
from sqlalchemy import func, select
from tests.factories import issue_card


@pytest.mark.unit
def test_generated_codes_match_the_presentation_format():
    codes = {generate_code() for _ in range(200)}
    assert all(CODE_PATTERN.match(code) for code in codes)
    # 36^12 possibilities; 200 draws colliding would mean a broken generator
    assert len(codes) == 200


@pytest.mark.unit
def test_normalize_code_is_case_and_whitespace_insensitive():
    assert normalize_code("  gc-abc123-def456 ") == "GC-ABC123-DEF456"
    assert normalize_code(None) == ""


@pytest.mark.asyncio
@pytest.mark.unit
async def test_generate_unique_code_retries_on_collision(db_session):
    card = await issue_card(db_session)
    candidates = iter([card.code, card.code, "GC-AAAAAA-BBBBBB"])

    code = await generate_unique_code(db_session, generator=lambda: next(candidates))

    assert code == "GC-AAAAAA-BBBBBB"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_generate_unique_code_gives_up_after_bounded_attempts(db_session):
    card = await issue_card(db_session)
    calls = []

    def always_taken():
        calls.append(1)
        return card.code

    with pytest.raises(CodeGenerationExhaustedError) as exc_info:
        await generate_unique_code(db_session, attempts=3, generator=always_taken)

    assert len(calls) == 3
    assert exc_info.value.context["attempts"] == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_exhausted_code_generation_leaves_no_card_behind(db_session, monkeypatch):
    async def exhausted(db, **kwargs):
        raise CodeGenerationExhaustedError("no codes left", attempts=10)

    monkeypatch.setattr(lifecycle, "generate_unique_code", exhausted)

    with pytest.raises(CodeGenerationExhaustedError):
        await issue_card(db_session)

    count = await db_session.execute(select(func.count(GiftCard.id)))
    assert count.scalar_one() == 0
