"""Shared fixtures: isolated settings, a scratch SQLite database and seed data."""

from __future__ import annotations

import asyncio
import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# Settings are read at import time, so the environment must be prepared first.
_SCRATCH = Path(tempfile.mkdtemp(prefix="salesmind-tests-"))
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_SCRATCH / 'api.db'}"
os.environ["STORAGE_UPLOAD_DIR"] = str(_SCRATCH / "uploads")
os.environ["LOG_FILE"] = str(_SCRATCH / "logs" / "app.log")
os.environ["PIPELINE_LOG_FILE"] = str(_SCRATCH / "logs" / "pipeline.log")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PIPELINE_WORKERS"] = "1"
os.environ.pop("GEMINI_API_KEY", None)

from salesmind.database import SessionFactory, engine  # noqa: E402
from salesmind.models import (  # noqa: E402
    Base,
    Client,
    Company,
    Feedback,
    ProcessingStatus,
    Recording,
    SaleStatus,
    SentimentCategory,
    User,
    UserRole,
)


@dataclass
class SeedData:
    company_id: int
    other_company_id: int
    seller_id: int
    other_seller_id: int
    admin_id: int
    client_id: int
    foreign_client_id: int


async def _reset_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _seed() -> SeedData:
    async with SessionFactory() as session:
        acme = Company(name="Acme Vendas", tax_id="11.111.111/0001-11")
        globex = Company(name="Globex", tax_id="22.222.222/0001-22")
        session.add_all([acme, globex])
        await session.flush()

        seller = User(company_id=acme.id, email="ana@acme.test", name="Ana", role=UserRole.VENDEDOR)
        other_seller = User(
            company_id=acme.id, email="bruno@acme.test", name="Bruno", role=UserRole.VENDEDOR
        )
        admin = User(company_id=acme.id, email="carla@acme.test", name="Carla", role=UserRole.ADMIN)
        client = Client(company_id=acme.id, name="Padaria Central")
        foreign_client = Client(company_id=globex.id, name="Loja Globex")
        session.add_all([seller, other_seller, admin, client, foreign_client])
        await session.commit()

        return SeedData(
            company_id=acme.id,
            other_company_id=globex.id,
            seller_id=seller.id,
            other_seller_id=other_seller.id,
            admin_id=admin.id,
            client_id=client.id,
            foreign_client_id=foreign_client.id,
        )


@pytest.fixture
def seed() -> SeedData:
    asyncio.run(_reset_schema())
    return asyncio.run(_seed())


async def _add_recording(
    seed_data: SeedData,
    *,
    user_id: int | None = None,
    status: ProcessingStatus = ProcessingStatus.UPLOADING,
    with_feedback: bool = False,
) -> int:
    async with SessionFactory() as session:
        recording = Recording(
            user_id=user_id or seed_data.seller_id,
            client_id=seed_data.client_id,
            audio_path="uploads/1/1/call.mp3",
            audio_filename="call.mp3",
            processing_status=status,
            sale_status=SaleStatus.PENDENTE,
        )
        if with_feedback:
            recording.transcript = "Vendedor: Bom dia."
            recording.ai_summary = "Cliente interessado no plano anual."
            recording.feedback = Feedback(
                company_id=seed_data.company_id,
                strengths=["Boa abertura"],
                weaknesses=[],
                suggestions=["Confirmar prazo"],
                objections=["preço"],
                key_moments=["00:45 - pediu proposta"],
                sentiment_score=80,
                closing_probability=75,
                sentiment_category=SentimentCategory.POSITIVO,
            )
        session.add(recording)
        await session.commit()
        return recording.id


@pytest.fixture
def add_recording(seed):
    def _factory(**kwargs) -> int:
        return asyncio.run(_add_recording(seed, **kwargs))

    return _factory

