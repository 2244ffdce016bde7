"""Shared fixtures: synthetic audio, temporary storage and a sqlite database."""

from __future__ import annotations

import numpy as np
import pytest
from sqlmodel.ext.asyncio.session import AsyncSession

from emoset.audio.codec import SampleBuffer, encode_wav
from emoset.config import AuthConfig, Config, DatasetConfig, UserAccount, set_config
from emoset.db.config import create_engine_for_url, init_db, set_engine
from emoset.storage import LocalStorage, set_storage


def make_sine(
    freq: float = 440.0,
    seconds: float = 0.5,
    rate: int = 16000,
    channels: int = 1,
    amplitude: float = 0.5,
) -> SampleBuffer:
    t = np.arange(int(seconds * rate)) / rate
    tone = amplitude * np.sin(2 * np.pi * freq * t)
    return SampleBuffer(samples=np.tile(tone, (channels, 1)), sample_rate_hz=rate)


@pytest.fixture
def sine_buffer() -> SampleBuffer:
    return make_sine()


@pytest.fixture
def wav_bytes(sine_buffer: SampleBuffer) -> bytes:
    return encode_wav(sine_buffer)


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    backend = LocalStorage(tmp_path / "media")
    set_storage(backend)
    yield backend
    set_storage(None)


@pytest.fixture
def config(tmp_path) -> Config:
    from emoset.auth import hash_password

    cfg = Config(
        auth=AuthConfig(
            jwt_secret="test-secret",
            users=[
                UserAccount(
                    email="celina@example.com",
                    name="Celina",
                    password_hash=hash_password("hunter2", iterations=1000),
                )
            ],
        ),
        dataset=DatasetConfig(team_members=["Celina", "Faruk"], target_clips=10),
        media_root=str(tmp_path / "media"),
    )
    set_config(cfg)
    yield cfg
    set_config(None)


@pytest.fixture
async def engine(tmp_path):
    db_engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'emoset.db'}")
    await init_db(db_engine)
    set_engine(db_engine)
    yield db_engine
    set_engine(None)
    await db_engine.dispose()


@pytest.fixture
async def session(engine):
    async with AsyncSession(engine, expire_on_commit=False) as db_session:
        yield db_session
