"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build process-wide collaborators (LLM client, transcriber, synthesizer)
  and the VoiceGateway
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from adapters.asr.whisper_adapter import WhisperTranscriber
from adapters.llm.openai_adapter import OpenAIReplyGenerator
from adapters.memory.null import NullMemory
from adapters.tts.base import SpeechSynthesizer
from adapters.tts.fallback import FallbackSynthesizer
from adapters.tts.openai_tts import OpenAISynthesizer
from adapters.tts.speechmatics import SpeechmaticsSynthesizer
from config import AppConfig
from observability.logger import log_event
from server.routes import register_routes
from session.gateway import VoiceGateway
from session.registry import SessionRegistry
from session.voice_session import SessionSettings


def create_app(config: AppConfig | None = None, gateway: VoiceGateway | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with an injected gateway (fake providers)
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()
    if gateway is None:
        gateway = build_gateway(config)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        log_event({"event_type": "APP_STARTED", "env": config.env})
        yield
        await gateway.close()
        log_event({"event_type": "APP_STOPPED", "env": config.env})

    app = FastAPI(title="Voice Turn-Taking API", lifespan=lifespan)

    app.state.config = config
    app.state.gateway = gateway

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app


def build_gateway(config: AppConfig) -> VoiceGateway:
    """Wire real providers from configuration."""
    if not config.speechmatics_api_key:
        raise RuntimeError("SPEECHMATICS_API_KEY environment variable not set")

    registry = SessionRegistry(
        tuning=config.tuning,
        default_settings=SessionSettings(
            language=config.default_language,
            language_name=config.default_language_name,
            voice=config.default_voice,
        ),
    )
    return VoiceGateway(
        registry=registry,
        transcriber=WhisperTranscriber(
            model=config.whisper_model,
            device=config.whisper_device,
            compute_type=config.whisper_compute_type,
        ),
        generator=OpenAIReplyGenerator(
            client=build_llm_client(config),
            model=config.llm_model,
            provider=config.llm_provider.lower(),
        ),
        synthesizer=build_synthesizer(config),
        memory=NullMemory(),
    )


def build_llm_client(config: AppConfig) -> AsyncOpenAI:
    """Build an LLM client with the provider selected by environment variables."""
    if config.llm_provider.lower() == "groq":
        if not config.groq_api_key:
            raise RuntimeError("GROQ_API_KEY environment variable not set")
        return AsyncOpenAI(
            api_key=config.groq_api_key,
            base_url="https://api.groq.com/openai/v1",
        )

    if not config.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable not set")
    return AsyncOpenAI(api_key=config.openai_api_key)


def build_synthesizer(config: AppConfig) -> SpeechSynthesizer:
    """
    Speechmatics, with an optional OpenAI TTS fallback.

    TTS_FALLBACK_PROVIDER=none disables the fallback. Without an
    OPENAI_API_KEY the fallback is skipped (and logged), not fatal.
    """
    if not config.speechmatics_api_key:
        raise RuntimeError("SPEECHMATICS_API_KEY environment variable not set")
    primary = SpeechmaticsSynthesizer(api_key=config.speechmatics_api_key)

    provider = config.tts_fallback_provider.lower()
    if provider == "none":
        return primary
    if provider != "openai":
        raise RuntimeError(f"Unknown TTS_FALLBACK_PROVIDER: {config.tts_fallback_provider}")
    if not config.openai_api_key:
        log_event({
            "event_type": "TTS_FALLBACK_UNAVAILABLE",
            "provider": provider,
            "reason": "OPENAI_API_KEY not set",
        })
        return primary

    return FallbackSynthesizer(
        primary=primary,
        secondary=OpenAISynthesizer(
            client=AsyncOpenAI(api_key=config.openai_api_key),
            model=config.openai_tts_model,
            default_voice=config.openai_tts_voice,
        ),
        primary_name="speechmatics",
        secondary_name="openai",
    )
