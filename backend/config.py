import os
import logging
from typing import Dict, Optional, Any
from pathlib import Path

logger = logging.getLogger(__name__)

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5000
DEFAULT_REASONING_MODEL = "openai/gpt-4-turbo-preview"
DEFAULT_VISION_MODEL = "openai/gpt-4o-mini"
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

ACQUISITION_STRATEGIES = ["yt-dlp", "yt-dlp-library", "youtube-dl", "gallery-dl", "streamlink"]


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        from adapters.youtube.download import YTDLP_PLAYER_CLIENTS

        self.host = os.environ.get("HOST", DEFAULT_HOST)
        self.port = int(os.environ.get("PORT", DEFAULT_PORT))
        self.debug = _env_bool("DEBUG", "0")

        self.openrouter_api_key = os.environ.get("OPENROUTER_API_KEY") or None
        self.openrouter_base_url = os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
        self.reasoning_model = os.environ.get("REASONING_MODEL", DEFAULT_REASONING_MODEL)
        self.vision_model = os.environ.get("VISION_MODEL", DEFAULT_VISION_MODEL)
        self.ai_timeout = float(os.environ.get("AI_TIMEOUT", "60"))

        self.temp_dir = os.environ.get("TEMP_DIR", "/tmp/gif-generator")
        self.output_dir = os.environ.get("OUTPUT_DIR", os.path.join(os.getcwd(), "output"))
        self.font_path = os.environ.get("FONT_PATH", "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf")
        self.youtube_cookies = os.environ.get("YOUTUBE_COOKIES") or None

        self.acquisition_timeout = int(os.environ.get("ACQUISITION_TIMEOUT", "300"))
        self.acquisition_strategies = _env_list("ACQUISITION_STRATEGIES", ACQUISITION_STRATEGIES)
        self.ytdlp_player_clients = _env_list("YTDLP_PLAYER_CLIENTS", YTDLP_PLAYER_CLIENTS)
        self.backoff_min = float(os.environ.get("BACKOFF_MIN", "1"))
        self.backoff_max = float(os.environ.get("BACKOFF_MAX", "3"))

        self.render_timeout = int(os.environ.get("RENDER_TIMEOUT", "60"))
        self.render_workers = int(os.environ.get("RENDER_WORKERS", "1"))
        self.max_frames = int(os.environ.get("MAX_FRAMES", "12"))
        self.max_file_size = int(os.environ.get("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE))
        self.enable_validation = _env_bool("ENABLE_VALIDATION", "true")

        Path(self.temp_dir).mkdir(parents=True, exist_ok=True)
        Path(self.output_dir).mkdir(parents=True, exist_ok=True)

    @property
    def has_reasoning(self) -> bool:
        return self.openrouter_api_key is not None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "reasoning_model": self.reasoning_model,
            "vision_model": self.vision_model,
            "has_openrouter_key": self.has_reasoning,
            "has_youtube_cookies": self.youtube_cookies is not None,
            "acquisition_strategies": self.acquisition_strategies,
            "ytdlp_player_clients": self.ytdlp_player_clients,
            "render_workers": self.render_workers,
            "max_frames": self.max_frames,
            "enable_validation": self.enable_validation,
        }


config = Config()


def get_config() -> Config:
    return config


def create_acquisition_strategies(cfg: Config):
    """Build the download cascade in ACQUISITION_STRATEGIES order.

    "yt-dlp" expands to one strategy per configured player client.
    """
    from adapters.youtube import (
        GalleryDlStrategy, StreamlinkStrategy, YoutubeDlStrategy,
        YtDlpLibraryStrategy, YtDlpStrategy,
    )

    common = {"timeout": cfg.acquisition_timeout, "cookies": cfg.youtube_cookies, "temp_dir": cfg.temp_dir}
    strategies = []
    for name in cfg.acquisition_strategies:
        if name == "yt-dlp":
            strategies.extend(YtDlpStrategy(player_client=client, **common) for client in cfg.ytdlp_player_clients)
        elif name == "yt-dlp-library":
            strategies.append(YtDlpLibraryStrategy(**common))
        elif name == "youtube-dl":
            strategies.append(YoutubeDlStrategy(**common))
        elif name == "gallery-dl":
            strategies.append(GalleryDlStrategy(**common))
        elif name == "streamlink":
            strategies.append(StreamlinkStrategy(**common))
        else:
            raise ValueError(f"Unknown acquisition strategy: {name!r}. Valid options: {', '.join(ACQUISITION_STRATEGIES)}")

    logger.info(f"Acquisition cascade: {' -> '.join(s.name for s in strategies)}")
    return strategies


def create_metadata_probes(cfg: Config, rate_limiter=None):
    from adapters.youtube import WebPageMetadataProbe, YtDlpMetadataProbe

    return [
        YtDlpMetadataProbe(cookies=cfg.youtube_cookies, temp_dir=cfg.temp_dir, rate_limiter=rate_limiter),
        WebPageMetadataProbe(rate_limiter=rate_limiter),
    ]


def create_caption_sources(cfg: Config):
    from adapters.youtube import TimedTextCaptionSource, YtDlpCaptionSource

    return [YtDlpCaptionSource(cookies=cfg.youtube_cookies), TimedTextCaptionSource()]


def create_ai_adapters(cfg: Config):
    """Create reasoning and vision adapters. Both are None without OPENROUTER_API_KEY."""
    from adapters.openrouter import create_openrouter_adapters

    reasoning, vision = create_openrouter_adapters(
        cfg.openrouter_api_key,
        cfg.reasoning_model,
        cfg.vision_model,
        base_url=cfg.openrouter_base_url,
        timeout=cfg.ai_timeout,
    )
    if reasoning:
        logger.info(f"AI adapters: reasoning={cfg.reasoning_model}, vision={cfg.vision_model}")
    return reasoning, vision


def create_media_adapter():
    """Create the media tools adapter (always FFmpeg)."""
    from adapters.ffmpeg.media import FFmpegMediaAdapter
    return FFmpegMediaAdapter()


def create_encoder(cfg: Config):
    from adapters.ffmpeg.gif_encoder import FFmpegGifEncoder
    return FFmpegGifEncoder(timeout=cfg.render_timeout)


def create_artifact_store(cfg: Config):
    from adapters.local.file_artifact_store import FileArtifactStore
    return FileArtifactStore(cfg.output_dir)


def create_pipeline(cfg: Config, store=None):
    """Wire every adapter into a GenerateGifsUseCase."""
    from adapters.local.log_progress import LogProgressAdapter
    from adapters.local.memory_rate_limiter import MemoryRateLimiter
    from use_cases.acquire import SourceAcquirer
    from use_cases.describe import ContentDescriber
    from use_cases.generate import GenerateGifsUseCase
    from use_cases.render import ArtifactRenderer
    from use_cases.select_moments import MomentSelector
    from use_cases.validate import QualityValidator

    media = create_media_adapter()
    reasoning, vision = create_ai_adapters(cfg)
    store = store or create_artifact_store(cfg)

    acquirer = SourceAcquirer(
        create_acquisition_strategies(cfg),
        media,
        probes=create_metadata_probes(cfg, MemoryRateLimiter(points=10, duration=60)),
        backoff=(cfg.backoff_min, cfg.backoff_max),
    )
    describer = ContentDescriber(
        media,
        caption_sources=create_caption_sources(cfg),
        vision=vision,
        max_frames=cfg.max_frames,
        temp_dir=cfg.temp_dir,
    )
    renderer = ArtifactRenderer(create_encoder(cfg), store, font_path=cfg.font_path)
    if not renderer.can_caption:
        logger.warning(f"Font not found at {cfg.font_path}; GIFs will be rendered without captions")

    return GenerateGifsUseCase(
        acquirer=acquirer,
        describer=describer,
        selector=MomentSelector(reasoning),
        renderer=renderer,
        media=media,
        progress=LogProgressAdapter(),
        validator=QualityValidator() if cfg.enable_validation else None,
        render_workers=cfg.render_workers,
        temp_dir=cfg.temp_dir,
    )
