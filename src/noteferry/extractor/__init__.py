"""
Content extraction: platform parsers, page acquisition and the orchestrator.
"""

from .ai_extractor import AIExtractor
from .bilibili import BilibiliExtractor
from .browser_extractor import HeadlessBrowserExtractor
from .fetch_extractor import FetchExtractor
from .generic import GenericExtractor
from .image_filter import ImageFilter, ImageRules
from .manager import ExtractionOrchestrator, ExtractionReport, ExtractionState, StageOutcome, next_state
from .models import (
    MAX_IMAGES,
    AIEnhancedContent,
    AIOptions,
    ContentType,
    ExtractedContent,
    ExtractionOptions,
    Platform,
)
from .platform_detector import detect_platform, is_supported, supported_platforms
from .wechat import WechatExtractor
from .xiaohongshu import XiaohongshuExtractor

__all__ = [
    "AIEnhancedContent",
    "AIExtractor",
    "AIOptions",
    "BilibiliExtractor",
    "ContentType",
    "ExtractedContent",
    "ExtractionOptions",
    "ExtractionOrchestrator",
    "ExtractionReport",
    "ExtractionState",
    "FetchExtractor",
    "GenericExtractor",
    "HeadlessBrowserExtractor",
    "ImageFilter",
    "ImageRules",
    "MAX_IMAGES",
    "Platform",
    "StageOutcome",
    "WechatExtractor",
    "XiaohongshuExtractor",
    "detect_platform",
    "is_supported",
    "next_state",
    "supported_platforms",
]
