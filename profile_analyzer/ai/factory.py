from profile_analyzer.ai.config import analyzer_credentials_present, load_ai_config
from profile_analyzer.ai.providers.openai_provider import OpenAIAnalyzer
from profile_analyzer.ai.types import TextAnalyzer


def get_text_analyzer() -> TextAnalyzer | None:
    """Configured analyzer, or None when no usable credentials are set."""
    cfg = load_ai_config()

    if cfg.provider == "openai":
        if not analyzer_credentials_present():
            return None
        return OpenAIAnalyzer(model=cfg.model)

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")
