import os
import sys
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from openai import OpenAIError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from profile_analyzer.ai.config import analyzer_credentials_present, load_ai_config  # noqa: E402
from profile_analyzer.ai.factory import get_text_analyzer  # noqa: E402
from profile_analyzer.ai.providers.openai_provider import OpenAIAnalyzer  # noqa: E402
from profile_analyzer.ai.types import PreparedSection  # noqa: E402
from profile_analyzer.core.errors import ExternalAnalysisError, TransientIOError  # noqa: E402


def _reply(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class AIConfigTests(unittest.TestCase):
    def test_placeholder_keys_do_not_count(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "your_openai_key"}):
            self.assertFalse(analyzer_credentials_present())
            self.assertIsNone(get_text_analyzer())
        with patch.dict(os.environ, {"OPENAI_API_KEY": ""}):
            self.assertFalse(analyzer_credentials_present())

    def test_defaults_and_unknown_provider(self):
        with patch.dict(os.environ, {"AI_PROVIDER": "", "AI_MODEL": "gpt-test"}):
            self.assertEqual(load_ai_config().model, "gpt-test")
        with patch.dict(os.environ, {"AI_PROVIDER": "mystery"}):
            with self.assertRaises(ValueError):
                get_text_analyzer()

    def test_factory_builds_openai_analyzer(self):
        with patch.dict(os.environ, {"AI_PROVIDER": "openai", "OPENAI_API_KEY": "sk-test-123"}):
            self.assertIsInstance(get_text_analyzer(), OpenAIAnalyzer)


class OpenAIAnalyzerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.analyzer = OpenAIAnalyzer(model="gpt-test", api_key="sk-test-123")
        self.sections = {"about": PreparedSection(name="about", exists=True, chunks=("I build APIs.",))}

    async def test_json_reply_is_parsed(self):
        create = AsyncMock(return_value=_reply('```json\n{"score": 7, "gapAnalysis": "No metrics"}\n```'))
        with patch.object(self.analyzer._client.chat.completions, "create", create):
            reply = await self.analyzer.analyze("Analyze the about section.", self.sections)
        self.assertEqual(reply["score"], 7)
        kwargs = create.await_args.kwargs
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})
        self.assertIn("I build APIs.", kwargs["messages"][-1]["content"])

    async def test_unparsable_reply_raises(self):
        create = AsyncMock(return_value=_reply("Looks great!"))
        with patch.object(self.analyzer._client.chat.completions, "create", create):
            with self.assertRaises(ExternalAnalysisError):
                await self.analyzer.analyze("Analyze.", self.sections)

    async def test_client_errors_become_transient(self):
        create = AsyncMock(side_effect=OpenAIError("connection reset"))
        with patch.object(self.analyzer._client.chat.completions, "create", create):
            with self.assertRaises(TransientIOError):
                await self.analyzer.analyze("Analyze.", self.sections)


if __name__ == "__main__":
    unittest.main()
