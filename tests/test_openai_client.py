from types import SimpleNamespace

import pytest

from ingredient_scan.openai_client import InlineImage, OpenAIGenerativeModel, build_openai_client


class RecordingCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content):
    completions = RecordingCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_build_client_requires_api_key():
    with pytest.raises(RuntimeError):
        build_openai_client(None, timeout_s=10, max_retries=0)


def test_text_prompt_is_sent_as_plain_content():
    client, completions = fake_client("Water, Salt")
    model = OpenAIGenerativeModel(client, "gpt-4o-mini", max_tokens=200)

    assert model.generate("hello") == "Water, Salt"
    assert completions.kwargs["model"] == "gpt-4o-mini"
    assert completions.kwargs["temperature"] == 0
    assert completions.kwargs["max_tokens"] == 200
    assert completions.kwargs["messages"] == [{"role": "user", "content": "hello"}]


def test_image_is_sent_as_data_url():
    client, completions = fake_client(None)
    model = OpenAIGenerativeModel(client, "gpt-4o")

    assert model.generate("read this", image=InlineImage(b"abc", "image/png")) == ""
    content = completions.kwargs["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "read this"}
    assert content[1]["image_url"]["url"] == "data:image/png;base64,YWJj"
