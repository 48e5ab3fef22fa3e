"""
tests/conftest.py

Purpose
-------
Global pytest configuration for the entire test suite.

What this does
--------------
1) Points the JSONL logger at a per-session temp directory (no stdout mirror)
   so tests never write into ./logs.
2) Provides a `FakeModelClient` (via the `fake_client` fixture) that stands in
   for the OpenAI transport: canned reply text or a raised ModelCallError,
   and records every prompt it was sent.
3) Provides `fenced_reply(payload, narrative)` to build a realistic model
   reply: narrative text followed by one ```json fenced block.

Why
---
- No test touches the network or needs OPENAI_API_KEY.
- All tests share one log location, which the logging test reads back.
"""

import json
import os

import pytest

from usecase_registry import app_logger
from usecase_registry.llm_client import ModelReply


@pytest.fixture(scope="session", autouse=True)
def configure_test_logging(tmp_path_factory):
    log_dir = tmp_path_factory.mktemp("logs")
    os.environ["LOG_DIR"] = str(log_dir)
    os.environ.pop("LOG_FILE", None)
    app_logger.configure(root_dir=log_dir, filename="app.jsonl", level="DEBUG", to_stdout=False)
    yield log_dir


class FakeModelClient:
    """Transport stub: returns `reply` (str or callable(prompt) -> str) or raises `error`."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, prompt, *, model_name=None):
        self.calls.append({"prompt": prompt, "model_name": model_name})
        if self.error is not None:
            raise self.error
        text = self.reply(prompt) if callable(self.reply) else (self.reply or "")
        return ModelReply(text=text, model=model_name or "fake-model", tokens={"in": 12, "out": 34})


@pytest.fixture()
def fake_client():
    return FakeModelClient


def _fenced_reply(payload, narrative="Here is a short summary."):
    return f"{narrative}\n\n```json\n{json.dumps(payload, indent=2)}\n```\n"


@pytest.fixture()
def fenced_reply():
    return _fenced_reply
