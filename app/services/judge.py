"""AI judge backed by an OpenAI vision model."""
import asyncio
import base64
import json
import logging
import os
import re

from app.config import settings
from app.models.task import Task

logger = logging.getLogger(__name__)

PROMPT_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "prompts",
    "judge.txt",
)


class JudgeError(Exception):
    """The judge could not produce a parseable verdict."""


def _load_prompt() -> str:
    with open(PROMPT_PATH, encoding="utf-8") as f:
        return f.read()


def build_judge_prompt(task: Task) -> str:
    return _load_prompt().format(task_prompt=task.ai_prompt)


def _mask_secrets(message: str) -> str:
    return re.sub(r"sk-[A-Za-z0-9_-]+", "sk-***", message)


def _parse_json_payload(raw_text: str) -> dict:
    """Parse JSON from a model reply, tolerating markdown code fences."""
    json_text = raw_text.strip()
    if json_text.startswith("```"):
        lines = json_text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        json_text = "\n".join(lines)

    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise JudgeError(f"Judge returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise JudgeError("Judge returned JSON that is not an object")
    return parsed


def _build_api_kwargs(model: str, content: list[dict]) -> dict:
    api_kwargs: dict = {
        "model": model,
        "messages": [{"role": "user", "content": content}],
        "response_format": {"type": "json_object"},
    }

    if model.startswith("o"):
        # o-series reasoning models: no temperature, max_completion_tokens
        api_kwargs["max_completion_tokens"] = 2048
    else:
        api_kwargs["max_tokens"] = 400
        api_kwargs["temperature"] = 0.2

    return api_kwargs


class OpenAIJudge:
    def __init__(self, api_key: str, model: str, base_url: str = "", timeout: float = 20.0):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout

    async def judge(self, image_bytes: bytes, prompt: str) -> dict:
        """Return the judge's raw JSON verdict for a photo.

        Raises JudgeError when unconfigured, on timeout, or when the reply
        cannot be parsed. The payload is untrusted and must be normalized.
        """
        if not self.api_key:
            raise JudgeError("OPENAI_API_KEY not configured")

        from openai import AsyncOpenAI

        kwargs = {"api_key": self.api_key, "timeout": self.timeout, "max_retries": 0}
        if self.base_url:
            kwargs["base_url"] = self.base_url

        b64 = base64.b64encode(image_bytes).decode("utf-8")
        content: list[dict] = [
            {"type": "text", "text": prompt},
            {
                "type": "image_url",
                "image_url": {"url": f"data:image/jpeg;base64,{b64}", "detail": "low"},
            },
        ]

        logger.info("Calling judge model=%s image_bytes=%d", self.model, len(image_bytes))
        try:
            async with AsyncOpenAI(**kwargs) as client:
                response = await asyncio.wait_for(
                    client.chat.completions.create(**_build_api_kwargs(self.model, content)),
                    timeout=self.timeout,
                )
        except asyncio.TimeoutError as e:
            raise JudgeError(f"Judge timed out after {self.timeout}s") from e
        except Exception as e:
            raise JudgeError(f"Judge request failed: {_mask_secrets(str(e))}") from e

        raw_text = response.choices[0].message.content or ""
        logger.info("Judge raw response (%d chars)", len(raw_text))
        return _parse_json_payload(raw_text)


def get_judge() -> OpenAIJudge:
    return OpenAIJudge(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout=settings.judge_timeout_seconds,
    )
