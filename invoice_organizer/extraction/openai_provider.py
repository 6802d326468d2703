"""Chat-completions structuring provider built on the OpenAI SDK.

Works against any OpenAI-compatible endpoint: the base URL, API key and
model come from the user's persisted ``LLMConfig`` rather than from the
environment, so one process can be repointed without a restart.

Compatible gateways disagree on where the answer lives in the response
body, so the raw JSON body is inspected instead of the SDK's parsed model.
Checked in this order, first non-empty string wins:

1. ``choices[0].message.content`` (OpenAI standard)
2. top-level ``content``
3. top-level ``result``
4. ``result.content``
5. ``choices[0].message.reasoning_content`` (reasoning models that leave content empty)

No retries: a failed call is reported once and the user may re-parse.
"""

import json
import logging
from typing import Any

from openai import APIConnectionError, APIStatusError, OpenAI, OpenAIError

from invoice_organizer.extraction.base import StructuringProvider
from invoice_organizer.shared.config import Settings
from invoice_organizer.shared.errors import RemoteTransportError, RemoteUnsupportedImageError
from invoice_organizer.state.models import LLMConfig

logger = logging.getLogger(__name__)

PARSE_PROMPT = """请分析以下发票/票据内容，提取信息并以JSON格式返回：

请提取以下信息：
1. type: 发票类型，必须是以下之一：
   - "intercity_transport" (城市间交通：火车票、飞机票、高铁票等)
   - "intracity_transport" (城市内交通：出租车、网约车、地铁、公交等)
   - "accommodation" (住宿：酒店、宾馆等)
   - "registration_fee" (报名费：会议注册费、培训费等)

2. amount: 金额（数字，不带货币符号）

3. date: 日期（格式：YYYY-MM-DD）

4. description: 简要描述（如：北京-上海火车票、滴滴打车、XX酒店住宿等）

请只返回JSON对象，不要有其他文字。如果某项信息无法识别，请设为null。

示例返回格式：
{
  "type": "intercity_transport",
  "amount": 553.5,
  "date": "2024-03-15",
  "description": "北京-上海高铁票"
}"""

UNSUPPORTED_IMAGE_MESSAGE = (
    "The model service does not accept image input. "
    "Upload the invoice as a PDF or configure a vision-capable model."
)


def _non_empty_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def extract_response_content(body: Any) -> str | None:
    """Pull the answer text out of a chat-completions style response body.

    Args:
        body: Decoded JSON response body

    Returns:
        First non-empty content string in priority order, or None
    """
    if not isinstance(body, dict):
        return None

    message: dict[str, Any] = {}
    choices = body.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        candidate = choices[0].get("message")
        if isinstance(candidate, dict):
            message = candidate

    result = body.get("result")
    nested = result.get("content") if isinstance(result, dict) else None

    for candidate in (
        message.get("content"),
        body.get("content"),
        result,
        nested,
        message.get("reasoning_content"),
    ):
        content = _non_empty_str(candidate)
        if content is not None:
            return content
    return None


class OpenAIStructuringProvider(StructuringProvider):
    """Structuring provider for OpenAI-compatible chat-completions APIs."""

    def __init__(self, settings: Settings) -> None:
        """Initialize provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._client: OpenAI | None = None
        self._client_key: tuple[str, str] | None = None

    @property
    def provider_name(self) -> str:
        return "openai"

    def _get_client(self, config: LLMConfig) -> OpenAI:
        """Get a client for the configured endpoint, rebuilding it when the config changed."""
        key = (config.base_url, config.api_key)
        if self._client is None or self._client_key != key:
            self._client = OpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                max_retries=0,
            )
            self._client_key = key
        return self._client

    def structure_text(self, text: str, config: LLMConfig) -> str:
        """Structure plain receipt text.

        Args:
            text: Text read from the document
            config: Remote endpoint configuration

        Returns:
            Raw response content
        """
        messages = [{"role": "user", "content": self._build_text_prompt(text)}]
        return self._complete(
            messages, config, max_tokens=self.settings.llm_text_max_tokens, is_image=False
        )

    def structure_image(self, image_base64: str, media_type: str, config: LLMConfig) -> str:
        """Structure a receipt image with a vision-capable model.

        Args:
            image_base64: Base64-encoded raster payload
            media_type: Declared media type of the payload
            config: Remote endpoint configuration

        Returns:
            Raw response content
        """
        messages = [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{media_type};base64,{image_base64}"},
                    },
                    {"type": "text", "text": PARSE_PROMPT},
                ],
            }
        ]
        return self._complete(
            messages, config, max_tokens=self.settings.llm_vision_max_tokens, is_image=True
        )

    def _build_text_prompt(self, text: str) -> str:
        return f"{PARSE_PROMPT}\n\n发票内容：\n{text}"

    def _complete(
        self,
        messages: list[dict[str, Any]],
        config: LLMConfig,
        max_tokens: int,
        is_image: bool,
    ) -> str:
        """Send one chat-completions request and return the answer text.

        Raises:
            RemoteUnsupportedImageError: On HTTP 400 for an image request
            RemoteTransportError: On any other transport or response-shape failure
        """
        client = self._get_client(config)
        mode = "image" if is_image else "text"
        details = {"model": config.model_name, "mode": mode}

        try:
            raw = client.chat.completions.with_raw_response.create(  # type: ignore[call-overload]
                model=config.model_name,
                messages=messages,
                max_tokens=max_tokens,
            )
            body = raw.http_response.json()
        except APIStatusError as e:
            logger.warning(f"Structuring request ({mode}) failed with HTTP {e.status_code}")
            if is_image and e.status_code == 400:
                raise RemoteUnsupportedImageError(
                    UNSUPPORTED_IMAGE_MESSAGE, status_code=e.status_code, details=details
                ) from e
            raise RemoteTransportError(
                f"Model service returned HTTP {e.status_code}: {e.message}",
                status_code=e.status_code,
                details=details,
            ) from e
        except APIConnectionError as e:
            logger.warning(f"Structuring request ({mode}) could not connect: {e}")
            raise RemoteTransportError(
                f"Could not reach model service: {e}", details=details
            ) from e
        except OpenAIError as e:
            raise RemoteTransportError(
                f"Model service request failed: {e}", details=details
            ) from e
        except ValueError as e:
            raise RemoteTransportError(
                f"Model service returned a non-JSON body: {e}", details=details
            ) from e

        content = extract_response_content(body)
        if content is None:
            snippet = json.dumps(body, ensure_ascii=False)[:500]
            raise RemoteTransportError(
                f"Unsupported response format from model service: {snippet}", details=details
            )

        logger.debug(f"Structuring request ({mode}) returned {len(content)} characters")
        return content
