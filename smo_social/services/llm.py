from typing import Any
import json
from openai import OpenAI, OpenAIError

from smo_social.config import settings
from smo_social.errors import AIProviderError
from smo_social.logging_setup import log_event
from smo_social.services.platforms import character_limits, platform_name

def get_client():
    if not settings.openai_api_key:
        raise AIProviderError("AI provider is not configured")
    return OpenAI(api_key=settings.openai_api_key)

def _complete_json(prompt: str, temperature: float = 0.7) -> dict[str, Any]:
    client = get_client()
    try:
        response = client.chat.completions.create(
            model=settings.openai_model,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"},
            temperature=temperature,
        )
        return json.loads(response.choices[0].message.content)
    except OpenAIError as e:
        log_event("ai_request_fail", level="error", error=str(e))
        raise AIProviderError(f"AI request failed: {e}")
    except (json.JSONDecodeError, TypeError) as e:
        log_event("ai_bad_response", level="error", error=str(e))
        raise AIProviderError("AI provider returned an invalid response")

def optimize_content(content: str, platforms: list[str]) -> dict[str, Any]:
    """Rewrites a post per platform, respecting each platform's character limit."""
    limits = character_limits()
    targets = "\n".join(
        f"- {p} ({platform_name(p)}): max {limits.get(p, 2200)} characters"
        for p in platforms
    )
    prompt = f"""
    Optimize the following social media post for each listed platform.
    Keep the original meaning and language. Adapt tone and length to the platform.

    Post:
    {content}

    Platforms:
    {targets}

    Return JSON format:
    {{
        "optimized": {{"<platform slug>": "optimized text"}},
        "suggestions": ["short actionable tips"]
    }}
    """
    data = _complete_json(prompt)
    optimized = data.get("optimized") or {}

    # Enforce limits the model may ignore
    for p, text in list(optimized.items()):
        limit = limits.get(p)
        if limit and isinstance(text, str) and len(text) > limit:
            optimized[p] = text[: limit - 1].rstrip() + "…"

    return {"optimized": optimized, "suggestions": data.get("suggestions") or []}

def generate_hashtags(content: str, count: int = 10) -> list[str]:
    count = max(1, min(int(count), 30))
    prompt = f"""
    Suggest {count} relevant hashtags for this social media post.
    Post: {content}

    Return JSON format:
    {{
        "hashtags": ["#example", "#another"]
    }}
    """
    data = _complete_json(prompt, temperature=0.5)
    tags = []
    for t in data.get("hashtags") or []:
        t = str(t).strip().replace(" ", "")
        if not t:
            continue
        if not t.startswith("#"):
            t = f"#{t}"
        if t not in tags:
            tags.append(t)
    return tags[:count]
