"""
Studio Advisor - answers business questions about the studio's own numbers.
Supports: Claude API, DeepSeek Chat, DeepSeek Reasoner.
"""

import json
import logging
from dataclasses import asdict
from typing import Optional

import requests
from anthropic import Anthropic

from omnitrack.config import config
from omnitrack.engine import metrics
from omnitrack.models import Snapshot

logger = logging.getLogger(__name__)

MODEL_CHOICES = ['claude', 'deepseek-chat', 'deepseek-reasoner']

PERSONA = {
    'EN': "freelance cinematography studio business expert",
    'BN': "ফ্রিল্যান্স সিনেমাটোগ্রাফি স্টুডিও ব্যবসায়িক বিশেষজ্ঞ",
}
REPLY_LANGUAGE = {'EN': 'English', 'BN': 'Bengali'}

# Keeps the prompt bounded for studios with a long ledger
MAX_LEDGER_ENTRIES = 200


# =============================================================================
# CLAUDE CLIENT
# =============================================================================

def call_claude(prompt: str, system: Optional[str] = None, max_tokens: int = 2000) -> str:
    """Call Claude API. Returns generated text."""
    if not config.ANTHROPIC_API_KEY:
        raise ValueError("ANTHROPIC_API_KEY not set in environment")

    client = Anthropic(api_key=config.ANTHROPIC_API_KEY)

    try:
        logger.debug("Calling Claude API")
        message = client.messages.create(
            model="claude-3-5-sonnet-20241022",
            max_tokens=max_tokens,
            system=system if system else "You are a concise business advisor for a photography studio.",
            messages=[
                {"role": "user", "content": prompt}
            ]
        )
        return message.content[0].text

    except Exception as e:
        logger.error(f"Claude API error: {e}")
        raise RuntimeError(f"Failed to call Claude API: {e}")


# =============================================================================
# DEEPSEEK CLIENT
# =============================================================================

def call_deepseek(
    prompt: str,
    model: str = 'deepseek-chat',
    system: Optional[str] = None,
    max_tokens: int = 2000
) -> str:
    """Call DeepSeek API (OpenAI-compatible). Returns generated text."""
    if not config.DEEPSEEK_API_KEY:
        raise ValueError("DEEPSEEK_API_KEY not set in environment")

    url = f"{config.DEEPSEEK_BASE_URL}/chat/completions"

    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    payload = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "stream": False,
    }

    headers = {
        "Authorization": f"Bearer {config.DEEPSEEK_API_KEY}",
        "Content-Type": "application/json",
    }

    try:
        logger.debug(f"Calling DeepSeek API with model {model}")
        response = requests.post(url, json=payload, headers=headers, timeout=(10, 120))
        response.raise_for_status()

        result = response.json()
        return result['choices'][0]['message']['content']

    except requests.exceptions.RequestException as e:
        logger.error(f"DeepSeek API error: {e}")
        raise RuntimeError(f"Failed to call DeepSeek API: {e}")
    except (KeyError, IndexError) as e:
        logger.error(f"DeepSeek response parse error: {e}")
        raise RuntimeError(f"Unexpected DeepSeek response format: {e}")


def call_ai(prompt: str, model: str, system: Optional[str] = None, max_tokens: int = 2000) -> str:
    """Route an AI call to the backend named by model."""
    if model == 'claude':
        return call_claude(prompt, system=system, max_tokens=max_tokens)
    elif model in ('deepseek-chat', 'deepseek-reasoner'):
        return call_deepseek(prompt, model=model, system=system, max_tokens=max_tokens)
    else:
        raise ValueError(f"Unknown AI model '{model}'. Choose from: {', '.join(MODEL_CHOICES)}")


# =============================================================================
# CONTEXT + QUESTION
# =============================================================================

def build_studio_context(snapshot: Snapshot) -> str:
    """Projects, the most recent ledger entries and this month's totals, as JSON."""
    month = metrics.monthly_summary(snapshot.transactions)
    context = {
        'projects': [
            {**asdict(p), 'paid': metrics.project_paid(p)} for p in snapshot.projects
        ],
        'ledger': [asdict(t) for t in snapshot.transactions[:MAX_LEDGER_ENTRIES]],
        'current_month': {
            'month': month.month,
            'income': month.income,
            'expense': month.expense,
            'net': month.net,
        },
    }
    return json.dumps(context, ensure_ascii=False, default=str)


def build_prompt(question: str, snapshot: Snapshot, language: str = 'EN') -> str:
    language = language if language in REPLY_LANGUAGE else 'EN'
    return (
        f"Context: {build_studio_context(snapshot)}\n"
        f"User: {question}\n"
        f"Persona: {PERSONA[language]}.\n"
        f"Reply in {REPLY_LANGUAGE[language]}. Keep it concise and professional. "
        "Use markdown for lists if needed."
    )


def ask(question: str, snapshot: Snapshot, language: str = 'EN', model: Optional[str] = None) -> str:
    """Answer a question about the studio using the configured model."""
    if not question.strip():
        raise ValueError("Question must not be empty")
    model = model or config.DEFAULT_AI_MODEL
    logger.info(f"Advisor question via {model} ({len(snapshot.projects)} projects, {len(snapshot.transactions)} entries)")
    return call_ai(build_prompt(question, snapshot, language), model=model)
