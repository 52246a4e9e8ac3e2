"""Fit knowledge responses into a chat message.

Output never exceeds ``SAFE_LIMIT`` characters (under the 2000 character
platform cap). What survives a cut, in priority order: the first code
block, key information (framework overview, confidence line, quick take),
then as much search-result detail as still fits.
"""

import re
from dataclasses import replace

from loguru import logger

from chimpflow.knowledge.models import KnowledgeResult
from chimpflow.knowledge.responses import TOPIC_SUMMARY

DISCORD_LIMIT = 2000
SAFE_LIMIT = 1950
HARD_CUT_NOTICE = "...\n\n📝 *Truncated*"
CODE_HEADER = "💻 **Code** (truncated for Discord limits):\n\n"
MIN_SEARCH_SPACE = 100
SUMMARY_SPACE = 200

CODE_BLOCK = re.compile(r"```[\s\S]*?```")
FRAMEWORK_SECTION = re.compile(r"📚 \*\*PocketFlow[^\n]*\*\*[\s\S]*?(?=🎭|$)")
CONFIDENCE_LINE = re.compile(r"(?:✅|⚠️|❓) \*\*Analysis Confidence:\*\*[^\n]*")
QUICK_TAKE_LINE = re.compile(r"🎭 \*\*Quick Take:\*\*[^\n]*")
SEARCH_SECTION = re.compile(
    r"🔍 \*\*Search Results[\s\S]*?(?=📚|💻|🎭|(?:✅|⚠️|❓) \*\*Analysis Confidence|$)"
)


def truncation_notice(original_length: int) -> str:
    return f"📝 *Response truncated to fit Discord limits. Original: {original_length} chars*"


def trim_at_whitespace(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters, preferring a word break."""
    if len(text) <= limit:
        return text
    cut = text[:limit]
    space = max(cut.rfind(" "), cut.rfind("\n"))
    if space > limit // 2:
        cut = cut[:space]
    return cut.rstrip()


def shrink_code_block(block: str, limit: int) -> str:
    """Shorten a fenced code block, keeping both fences."""
    if len(block) <= limit:
        return block

    fence_end = block.find("\n") + 1 or 3
    opening = block[:fence_end]
    tail = "\n# ...\n```"
    body_limit = max(limit - len(opening) - len(tail), 0)
    body = block[fence_end:-3][:body_limit]
    newline = body.rfind("\n")
    if newline > 0:
        body = body[:newline]
    return opening + body + tail


def _keep_code(block: str, notice: str) -> str:
    block_limit = SAFE_LIMIT - len(CODE_HEADER) - len(notice) - 4
    formatted = CODE_HEADER + shrink_code_block(block, block_limit) + "\n\n"

    remaining = SAFE_LIMIT - len(formatted)
    if remaining > SUMMARY_SPACE and remaining - len(TOPIC_SUMMARY) - 2 > len(notice):
        formatted += TOPIC_SUMMARY + "\n\n"

    if SAFE_LIMIT - len(formatted) >= len(notice):
        formatted += notice
    return formatted


def _keep_key_information(text: str, notice: str) -> str:
    key = ""
    budget = SAFE_LIMIT - SUMMARY_SPACE

    for pattern in (FRAMEWORK_SECTION, CONFIDENCE_LINE, QUICK_TAKE_LINE):
        match = pattern.search(text)
        if match:
            section = match.group(0).strip()
            if len(key) + len(section) < budget:
                key += section + "\n\n"

    remaining = SAFE_LIMIT - len(key) - len(notice) - 4
    search = SEARCH_SECTION.search(text)
    if search and remaining > MIN_SEARCH_SPACE:
        content = search.group(0).strip()
        if len(content) > remaining:
            content = trim_at_whitespace(content, remaining - 50) + "..."
        key = content + "\n\n" + key

    if not key:
        key = trim_at_whitespace(text, SAFE_LIMIT - len(notice) - 10) + "...\n\n"

    return key + notice


def format_for_discord(result: KnowledgeResult) -> KnowledgeResult:
    """
    Trim a response to the platform limit.

    Returns the same result when it already fits; otherwise a copy with
    ``truncated=True`` and ``original_length`` set.
    """
    text = result.response
    if not text or len(text) <= SAFE_LIMIT:
        return result

    original_length = len(text)
    logger.info(f"Response too long ({original_length} chars), formatting for Discord")

    notice = truncation_notice(original_length)
    code = CODE_BLOCK.search(text)
    if code:
        formatted = _keep_code(code.group(0), notice)
    else:
        formatted = _keep_key_information(text, notice)

    if len(formatted) > SAFE_LIMIT:
        formatted = formatted[:SAFE_LIMIT - 50] + HARD_CUT_NOTICE

    logger.info(f"Response formatted: {original_length} → {len(formatted)} chars")
    return replace(result, response=formatted, truncated=True, original_length=original_length)
