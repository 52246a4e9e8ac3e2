"""Response text for the knowledge pipeline.

Builds the structured report, the natural-answer prompt and every layer of
canned fallback text. Nothing here does I/O.
"""

from typing import Any, Dict, List, Optional

from chimpflow.knowledge.models import (
    ConfirmedInformation,
    GatheredInformation,
    Intent,
    KnowledgeResult,
)
from chimpflow.knowledge.sources import confidence_emoji, format_search_results
from chimpflow.knowledge.templates import select_template

TOPIC = "pocketflow"
SHORT_REPORT = 100
MAX_PROMPT_SNIPPET = 150

STRUCTURED_MARKERS = ("pocketflow", "documentation", "docs", "structured", "format", "api")

SYSTEM_PROMPT = (
    "You are ChimpGPT, a friendly AI assistant. Respond naturally and conversationally. "
    "Be helpful but casual and engaging, like you're having a chat with a friend. "
    "When you have search results, incorporate them naturally into your response "
    "rather than just listing them."
)

GENERATION_APOLOGY = (
    "I'm having trouble generating a natural response right now. "
    "Please try again in a moment."
)

SYSTEM_ERROR_TEXT = "🤖 **System Error**: Unable to generate response. Please try again."

TOPIC_SUMMARY = (
    "📚 **PocketFlow**: Lightweight graph framework with a \"Keep it Simple, Stupid\" philosophy.\n"
    "🔧 Uses Node/SharedStore/Flow architecture for shared knowledge."
)

EMOJI_SETS = {
    "cat": ["🐱", "😸", "🙀", "😺", "😻"],
    "particle": ["⚛️", "🔬", "⚡", "💫", "🌟"],
    "accelerator": ["🚀", "💨", "⚡", "🔥", "💥"],
    "pyramid": ["🔺", "🏗️", "🏛️", "📐", "⛰️"],
}
HIGH_CONFIDENCE_EMOJI = ["✅", "👍", "💯", "🎯", "🔥"]
LOW_CONFIDENCE_EMOJI = ["❓", "🤔", "😅", "🙃", "🤷"]
DEFAULT_EMOJI = ["🤖", "💭", "🔍", "📚", "💡"]


def needs_structured_response(intent: Intent) -> bool:
    """Structured reports only for explicit code/docs/format requests."""
    return intent.needs_code or any(m in intent.original_message for m in STRUCTURED_MARKERS)


def confidence_line(confidence: float) -> str:
    return f"{confidence_emoji(confidence)} **Analysis Confidence:** {round(confidence)}%"


def code_block(code: str) -> str:
    return f"```python\n{code}\n```"


def quick_take(query: str, confidence: float) -> str:
    """Up to three emoji reflecting the topic and our confidence."""
    q = query.lower()
    emoji: List[str] = []
    for key, values in EMOJI_SETS.items():
        if key in q:
            emoji.extend(values)
    emoji.extend(HIGH_CONFIDENCE_EMOJI if confidence >= 60 else LOW_CONFIDENCE_EMOJI)
    if not emoji:
        emoji = DEFAULT_EMOJI
    return " ".join(list(dict.fromkeys(emoji))[:3])


def technical_content(query: str) -> Optional[str]:
    """Canned background for a few common technical topics."""
    q = query.lower()

    if "python" in q and "javascript" in q and any(w in q for w in ("faster", "performance", "speed")):
        return (
            "🔍 **Python vs JavaScript Performance Analysis:**\n\n"
            "🐍 **Python Strengths:**\n"
            "• **Scientific Computing**: NumPy and Pandas run on optimized C libraries\n"
            "• **Data Processing**: Excellent for large datasets and ML workloads\n"
            "• **Development Speed**: Faster to write and maintain\n\n"
            "⚡ **JavaScript Strengths:**\n"
            "• **V8 Engine**: Highly optimized JIT compilation\n"
            "• **Async Operations**: Non-blocking, event-driven I/O\n"
            "• **Frontend Performance**: Native browser execution\n\n"
            "🎯 **Verdict**: Context-dependent. JS for web and real-time, Python for data and AI"
        )

    if "design pattern" in q:
        return (
            "🛠️ **Software Design Patterns Overview:**\n\n"
            "🏗️ **Creational Patterns:**\n"
            "• **Singleton**: Ensures a single instance\n"
            "• **Factory**: Creates objects without naming concrete classes\n"
            "• **Builder**: Constructs complex objects step by step\n\n"
            "🔄 **Behavioral Patterns:**\n"
            "• **Observer**: Notifies subscribers about state changes\n"
            "• **Strategy**: Makes a family of algorithms interchangeable\n"
            "• **Command**: Encapsulates requests as objects\n\n"
            "🧩 **Structural Patterns:**\n"
            "• **Adapter**: Makes incompatible interfaces work together\n"
            "• **Decorator**: Adds behavior dynamically\n"
            "• **Facade**: Simplifies access to a complex subsystem"
        )

    if "machine learning" in q or "neural network" in q:
        return (
            "🧠 **Machine Learning & Neural Networks:**\n\n"
            "📊 **Core Concepts:**\n"
            "• **Supervised Learning**: Training with labeled data\n"
            "• **Unsupervised Learning**: Finding patterns in unlabeled data\n"
            "• **Deep Learning**: Multi-layer networks for complex patterns\n\n"
            "⚡ **Neural Network Components:**\n"
            "• **Neurons**: Weighted inputs plus an activation\n"
            "• **Layers**: Input, hidden and output layers\n"
            "• **Backpropagation**: Adjusts weights from the error signal\n\n"
            "🚀 **Applications**: Image recognition, NLP, recommendation systems"
        )

    return None


def enhanced_fallback(query: str) -> Optional[str]:
    """Longer canned answer used when the report would otherwise be thin."""
    q = query.lower()

    if TOPIC in q:
        return (
            "📚 **PocketFlow Framework (Fallback Info):**\n\n"
            "🎯 **Philosophy**: \"Keep it Simple, Stupid\" graph workflows\n\n"
            "🔧 **Core Architecture:**\n"
            "• **Node**: An async processing step with conditional edges\n"
            "• **SharedStore**: Shared state between nodes\n"
            "• **Flow**: Runs a graph of nodes from a start node\n\n"
            "⚡ **Key Features:**\n"
            "• **Composable**: Flows can be wrapped as nodes in other flows\n"
            "• **Fallback routing**: Edge conditions send failures to fallback nodes\n"
            "• **Async Support**: Concurrent I/O inside a single step\n\n"
            "💡 **Note**: This is fallback information. Web search may provide more current details."
        )

    if "api" in q or "documentation" in q or "docs" in q:
        return (
            "📚 **API Documentation Best Practices:**\n\n"
            "🛠️ **Essential Components:**\n"
            "• **Clear Endpoints**: Consistent resource naming\n"
            "• **Request/Response Examples**: Show actual usage\n"
            "• **Error Codes**: A complete error reference\n"
            "• **Authentication**: How to obtain and send credentials\n\n"
            "💡 **Documentation Tools:**\n"
            "• **OpenAPI/Swagger**: Interactive API documentation\n"
            "• **MkDocs / Sphinx**: Project documentation sites"
        )

    if "async" in q or "await" in q or "promise" in q:
        return (
            "⚡ **Asynchronous Programming Patterns:**\n\n"
            "🔄 **Evolution:**\n"
            "• **Callbacks**: The original async pattern\n"
            "• **Futures/Promises**: Chainable, better error handling\n"
            "• **async/await**: Sequential-looking asynchronous code\n\n"
            "🎯 **Best Practices:**\n"
            "• **Error Handling**: try/except around awaited calls\n"
            "• **Fan-out**: Run independent calls concurrently and await them together\n"
            "• **Avoid Blocking**: Never call blocking I/O inside a coroutine"
        )

    return None


def emergency_fallback(intent: Intent, can_receive_code: bool) -> str:
    """Used when every other section came out empty."""
    if TOPIC in intent.query:
        text = (
            "📚 **PocketFlow Framework**\n\n"
            "PocketFlow is a small graph framework built on a \"Keep it Simple, Stupid\" philosophy.\n\n"
            "🔧 **Core Components**: Node, SharedStore, Flow\n"
            "💡 **Philosophy**: Simple, reliable, composable workflows\n\n"
        )
        if intent.needs_code and can_receive_code:
            text += "💻 **Code Available**: Ask for \"pocketflow code\" to see examples."
        elif intent.needs_code:
            text += "🔒 **Code Generation**: Owner-only feature."
        return text

    return (
        "🤖 **Knowledge System Active**\n\n"
        "I processed your request successfully. Try asking about:\n"
        "• PocketFlow framework\n"
        "• Documentation searches\n"
        "• Code examples (owner only)\n\n"
        "💡 **Tip**: Be specific in your queries for better results."
    )


def _code_section(intent: Intent, can_receive_code: bool) -> str:
    if can_receive_code:
        return (
            f"💻 **PocketFlow Implementation:**\n{code_block(select_template(intent.query))}\n\n"
            "📋 **Implementation Notes:**\n"
            "• Follows the \"Keep it Simple, Stupid\" philosophy\n"
            "• Uses the Node/SharedStore architecture for shared knowledge\n"
            "• Ready to plug into an existing flow"
        )
    return (
        "🤖 **Code Generation Request**\n"
        "I can see you're interested in the implementation! However, code generation "
        "is restricted to the bot owner for security reasons.\n\n"
        "🔧 **What I can tell you:**\n"
        "• This would use PocketFlow's Node and SharedStore architecture\n"
        "• The implementation would use async/await\n"
        "• Failures would be routed to fallback nodes through edge conditions\n\n"
        "💡 **Suggestion:** Ask the bot owner to run this request for the full code implementation!"
    )


def build_structured_report(
    intent: Intent,
    information: Optional[GatheredInformation],
    confirmation: Optional[ConfirmedInformation],
    can_receive_code: bool,
) -> str:
    """Assemble the structured answer. Never returns an empty string."""
    sections: List[str] = []
    query = intent.query.lower()

    if information and information.sources:
        web = information.web_search
        if web is not None and web.succeeded:
            sections.append(format_search_results(web.result, include_links=True))

        limited = (
            web is None
            or not web.succeeded
            or (web.result or {}).get("factCheck", {}).get("sources") == 0
        )
        if limited and TOPIC not in query:
            content = technical_content(intent.query)
            if content:
                sections.append(content)
        elif limited:
            sections.append("🌐 **Web Search Status**: Limited results found for PocketFlow query.")

        docs = [
            s.result["documentation"] for s in information.documentation
            if s.succeeded and s.result.get("documentation")
        ]
        if docs:
            lines = ["📚 **Documentation Sources Found:**"]
            for doc in docs:
                lines.append(f"• {doc.get('site', 'docs')}: {doc.get('title') or 'Documentation'}")
            sections.append("\n".join(lines))

    confidence = confirmation.overall_confidence if confirmation else 0.0
    if confirmation is not None:
        sections.append(confidence_line(confirmation.overall_confidence))

    if intent.needs_code:
        sections.append(_code_section(intent, can_receive_code))

    if len("\n\n".join(sections).strip()) < SHORT_REPORT:
        fallback = enhanced_fallback(intent.query)
        if fallback:
            sections.append(fallback)

    if not intent.needs_code or not can_receive_code:
        sections.append(f"🎭 **Quick Take:** {quick_take(intent.query, confidence)}")

    report = "\n\n".join(s for s in sections if s).strip()
    if not report:
        report = emergency_fallback(intent, can_receive_code)
    return report


def build_natural_messages(intent: Intent, information: Optional[GatheredInformation]) -> List[Dict[str, Any]]:
    """Chat messages for a free-form answer grounded in search results."""
    context: List[str] = []

    web = information.web_search if information else None
    if web is not None and web.succeeded:
        data = web.result.get("data") or {}

        instant = data.get("instantAnswer")
        if instant:
            context.append(f"Quick Answer: {instant.get('text', '')}\n")

        abstract = data.get("abstract")
        if abstract:
            context.append(f"Information: {abstract.get('text', '')}")
            if abstract.get("source") and abstract["source"] != "Unknown":
                context.append(f"Source: {abstract['source']}")
            context.append("")

        results = data.get("results") or []
        if results:
            context.append("Related Information:")
            for index, item in enumerate(results[:3], 1):
                context.append(f"{index}. {item.get('title', '')}")
                snippet = item.get("snippet")
                if snippet and snippet != item.get("title"):
                    context.append(f"   {snippet[:MAX_PROMPT_SNIPPET]}...")
            context.append("")

    search_context = "\n".join(context).strip()
    if search_context:
        prompt = (
            f'The user asked: "{intent.original_message}"\n\n'
            f"I found this information from web search:\n{search_context}\n\n"
            "Please provide a natural, friendly, conversational response based on this information. "
            "Be helpful and informative but speak naturally like you're having a chat with a friend. "
            "Incorporate the search findings naturally into your response."
        )
    else:
        prompt = (
            f'The user asked about "{intent.original_message}". Please provide a natural, friendly, '
            "conversational response about this topic. Be helpful and informative but speak "
            "naturally like you're chatting with a friend."
        )

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def fallback_response(
    content: str,
    can_receive_code: bool,
    reason: str,
    error: Optional[BaseException] = None,
) -> KnowledgeResult:
    """Canned answer used when a stage could not produce one."""
    query = (content or "").lower()
    parts: List[str] = []

    if TOPIC in query:
        parts.append(
            "🔍 **PocketFlow Search Attempted**\n\n"
            "I attempted to search for current PocketFlow information but encountered issues. "
            "Here's basic info:\n\n"
            "🎯 **Framework**: Small graph framework emphasizing \"Keep it Simple, Stupid\"\n"
            "🔧 **Architecture**: Node + SharedStore + Flow pattern\n\n"
            "💡 **Suggestion**: Try a more specific query or check the official PocketFlow documentation directly."
        )
        if "code" in query and can_receive_code:
            parts.append(f"💻 **PocketFlow Code Example:**\n{code_block(select_template('basic example'))}")
        elif "code" in query:
            parts.append("🤖 **Code Generation**: Available to bot owner only. Ask them to run this request!")
    elif "documentation" in query or "docs" in query:
        parts.append(
            "📚 **Documentation Search**\n\n"
            "I attempted to search for documentation but encountered an issue. "
            "Here's what I can help with:\n\n"
            "🔍 **Available Resources:**\n"
            "• PocketFlow framework information\n"
            "• Code examples and implementations\n"
            "• General programming concepts\n\n"
            "💡 **Try asking**: \"What is PocketFlow?\" or \"Give me PocketFlow code\" (owner only)"
        )
    else:
        parts.append(
            "🤖 **Knowledge Request Processed**\n\n"
            f"I processed your request but encountered an issue during {reason.replace('_', ' ')}. "
            "However, I can still help with:\n\n"
            "🔧 **Available Functions:**\n"
            "• PocketFlow information and examples\n"
            "• Documentation searches\n"
            "• Code generation (owner only)\n\n"
            "💡 **Tip**: Try rephrasing your query or ask \"what is pocketflow\""
        )

    if error is not None:
        parts.append(f"🔧 **Debug Info**: {reason} - {str(error)[:100]}")

    return KnowledgeResult(
        success=True,
        response="\n\n".join(parts).strip(),
        type="knowledge_fallback",
        confidence=50,
        has_code=any("```" in p for p in parts),
        is_fallback=True,
        fallback_reason=reason,
    )
