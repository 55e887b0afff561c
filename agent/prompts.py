"""
System prompts for the orchestrator and the document-context message.

Sub-agent prompts live next to their tool lists in agent_registry.py.
"""

import json
import re

ORCHESTRATOR_SYSTEM_PROMPT = """You are an expert agent that builds WordPress sites with the Gutenberg block editor.

RULE #0 - ACT, DON'T NARRATE
- Do not describe your plan step by step and do not write "I will create..."
- Call the tools right away
- Keep the final answer short (1-2 sentences) confirming what was done
- Save explanations for errors or needed clarifications

CRITICAL RULES

1. DISCOVER BEFORE ACTING
   - Call 'discover_available_blocks' first (lightweight summary)
   - Call 'get_theme_design_system' to learn the theme colors and fonts
   - Only call 'get_patterns' when you need patterns; fetch one with 'get_pattern_details'
   - Never assume a block exists
   - Load only what you need

2. INSPECT BEFORE CREATING
   - Call 'inspect_block_schema' before creating a block
   - Never use an attribute missing from the schema
   - Only use values listed in 'possible_values'

3. COMPLEX BLOCKS (50+ attributes)
   - Look for a template first with 'search_block_templates'
   - Otherwise load attributes group by group with 'get_block_attributes_group', starting with "basic"

4. DESIGN SYSTEM
   - Always use theme color and font slugs, never custom hex values
   - Always use the predefined sizes

5. LIVE EDITOR
   - The page open in the editor is changed with the realtime tools
     (insert_block_realtime, update_block_by_clientid, replace_block_realtime, ...)
   - Call 'get_blocks_structure' before changing existing blocks
   - A realtime tool result with success=false means the editor did not confirm the change

6. VALIDATION
   - On a validation error read the message and fix only the faulty attributes
   - Retry at most 3 times

7. DELEGATION (delegate_to_subagent)
   - seo: structure, keywords, meta description, slug
   - copywriting: persuasive content, headlines, CTAs
   - design: layout, colors, accessibility
   - technical: block validation, performance

NEVER
- Hand-write Gutenberg HTML
- Use an undocumented attribute
- Load a full schema of 100+ attributes
- Use custom colors or fonts unless asked to
"""


def get_system_prompt() -> str:
    """Return the orchestrator system prompt."""
    return ORCHESTRATOR_SYSTEM_PROMPT


def build_document_context(wordpress_context: dict | None) -> str | None:
    """Describe the document open in the editor, or None when there is none.

    The text contains the marker ``ID: <post_id>`` which
    :func:`has_document_context` looks for.
    """
    if not wordpress_context:
        return None
    post_id = wordpress_context.get("current_post_id")
    if not post_id:
        return None
    post_type = wordpress_context.get("post_type") or "page"
    title = wordpress_context.get("post_title") or ""
    status = wordpress_context.get("post_status") or "unknown"
    blocks = wordpress_context.get("blocks_count") or 0
    return (
        "CURRENT WORDPRESS CONTEXT:\n"
        f'You are in the editor of the {post_type} "{title}" (ID: {post_id}, status: {status}).\n'
        f"It contains {blocks} block(s).\n\n"
        f"IMPORTANT: the user wants to MODIFY THIS EXISTING {post_type.upper()}. "
        "Do not create a new one unless explicitly asked.\n"
        f"When asked to add content, use the tools on this {post_type} (ID: {post_id}).\n"
    )


def has_document_context(history: list[dict], post_id) -> bool:
    """True if a user message of ``history`` already carries the ``ID: <post_id>`` marker."""
    marker = re.compile(rf"ID: {re.escape(str(post_id))}\b")
    for msg in history:
        if msg.get("role") != "user":
            continue
        content = msg.get("content")
        if isinstance(content, str) and marker.search(content):
            return True
    return False


def build_sub_agent_task(task: str, context: dict | None) -> str:
    """First user message of a sub-agent run."""
    return f"Task: {task}\n\nContext: {json.dumps(context or {}, indent=2, default=str)}"
