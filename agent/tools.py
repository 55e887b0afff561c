"""
Tool definitions for Anthropic tool use.

Each tool schema defines what the LLM can call and what parameters it needs.
Tools are executed by the tool loop through agent.tool_registry based on LLM
decisions; handlers live in agent.tool_handlers.

Tool access per agent is controlled by explicit name lists in agent_registry.py.
"""

# ---------------------------------------------------------------------------
# Content API tools (WordPress REST, answered immediately)
# ---------------------------------------------------------------------------

CONTENT_TOOLS = [
    {
        "name": "discover_available_blocks",
        "description": """List every Gutenberg block available on the site, grouped by category.

Call this first to learn which blocks exist before creating content. Returns a
lightweight summary; use inspect_block_schema for one block's attributes.""",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    {
        "name": "get_page_summary",
        "description": """Get a condensed summary of an existing page or post: block structure,
text content (headings, paragraphs), images, buttons, videos.

Use this to understand a page before modifying it. The summary is kept short
(500-800 tokens).""",
        "parameters": {
            "type": "object",
            "properties": {
                "post_id": {
                    "type": "number",
                    "description": "ID of the post or page to summarise",
                },
            },
            "required": ["post_id"],
        },
    },
    {
        "name": "inspect_block_schema",
        "description": """Inspect the full schema of one block: attributes, supports and capabilities.

Use this before creating a block so you only use documented attributes and
values listed in 'possible_values'.""",
        "parameters": {
            "type": "object",
            "properties": {
                "block_name": {
                    "type": "string",
                    "description": "Full block name as namespace/name (e.g. 'core/paragraph', 'core/heading')",
                },
            },
            "required": ["block_name"],
        },
    },
    {
        "name": "get_block_attributes_group",
        "description": """Get one attribute group of a block (progressive disclosure).

For complex blocks (50+ attributes) use this instead of inspect_block_schema
to keep the context small. Start with the "basic" group.""",
        "parameters": {
            "type": "object",
            "properties": {
                "block_name": {
                    "type": "string",
                    "description": "Block name (e.g. 'core/cover')",
                },
                "group": {
                    "type": "string",
                    "enum": ["basic", "advanced", "styling", "animation", "responsive"],
                    "description": "Attribute group to fetch",
                },
            },
            "required": ["block_name", "group"],
        },
    },
    {
        "name": "get_theme_design_system",
        "description": """Get the theme's design system: colors, fonts, font sizes and spacing.

ALWAYS use these slugs so the site stays visually consistent.""",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    {
        "name": "get_patterns",
        "description": """List the available block patterns (name, title, categories and a short description only).

Use get_pattern_details to fetch the markup of the one you pick.""",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    {
        "name": "get_pattern_details",
        "description": """Get the full content of one pattern by name.

Only call this after choosing a pattern with get_patterns.""",
        "parameters": {
            "type": "object",
            "properties": {
                "pattern_name": {
                    "type": "string",
                    "description": "Pattern name (e.g. 'core/query-standard-posts')",
                },
            },
            "required": ["pattern_name"],
        },
    },
    {
        "name": "create_post",
        "description": """Create a new post or page with Gutenberg content.

Only use this when the user asks for a NEW post or page; the document open in
the editor is changed with the realtime tools.""",
        "parameters": {
            "type": "object",
            "properties": {
                "title": {
                    "type": "string",
                    "description": "Post title",
                },
                "content": {
                    "type": "string",
                    "description": "Serialized Gutenberg content (with block comments)",
                },
                "status": {
                    "type": "string",
                    "enum": ["draft", "publish", "pending"],
                    "description": "Publication status",
                },
                "post_type": {
                    "type": "string",
                    "description": "Post type (post, page, product...)",
                },
            },
            "required": ["title", "content"],
        },
    },
    {
        "name": "update_post_title",
        "description": """Update ONLY the metadata of a post: title, status, slug, excerpt.

This tool CANNOT change block content. Use the realtime tools
(update_block_by_clientid, insert_block_realtime, remove_block_realtime,
replace_block_realtime) to change blocks.""",
        "parameters": {
            "type": "object",
            "properties": {
                "post_id": {
                    "type": "number",
                    "description": "ID of the post to update",
                },
                "title": {
                    "type": "string",
                    "description": "New title (optional)",
                },
                "status": {
                    "type": "string",
                    "enum": ["draft", "publish", "pending", "private"],
                    "description": "New status (optional)",
                },
                "slug": {
                    "type": "string",
                    "description": "New URL slug (optional)",
                },
                "excerpt": {
                    "type": "string",
                    "description": "New excerpt, used as meta description (optional)",
                },
            },
            "required": ["post_id"],
        },
    },
    {
        "name": "search_block_templates",
        "description": """Search pre-validated JSON templates for a block.

Templates are tested configurations that are known to render correctly. Use
this first for complex blocks.""",
        "parameters": {
            "type": "object",
            "properties": {
                "block_name": {
                    "type": "string",
                    "description": "Block name (e.g. 'core/cover')",
                },
                "use_case": {
                    "type": "string",
                    "description": "Optional use case to filter on (hero, features, testimonials, cta...)",
                },
            },
            "required": ["block_name"],
        },
    },
]

# ---------------------------------------------------------------------------
# Site structure tools (full site editing)
# ---------------------------------------------------------------------------

SITE_TOOLS = [
    {
        "name": "get_site_templates",
        "description": """List the site templates (page, single, archive, 404...) grouped by category.

Use this to understand the theme structure.""",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    {
        "name": "get_template_parts",
        "description": "List the template parts (header, footer, sidebar...) that site templates are built from.",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    {
        "name": "update_global_styles",
        "description": """Update the site's global styles (colors, fonts, spacing) in theme.json format.

WARNING: this affects the whole site. Only use it when the user asked for a
site-wide change.""",
        "parameters": {
            "type": "object",
            "properties": {
                "styles": {
                    "type": "object",
                    "description": "Styles object in theme.json format (color, typography, spacing...)",
                },
            },
            "required": ["styles"],
        },
    },
    {
        "name": "get_theme_info",
        "description": """Get the active theme and the features it supports.

Prefer get_theme_design_system for colors and fonts.""",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
]

# ---------------------------------------------------------------------------
# Live editor tools (sent to the browser, answered out of band)
# ---------------------------------------------------------------------------

_BLOCK_ATTRIBUTES = {
    "type": "object",
    "description": "Block attributes, validated against inspect_block_schema",
}

_INNER_BLOCKS = {
    "type": "array",
    "description": "Optional inner blocks, each {block_name, attributes, inner_blocks}",
    "items": {"type": "object"},
}

EDITOR_TOOLS = [
    {
        "name": "get_blocks_structure",
        "description": """Read the block tree of the document open in the editor.

Returns every block with its clientId, name, agent id (if set) and a short
content preview. Call this before changing existing blocks.""",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": [],
        },
    },
    {
        "name": "insert_block_realtime",
        "description": """Insert a block into the document open in the editor.

The change is visible to the user immediately. Give the block an agent_id if
you will need to change it again later in this conversation.""",
        "parameters": {
            "type": "object",
            "properties": {
                "block_name": {
                    "type": "string",
                    "description": "Block name (e.g. 'core/heading')",
                },
                "attributes": _BLOCK_ATTRIBUTES,
                "inner_blocks": _INNER_BLOCKS,
                "position": {
                    "type": "number",
                    "description": "Insertion index (omit to append at the end)",
                },
                "agent_id": {
                    "type": "string",
                    "description": "Optional stable id to address this block later",
                },
            },
            "required": ["block_name", "attributes"],
        },
    },
    {
        "name": "update_block_by_clientid",
        "description": "Update the attributes of an existing block, addressed by its editor clientId.",
        "parameters": {
            "type": "object",
            "properties": {
                "client_id": {
                    "type": "string",
                    "description": "clientId from get_blocks_structure",
                },
                "attributes": _BLOCK_ATTRIBUTES,
            },
            "required": ["client_id", "attributes"],
        },
    },
    {
        "name": "update_block_by_agent_id",
        "description": "Update the attributes of a block you inserted earlier, addressed by its agent_id.",
        "parameters": {
            "type": "object",
            "properties": {
                "agent_id": {
                    "type": "string",
                    "description": "agent_id given at insertion",
                },
                "attributes": _BLOCK_ATTRIBUTES,
            },
            "required": ["agent_id", "attributes"],
        },
    },
    {
        "name": "remove_block_realtime",
        "description": "Remove a block from the document open in the editor.",
        "parameters": {
            "type": "object",
            "properties": {
                "client_id": {
                    "type": "string",
                    "description": "clientId of the block to remove",
                },
            },
            "required": ["client_id"],
        },
    },
    {
        "name": "replace_block_realtime",
        "description": "Replace a block (addressed by clientId) with a new block.",
        "parameters": {
            "type": "object",
            "properties": {
                "client_id": {
                    "type": "string",
                    "description": "clientId of the block to replace",
                },
                "block_name": {
                    "type": "string",
                    "description": "Name of the new block",
                },
                "attributes": _BLOCK_ATTRIBUTES,
                "inner_blocks": _INNER_BLOCKS,
            },
            "required": ["client_id", "block_name", "attributes"],
        },
    },
    {
        "name": "replace_block_by_agent_id",
        "description": "Replace a block you inserted earlier (addressed by agent_id) with a new block.",
        "parameters": {
            "type": "object",
            "properties": {
                "agent_id": {
                    "type": "string",
                    "description": "agent_id of the block to replace",
                },
                "block_name": {
                    "type": "string",
                    "description": "Name of the new block",
                },
                "attributes": _BLOCK_ATTRIBUTES,
                "inner_blocks": _INNER_BLOCKS,
            },
            "required": ["agent_id", "block_name", "attributes"],
        },
    },
    {
        "name": "insert_pattern",
        "description": "Insert a registered block pattern into the document open in the editor.",
        "parameters": {
            "type": "object",
            "properties": {
                "pattern_name": {
                    "type": "string",
                    "description": "Pattern name from get_patterns",
                },
                "position": {
                    "type": "number",
                    "description": "Insertion index (omit to append at the end)",
                },
            },
            "required": ["pattern_name"],
        },
    },
    {
        "name": "swap_pattern",
        "description": "Replace an existing block or pattern section (by clientId) with another pattern.",
        "parameters": {
            "type": "object",
            "properties": {
                "client_id": {
                    "type": "string",
                    "description": "clientId of the block to swap out",
                },
                "pattern_name": {
                    "type": "string",
                    "description": "Pattern to insert in its place",
                },
            },
            "required": ["client_id", "pattern_name"],
        },
    },
]

# ---------------------------------------------------------------------------
# Delegation
# ---------------------------------------------------------------------------

DELEGATE_TOOL = "delegate_to_subagent"

DELEGATION_TOOLS = [
    {
        "name": DELEGATE_TOOL,
        "description": """Delegate a specialised task to an expert sub-agent.

Use this when the task needs specific expertise:
- seo: heading hierarchy, meta descriptions (150-160 chars), slugs, keyword placement, alt text
- copywriting: headlines (AIDA, PAS), persuasive content, CTAs, tone of voice
- design: design system consistency, accessibility (WCAG AA, 4.5:1 contrast), spacing, responsive layout
- technical: block validation against schemas, performance, compatibility

The sub-agent gets a specialised system prompt and only the tools relevant to its role.""",
        "parameters": {
            "type": "object",
            "properties": {
                "agent": {
                    "type": "string",
                    "enum": ["seo", "copywriting", "design", "technical"],
                    "description": "Which expert sub-agent to use",
                },
                "task": {
                    "type": "string",
                    "description": "Clear, specific description of the task",
                },
                "context": {
                    "type": "object",
                    "description": "Extra context (post_id, current_content, design_system...)",
                },
            },
            "required": ["agent", "task"],
        },
    },
]

TOOLS = CONTENT_TOOLS + SITE_TOOLS + EDITOR_TOOLS + DELEGATION_TOOLS

CONTENT_TOOL_NAMES = [t["name"] for t in CONTENT_TOOLS]
SITE_TOOL_NAMES = [t["name"] for t in SITE_TOOLS]
EDITOR_TOOL_NAMES = [t["name"] for t in EDITOR_TOOLS]


def get_tool_schemas(names: list[str] | None = None) -> list[dict]:
    """Return tool schemas for LLM tool use.

    Args:
        names: Optional list of tool names to include.
            If None, returns all tools.

    Returns:
        List of tool schema dicts, in catalog order.
    """
    if names is None:
        return list(TOOLS)
    wanted = set(names)
    return [t for t in TOOLS if t["name"] in wanted]


def get_function_schemas(names: list[str] | None = None) -> "list[FunctionSchema]":
    """Return tool schemas as ``FunctionSchema`` objects ready for LLM adapters."""
    from .llm.base import FunctionSchema
    return [
        FunctionSchema(
            name=ts["name"],
            description=ts["description"],
            parameters=ts["parameters"],
        )
        for ts in get_tool_schemas(names=names)
    ]
