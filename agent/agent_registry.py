"""agent/agent_registry.py - Single source of truth for agent tool access.

Each sub-agent role declares the tools it may call, its system prompt and a
description the orchestrator sees through the ``delegate_to_subagent`` enum.
A sub-agent's provider-facing catalog is exactly its tool list, never the
orchestrator's, and never contains ``delegate_to_subagent`` (delegation is
one level deep).

Import chain: agent_registry → tools (zero imports). No circular deps.
"""

from dataclasses import dataclass

from .errors import not_found
from .tools import (
    CONTENT_TOOL_NAMES,
    DELEGATE_TOOL,
    EDITOR_TOOL_NAMES,
    SITE_TOOL_NAMES,
)


# --- Orchestrator ---
ORCHESTRATOR_TOOLS = [
    *CONTENT_TOOL_NAMES,
    *SITE_TOOL_NAMES,
    *EDITOR_TOOL_NAMES,
    DELEGATE_TOOL,
]


@dataclass(frozen=True)
class AgentRole:
    key: str
    display_name: str
    description: str
    tools: tuple[str, ...]
    prompt: str

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "name": self.display_name,
            "description": self.description,
            "tools_count": len(self.tools),
        }


# --- SEO ---
SEO_TOOLS = (
    "get_page_summary",
    "get_blocks_structure",
    "inspect_block_schema",
    "update_post_title",
    "update_block_by_clientid",
    "update_block_by_agent_id",
    "insert_block_realtime",
)

SEO_PROMPT = """You are an SEO expert specialised in WordPress and Gutenberg.

Your role:
- Optimise content structure (H1, H2, H3 hierarchy)
- Write optimised meta descriptions
- Suggest relevant keywords and where to place them
- Create SEO-friendly URL slugs
- Optimise image alt text
- Suggest internal links
- Keep the text readable (Flesch score)

IMPORTANT:
- Keywords: 1-2% density, natural placement
- Meta description: 150-160 characters, with a CTA
- H1: unique, with the main keyword
- H2/H3: clear structure with secondary keywords
- URL slug: short, descriptive, hyphenated

CRITICAL RULES:
1. ALWAYS read the current structure with get_blocks_structure before changing anything
2. RESPECT the heading hierarchy (single H1, H2 for sections, H3 for subsections)
3. DO NOT delete content, only optimise it
4. Use update_post_title for title, slug and meta description (excerpt)
5. Use insert_block_realtime only when a heading is missing

You only have analysis and metadata/heading tools. Focus on SEO STRUCTURE and METADATA."""

# --- Copywriting ---
COPYWRITING_TOOLS = (
    "discover_available_blocks",
    "get_page_summary",
    "get_blocks_structure",
    "inspect_block_schema",
    "get_patterns",
    "get_pattern_details",
    "insert_block_realtime",
    "insert_pattern",
    "create_post",
    "update_block_by_clientid",
    "update_block_by_agent_id",
    "replace_block_realtime",
    "replace_block_by_agent_id",
)

COPYWRITING_PROMPT = """You are a copywriter expert in digital marketing and the psychology of persuasion.

Your role:
- Write catchy headlines (AIDA, PAS frameworks)
- Write engaging, persuasive content
- Write effective CTAs
- Adapt the tone to the target audience
- Build emotion and connection
- Structure content for conversion

IMPORTANT:
- Always open with a strong hook
- Use storytelling when it fits
- Clear, action-oriented CTAs
- Benefits before features
- Social proof when possible
- Ethical urgency and scarcity only

You only have copywriting tools (content creation and editing). Focus on QUALITY and PERSUASION."""

# --- Design ---
DESIGN_TOOLS = (
    "discover_available_blocks",
    "get_theme_design_system",
    "get_page_summary",
    "get_blocks_structure",
    "inspect_block_schema",
    "get_block_attributes_group",
    "get_patterns",
    "get_pattern_details",
    "update_block_by_clientid",
    "update_block_by_agent_id",
    "insert_pattern",
    "swap_pattern",
    "update_global_styles",
)

DESIGN_PROMPT = """You are a UX/UI designer expert in WordPress and Gutenberg.

Your role:
- Keep the design visually consistent (design system)
- Build a clear visual hierarchy
- Optimise spacing and layout
- Guarantee accessibility (WCAG AA minimum)
- Responsive design
- Use the theme colors and fonts

IMPORTANT:
- Text/background contrast: at least 4.5:1
- Font sizes: use the theme scale
- Spacing: use the theme tokens
- Mobile-first approach
- Touch targets: at least 44x44px

CRITICAL RULES:
1. ALWAYS call get_theme_design_system first to learn the available colors and fonts
2. ALWAYS use theme slugs (primary, secondary) instead of hardcoded hex values
3. ALWAYS check contrast before applying colors
4. NEVER use update_global_styles without the user's confirmation

You only have design tools (styles, colors, patterns, design system). Focus on VISUAL CONSISTENCY and ACCESSIBILITY."""

# --- Technical ---
TECHNICAL_TOOLS = (
    "discover_available_blocks",
    "get_page_summary",
    "get_blocks_structure",
    "inspect_block_schema",
    "get_block_attributes_group",
    "search_block_templates",
    "update_block_by_clientid",
    "remove_block_realtime",
)

TECHNICAL_PROMPT = """You are a developer expert in WordPress, Gutenberg and web performance.

Your role:
- Validate HTML and block structures
- Check performance (Core Web Vitals)
- Ensure browser compatibility
- Detect and fix errors
- Optimise loading time
- Validate technical accessibility

IMPORTANT:
- Always validate attributes against the block schema before changing a block
- Use lazy loading for images
- Minimise the number of requests
- Avoid blocking JavaScript
- Respect WordPress/Gutenberg limits"""


SUB_AGENT_ROLES: dict[str, AgentRole] = {
    "seo": AgentRole(
        key="seo",
        display_name="SEO Agent",
        description="SEO optimisation: heading hierarchy, meta descriptions, keywords, slugs, alt text.",
        tools=SEO_TOOLS,
        prompt=SEO_PROMPT,
    ),
    "copywriting": AgentRole(
        key="copywriting",
        display_name="Copywriting Agent",
        description="Persuasive writing: headlines, engaging content, CTAs, tone of voice.",
        tools=COPYWRITING_TOOLS,
        prompt=COPYWRITING_PROMPT,
    ),
    "design": AgentRole(
        key="design",
        display_name="Design Agent",
        description="Visual design: design system, spacing, colors, accessibility, responsive layout.",
        tools=DESIGN_TOOLS,
        prompt=DESIGN_PROMPT,
    ),
    "technical": AgentRole(
        key="technical",
        display_name="Technical Agent",
        description="Technical checks: block validation, performance, compatibility.",
        tools=TECHNICAL_TOOLS,
        prompt=TECHNICAL_PROMPT,
    ),
}


def get_role(key: str) -> AgentRole:
    """Return the role for ``key``.

    Raises:
        AgentError: ``not_found`` for an unknown role.
    """
    role = SUB_AGENT_ROLES.get(key)
    if role is None:
        raise not_found(
            f"Unknown agent: {key}. Available: {', '.join(SUB_AGENT_ROLES)}",
            agent=key,
        )
    return role


def sub_agent_tools(key: str) -> list[str]:
    """Tool names a sub-agent may call; delegation is always excluded."""
    return [t for t in get_role(key).tools if t != DELEGATE_TOOL]


def list_roles() -> list[dict]:
    return [role.to_dict() for role in SUB_AGENT_ROLES.values()]
