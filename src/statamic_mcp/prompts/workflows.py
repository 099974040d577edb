"""
Workflow prompts for statamic-mcp.

Provides MCP prompts describing the tool usage contract, content modeling
best practices, template data handling, and step-by-step content workflows.
"""

import logging
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from statamic_mcp.config import ServerConfig
from statamic_mcp.core.repositories import Repositories

logger = logging.getLogger(__name__)

BEST_PRACTICE_CONTEXTS = ("general", "templates", "content-modeling", "performance", "addons")
DATA_HANDLING_CONTEXTS = ("general", "antlers-scoping", "field-augmentation", "data-validation")
WORKFLOW_TASKS = ("general", "content-setup", "content-migration", "maintenance")


def _context_hint(value: str, allowed: tuple) -> List[str]:
    if value in allowed:
        return []
    return [f"> Unknown context `{value}`; showing general guidance. Options: {', '.join(allowed)}", ""]


def register_workflow_prompts(
    mcp: FastMCP,
    config: ServerConfig,
    repositories: Optional[Repositories] = None,
) -> None:
    """
    Register workflow prompts with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        config: Server configuration
        repositories: Content store used to mention existing collections
    """

    @mcp.prompt()
    def statamic_contract() -> str:
        """
        Tool usage contract for the Statamic MCP tools.

        Describes the discovery, safety and error-handling agreement every
        agent should follow before calling a write action.

        Returns:
            Formatted contract prompt
        """
        web_note = (
            "This server is running with hosted (web) mode forced on, so every call is permission-checked."
            if config.security.force_web_mode
            else "Direct (CLI) calls skip permission checks; hosted (web) calls are permission-checked."
        )
        return "\n".join([
            "# Statamic MCP Tool Usage Contract",
            "",
            "## Agent Responsibilities",
            "",
            "### 1. Discover before acting",
            "- Call `action=\"help\"` or `action=\"discover\"` on a tool before first use.",
            "- Use `action=\"examples\"` to copy a known-good argument shape.",
            "- Pass only the fields an action needs; unknown keys are ignored, not rejected.",
            "",
            "### 2. Follow the safety protocol",
            "- Preview every destructive action (update, delete, workflows) with `dry_run=true` first.",
            "- Blueprint deletion additionally requires `confirm=true`.",
            "- Never retry a `FORBIDDEN` or `TOOL_DISABLED` error with the same arguments.",
            "",
            "### 3. Read the envelope",
            "- Every response has `success`, `data`, `errors` and `meta`.",
            "- On failure read `data.error_code`, `data.details` and `data.remediation` before retrying.",
            "- Warnings such as failed cache segments appear in `meta.warnings` and do not fail the call.",
            "",
            "### 4. Respect the execution context",
            f"- {web_note}",
            "- Hosted calls need `access mcp` plus the mapped permission for the action.",
            "- Hosted calls are rate limited per tool, action and user; back off on `RATE_LIMIT_EXCEEDED`.",
            "",
            "## Server Guarantees",
            "- Every tool call is audit-logged with sensitive `data` keys redacted.",
            "- Write actions clear the affected cache segments automatically.",
            "- Dry runs never modify content.",
            "- Errors carry a stable `error_code` and an actionable message.",
            "",
            "## Execution Protocol",
            "```",
            "1. Read-only: call directly and check `success`.",
            "2. Destructive: dry_run=true -> review arguments -> repeat without dry_run.",
            "3. After bulk changes: statamic.system cache_status -> cache_warm if needed.",
            "```",
            "",
            "## Error Recovery",
            "1. Stop and read the full error message.",
            "2. Use `help` with `help_topic=\"safety\"` or `\"context\"` on the failing tool.",
            "3. Fix the arguments named in `data.details` and retry once.",
            "4. Escalate to a human operator if the error persists.",
        ])

    @mcp.prompt()
    def statamic_best_practices(
        context: str = "general",
        template_engine: str = "antlers",
        statamic_version: str = "v5",
    ) -> str:
        """
        Statamic development best practices.

        Args:
            context: general, templates, content-modeling, performance or addons
            template_engine: antlers or blade
            statamic_version: v4, v5 or v6

        Returns:
            Formatted best-practice prompt
        """
        show_all = context not in BEST_PRACTICE_CONTEXTS or context == "general"
        prompt_parts = [
            "# Statamic Development Best Practices",
            "",
            f"You are working with Statamic CMS {statamic_version}.",
            "",
            *_context_hint(context, BEST_PRACTICE_CONTEXTS),
        ]

        if statamic_version == "v4":
            prompt_parts.extend([
                "## Legacy Considerations (v4)",
                "- Plan an upgrade to v5; newer features are unavailable.",
                "- Keep the site on the latest v4 security release.",
                "",
            ])
        elif statamic_version == "v6":
            prompt_parts.extend([
                "## v6 Considerations",
                "- The control panel runs on Vue 3 with the new UI Kit components.",
                "- Review the v6 upgrade guide for breaking changes before migrating addons.",
                "",
            ])

        if show_all or context == "templates":
            prompt_parts.append("## Template Development")
            if template_engine == "blade":
                prompt_parts.extend([
                    "- Prefer Statamic Blade components and directives over inline PHP.",
                    "- Keep data preparation in view models or composers, not in templates.",
                ])
            else:
                prompt_parts.extend([
                    "- Use Antlers tags such as `{{ collection }}`, `{{ nav }}` and `{{ assets }}`.",
                    "- Transform values with modifiers: `{{ title | upper }}`.",
                    "- Share markup through partials and layouts.",
                ])
            prompt_parts.append("")

        if show_all or context == "content-modeling":
            prompt_parts.extend([
                "## Content Modeling",
                "- Inspect existing blueprints with `statamic.blueprints` list/get before adding fields.",
                "- Use snake_case for field handles and short lowercase handles for collections.",
                "- Use taxonomies for categorization instead of select fields.",
                "- Plan for localization: check `statamic.structures` type=site before creating content.",
                "",
            ])

        if show_all or context == "performance":
            prompt_parts.extend([
                "## Performance",
                "- Page through large collections with `limit` and `offset`.",
                "- Let write actions clear caches; warm the stache after bulk imports.",
                "- Enable static caching for high-traffic pages.",
                "",
            ])

        if show_all or context == "addons":
            prompt_parts.extend([
                "## Addon Development",
                "- Follow Statamic's addon conventions and service provider registration.",
                "- Implement tags, modifiers and fieldtypes the Statamic way.",
                "",
            ])

        prompt_parts.extend([
            "## General Guidelines",
            "- Validate input and sanitize output.",
            "- Prefer built-in Statamic features over custom code.",
            "- Use the MCP tools to verify every change you make.",
        ])
        return "\n".join(prompt_parts)

    @mcp.prompt()
    def statamic_data_handling(
        context: str = "general",
        issue_type: Optional[str] = None,
    ) -> str:
        """
        Data handling and variable scoping guidance for Antlers templates.

        Args:
            context: general, antlers-scoping, field-augmentation or data-validation
            issue_type: variable-collision, empty-data-inheritance,
                field-augmentation or scope-bleeding

        Returns:
            Formatted data-handling prompt
        """
        show_all = context not in DATA_HANDLING_CONTEXTS or context == "general"
        prompt_parts = [
            "# Statamic Data Handling & Variable Scoping",
            "",
            *_context_hint(context, DATA_HANDLING_CONTEXTS),
        ]

        if issue_type in ("variable-collision", "scope-bleeding"):
            prompt_parts.extend([
                f"## Addressing: {issue_type.replace('-', ' ').title()}",
                "Outer variables leak into inner loops when the inner item lacks the field.",
                "```antlers",
                "{{ collection:articles as=\"articles\" }}",
                "  {{ articles }}{{ if exists:title }}{{ title }}{{ /if }}{{ /articles }}",
                "{{ /collection:articles }}",
                "```",
                "",
            ])
        elif issue_type == "empty-data-inheritance":
            prompt_parts.extend([
                "## Addressing: Empty Data Inheritance",
                "An entry without a title shows the page title instead.",
                "```antlers",
                "{{ collection:articles }}<h2>{{ title ?? 'Untitled' }}</h2>{{ /collection:articles }}",
                "```",
                "",
            ])
        elif issue_type == "field-augmentation":
            prompt_parts.extend([
                "## Addressing: Field Augmentation",
                "Augmented values are processed by the fieldtype; `| raw` returns what is stored.",
                "",
            ])

        if show_all or context == "antlers-scoping":
            prompt_parts.extend([
                "## Variable Resolution",
                "1. Current context (loop item, tag pair)",
                "2. Parent contexts (outer loops, the page)",
                "3. Globals (site, global sets)",
                "",
                "Use explicit prefixes (`page:title`, `site:name`) when a name exists at several levels.",
                "",
            ])

        if show_all or context == "field-augmentation":
            prompt_parts.extend([
                "## Raw vs Augmented Data",
                "| Fieldtype | Stored | Augmented |",
                "|-----------|--------|-----------|",
                "| Markdown | `# Hello` | `<h1>Hello</h1>` |",
                "| Assets | `photos/cat.jpg` | Asset with url and metadata |",
                "| Entries | `entry-id` | Entry with all fields |",
                "",
                "The MCP tools always return stored (raw) values in `data`.",
                "",
            ])

        if show_all or context == "data-validation":
            prompt_parts.extend([
                "## Writing Data Safely",
                "- Read the blueprint with `statamic.blueprints` get and `include_fields=true` first.",
                "- Send only changed keys on update; entry and term updates merge into existing data.",
                "- Never put secrets in `data`; keys like password or token are redacted in logs but stored.",
                "",
            ])

        prompt_parts.append("Check results with a follow-up `get` after every write.")
        return "\n".join(prompt_parts)

    @mcp.prompt()
    def statamic_workflow(task_type: str = "general") -> str:
        """
        Step-by-step content workflow using the Statamic tools.

        Args:
            task_type: general, content-setup, content-migration or maintenance

        Returns:
            Formatted workflow prompt, listing the site's current collections
        """
        show_all = task_type not in WORKFLOW_TASKS or task_type == "general"
        prompt_parts = [
            "# Statamic Content Workflow",
            "",
            *_context_hint(task_type, WORKFLOW_TASKS),
            "## 1. Analyse",
            "- `statamic.system` action=info for sites and counts.",
            "- `statamic.structures` type=collection action=list for the content model.",
            "",
        ]

        if repositories is not None:
            handles = [c.handle for c in repositories.collections.all()][:10]
            if handles:
                prompt_parts.extend([
                    "## Existing Collections",
                    *[f"- {handle}" for handle in handles],
                    "",
                ])

        if show_all or task_type == "content-setup":
            prompt_parts.extend([
                "## 2. Set Up Content",
                "- `statamic.content` workflow=setup_collection with dry_run=true, then for real.",
                "- `statamic.content` workflow=bulk_import to load initial entries or terms.",
                "",
            ])

        if show_all or task_type == "content-migration":
            prompt_parts.extend([
                "## 3. Migrate Content",
                "- `statamic.content` workflow=content_audit on the source.",
                "- `statamic.content` workflow=duplicate_content into the target collection.",
                "- `statamic.content` workflow=cross_reference to confirm term links survived.",
                "",
            ])

        if show_all or task_type == "maintenance":
            prompt_parts.extend([
                "## 4. Maintain",
                "- `statamic.content` workflow=content_audit to find gaps.",
                "- Fix issues with `statamic.entries`, `statamic.terms` or `statamic.globals`.",
                "- `statamic.system` action=cache_status after large changes.",
                "",
            ])

        prompt_parts.append("Preview every write with dry_run=true before executing it.")
        return "\n".join(prompt_parts)

    logger.debug("Registered workflow prompts")
