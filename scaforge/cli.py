"""``scaforge`` command line interface.

Examples::

    scaforge add auth-authjs --option sessionStrategy=database
    scaforge remove email-resend
    scaforge list --category database
    scaforge info api-trpc
    scaforge docs --no-env
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from scaforge.config import ScaforgeConfig, ToolSettings
from scaforge.errors import ConfigInvalidError, ScaforgeError, format_error_for_display
from scaforge.plugins.builtin import create_default_registry
from scaforge.plugins.manager import PluginManager
from scaforge.plugins.models import PluginCategory, PluginDefinition
from scaforge.plugins.registry import PluginRegistry
from scaforge.project.docs import DOCS_OUTPUT_DIR
from scaforge.project import (
    ConfigFileStore,
    DocsGenerator,
    EnvExampleStore,
    NodePackageInstaller,
    ProjectFileWriter,
)
from scaforge.utils import (
    console,
    print_error,
    print_info,
    print_success,
    print_summary_table,
    print_table,
    print_warning,
    setup_logging,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_option(raw: str) -> tuple[str, Any]:
    """Parse ``key=value``; the value is read as JSON when it parses as JSON.

    ``batching=false`` gives ``False`` and ``providers=["github"]`` a list;
    anything else stays a plain string.
    """
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    try:
        parsed: Any = json.loads(value)
    except ValueError:
        parsed = value
    return key.strip(), parsed


def _build_manager(
    root: Path,
    config: ScaforgeConfig,
    registry: PluginRegistry,
    settings: ToolSettings,
    store: ConfigFileStore,
    *,
    force: bool = False,
) -> PluginManager:
    return PluginManager(
        config,
        registry,
        project_root=root,
        installer=NodePackageInstaller(settings.package_manager, settings.install_timeout),
        env_store=EnvExampleStore(settings.env_file_name),
        file_writer=ProjectFileWriter(root, force=force or settings.force_overwrite),
        config_store=store,
    )


async def _load_installed(root: Path, store: ConfigFileStore) -> set[str] | None:
    """Installed plugin names, or ``None`` outside a Scaforge project."""
    if not store.exists(root):
        return None
    config = await store.load(root)
    return {name for name, entry in config.plugins.items() if entry.enabled}


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_add(args: argparse.Namespace, registry: PluginRegistry, settings: ToolSettings) -> int:
    root = Path(args.root).resolve()
    store = ConfigFileStore(settings.config_file_name)
    config = await store.load(root)
    manager = _build_manager(root, config, registry, settings, store, force=args.force)

    validation = manager.validate_add(args.plugin)
    if not validation.valid:
        for message in validation.errors:
            print_error(message)
        return 1

    options = dict(args.option or [])
    result = await manager.add(args.plugin, options or None)

    for dependency in result.installed_dependencies:
        print_info(f"Installed dependency {dependency}")
    print_success(result.message)
    if result.generated_files:
        print_summary_table(
            {path: "created" for path in result.generated_files}, title="Generated files"
        )
    for path in result.skipped_files:
        print_warning(f"Skipped existing file {path} (use --force to overwrite)")
    if result.post_install:
        console.print(result.post_install, markup=False)
    return 0


async def cmd_remove(args: argparse.Namespace, registry: PluginRegistry, settings: ToolSettings) -> int:
    root = Path(args.root).resolve()
    store = ConfigFileStore(settings.config_file_name)
    config = await store.load(root)
    manager = _build_manager(root, config, registry, settings, store)

    validation = manager.validate_remove(args.plugin)
    if not validation.valid:
        for message in validation.errors:
            print_error(message)
        return 1

    result = await manager.remove(args.plugin)
    print_success(result.message)
    if result.removed_env_vars:
        print_info(f"Removed environment variables: {', '.join(result.removed_env_vars)}")
    return 0


async def cmd_list(args: argparse.Namespace, registry: PluginRegistry, settings: ToolSettings) -> int:
    root = Path(args.root).resolve()
    installed = await _load_installed(root, ConfigFileStore(settings.config_file_name))
    if args.installed and installed is None:
        print_error(f"{settings.config_file_name} not found. Is this a Scaforge project?")
        return 1

    if args.category:
        plugins = registry.get_by_category(args.category)
    else:
        plugins = sorted(registry.get_all(), key=lambda p: (p.category.value, p.name))
    if args.installed:
        plugins = [p for p in plugins if p.name in installed]

    if not plugins:
        print_warning("No plugins found.")
        return 0

    rows = [
        [
            plugin.name,
            plugin.category.value,
            plugin.description,
            "yes" if installed and plugin.name in installed else "",
        ]
        for plugin in plugins
    ]
    print_table(rows, ["Plugin", "Category", "Description", "Installed"], title="Plugins")
    return 0


async def cmd_info(args: argparse.Namespace, registry: PluginRegistry, settings: ToolSettings) -> int:
    plugin = registry.get(args.plugin)
    if plugin is None:
        print_error(f'Plugin "{args.plugin}" not found in registry')
        return 1
    root = Path(args.root).resolve()
    installed = await _load_installed(root, ConfigFileStore(settings.config_file_name))
    print_summary_table(_describe(plugin, installed), title=plugin.display_name)
    return 0


async def cmd_docs(args: argparse.Namespace, registry: PluginRegistry, settings: ToolSettings) -> int:
    root = Path(args.root).resolve()
    generator = DocsGenerator(
        registry,
        output_dir=args.output,
        include_api_docs=not args.no_api,
        include_env_docs=not args.no_env,
    )
    if args.remove:
        if await generator.remove(root):
            print_success(f"Removed {generator.output_dir}")
        else:
            print_warning(f"No documentation found at {generator.output_dir}")
        return 0

    config = await ConfigFileStore(settings.config_file_name).load(root)
    result = await generator.generate(root, config)
    print_success(f"Documented {result.plugin_count} plugin(s) in {result.output_dir}")
    print_summary_table(
        {path: "written" for path in result.generated_files}, title="Documentation"
    )
    return 0


def _describe(plugin: PluginDefinition, installed: set[str] | None) -> dict[str, str]:
    data = {
        "Name": plugin.name,
        "Category": plugin.category.value,
        "Version": plugin.version,
        "Description": plugin.description,
        "Templates": ", ".join(plugin.supported_templates),
        "Dependencies": ", ".join(plugin.dependencies) or "-",
        "Conflicts": ", ".join(plugin.conflicts) or "-",
        "Packages": ", ".join(plugin.packages.names()) or "-",
        "Env vars": ", ".join(
            f"{var.name}{'*' if var.required else ''}" for var in plugin.env_vars
        )
        or "-",
        "Integrations": ", ".join(i.plugin for i in plugin.integrations) or "-",
    }
    if installed is not None:
        data["Installed"] = "yes" if plugin.name in installed else "no"
    return data


_COMMANDS = {
    "add": cmd_add,
    "remove": cmd_remove,
    "list": cmd_list,
    "info": cmd_info,
    "docs": cmd_docs,
}


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scaforge",
        description="Scaforge -- add and remove plugins in a scaffolded project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  scaforge add api-trpc --option transformer=none\n"
            "  scaforge remove api-trpc\n"
            "  scaforge list --installed\n"
            "  scaforge docs\n"
        ),
    )
    parser.add_argument("--root", default=".", help="Project directory (default: .)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Add a plugin and its missing dependencies")
    add.add_argument("plugin")
    add.add_argument(
        "--option",
        "-o",
        action="append",
        type=parse_option,
        metavar="KEY=VALUE",
        help="Plugin option; may be repeated",
    )
    add.add_argument("--force", action="store_true", help="Overwrite existing files")

    remove = sub.add_parser("remove", help="Remove an installed plugin")
    remove.add_argument("plugin")

    list_ = sub.add_parser("list", help="List available plugins")
    list_.add_argument(
        "--category", choices=[c.value for c in PluginCategory], help="Only this category"
    )
    list_.add_argument("--installed", action="store_true", help="Only installed plugins")

    info = sub.add_parser("info", help="Show details about a plugin")
    info.add_argument("plugin")

    docs = sub.add_parser("docs", help="Generate Markdown docs for the installed plugins")
    docs.add_argument(
        "--output", default=DOCS_OUTPUT_DIR, help=f"Output directory (default: {DOCS_OUTPUT_DIR})"
    )
    docs.add_argument("--no-api", action="store_true", help="Skip the API page")
    docs.add_argument("--no-env", action="store_true", help="Skip the environment page")
    docs.add_argument("--remove", action="store_true", help="Delete the generated docs")

    return parser


def _load_settings() -> ToolSettings:
    try:
        return ToolSettings.from_env()
    except ValueError as exc:
        # pydantic.ValidationError is a ValueError too.
        raise ConfigInvalidError(f"environment: {exc}") from exc


def main(argv: list[str] | None = None, registry: PluginRegistry | None = None) -> int:
    """CLI entry point for ``scaforge``; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings()
        setup_logging("DEBUG" if args.verbose else settings.log_level)
        command = _COMMANDS[args.command]
        return asyncio.run(command(args, registry or create_default_registry(), settings))
    except ScaforgeError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print_error(format_error_for_display(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
