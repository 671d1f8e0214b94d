#!/usr/bin/env python3
"""Plugin management CLI tool."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

# Ensure project root is in path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

load_dotenv()

from skillbox.constants import BUNDLED_PLUGINS_DIR, INSTALLED_PLUGINS_DIR, PLUGIN_STATE_FILE
from skillbox.dependencies import ServiceContainer, build_services
from skillbox.plugins.manifest import RuntimeType
from skillbox.plugins.registry import PluginRecord, build_record
from skillbox.plugins.runtimes import RUNTIMES


def get_services() -> ServiceContainer:
    """Build services and load every plugin definition into the registry."""
    services = build_services()
    asyncio.run(services.discovery.import_all(services.registry))
    return services


def find_plugin(services: ServiceContainer, ref: str) -> PluginRecord:
    """Look a plugin up by id or name, exiting when it does not exist."""
    registry = services.registry
    plugin = asyncio.run(registry.find_by_id(ref)) or asyncio.run(registry.find_by_name(ref))
    if not plugin:
        print(f"Plugin '{ref}' not found.")
        sys.exit(1)
    return plugin


def parse_value(raw: str):
    """Config values are JSON when they parse as JSON, plain strings otherwise."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def cmd_list(args):
    """List all registered plugins."""
    services = get_services()
    plugins = asyncio.run(services.registry.find_all())

    if not plugins:
        print("No plugins found.")
        return

    print(f"{'Name':<22} {'Display Name':<26} {'Type':<18} {'Runtime':<10} {'Active':<7} {'Version'}")
    print("-" * 100)

    for p in plugins:
        active = "Yes" if p.is_active else "No"
        print(
            f"{p.name:<22} {p.display_name:<26} {p.plugin_type.value:<18} "
            f"{p.runtime_type.value:<10} {active:<7} {p.version}"
        )


def cmd_info(args):
    """Show detailed plugin information."""
    services = get_services()
    plugin = find_plugin(services, args.plugin)
    configs = services.config_service.list_configs(plugin.id)

    print(f"Plugin: {plugin.name}")
    print(f"  ID:          {plugin.id}")
    print(f"  Name:        {plugin.display_name}")
    print(f"  Version:     {plugin.version}")
    print(f"  Type:        {plugin.plugin_type.value}")
    print(f"  Runtime:     {plugin.runtime_type.value}")
    print(f"  Description: {plugin.description}")
    print(f"  Active:      {plugin.is_active}")
    print(f"  Public:      {plugin.is_public}")
    print("  Functions:")
    for function in plugin.manifest.functions:
        print(f"    - {function.name}: {function.description}")
        for name, spec in function.parameters.items():
            required = " (required)" if spec.required else ""
            default = f" = {spec.default!r}" if spec.has_default else ""
            print(f"        {name}: {spec.type}{required}{default}")
    for config in configs:
        scope = f"user {config.user_id}" if config.user_id else "global"
        print(f"  Config ({scope}): {json.dumps(config.config_data, ensure_ascii=False)}")
    if plugin.config_schema:
        print(f"  Schema:      {json.dumps(plugin.config_schema, indent=4)}")


def cmd_sync(args):
    """Import new definition files and export runtime-only plugins."""
    services = build_services()
    report = asyncio.run(services.discovery.sync(services.registry))
    print(f"Imported: {report.imported}, exported: {report.exported}")
    for error in report.errors:
        print(f"  ! {error}")
    if report.errors:
        sys.exit(1)


def cmd_enable(args):
    """Enable a plugin."""
    services = get_services()
    plugin = find_plugin(services, args.plugin)
    asyncio.run(services.registry.set_active(plugin.id, True))
    print(f"Plugin '{plugin.name}' enabled. Restart the service to take effect.")


def cmd_disable(args):
    """Disable a plugin."""
    services = get_services()
    plugin = find_plugin(services, args.plugin)
    asyncio.run(services.registry.set_active(plugin.id, False))
    print(f"Plugin '{plugin.name}' disabled. Restart the service to take effect.")


def cmd_config(args):
    """Show or update a plugin's global or per-user configuration."""
    services = get_services()
    plugin = find_plugin(services, args.plugin)
    registry = services.registry

    if not args.values:
        config = asyncio.run(registry.resolve_config(plugin.id, args.user))
        print(json.dumps(config, indent=2, ensure_ascii=False))
        return

    updates = {}
    for pair in args.values:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            print(f"Invalid setting '{pair}', expected key=value")
            sys.exit(1)
        updates[key] = parse_value(raw)

    current = asyncio.run(registry.get_config(plugin.id, args.user)) or {}
    asyncio.run(registry.update_config(plugin.id, {**current, **updates}, args.user))
    scope = f"user '{args.user}'" if args.user else "global"
    print(f"Updated {scope} config of '{plugin.name}': {', '.join(sorted(updates))}")


def cmd_assign(args):
    """Assign a plugin to an assistant."""
    services = get_services()
    plugin = find_plugin(services, args.plugin)

    if args.remove:
        removed = asyncio.run(services.registry.unassign_plugin(args.assistant_id, plugin.id))
        print(f"Plugin '{plugin.name}' {'removed from' if removed else 'was not assigned to'} assistant '{args.assistant_id}'")
        return

    asyncio.run(services.registry.assign_plugin(
        args.assistant_id,
        plugin.id,
        is_enabled=not args.disabled,
        sort_order=args.order,
    ))
    print(f"Plugin '{plugin.name}' assigned to assistant '{args.assistant_id}' (order {args.order})")


def cmd_doctor(args):
    """Run health checks on the plugin system."""
    issues = []

    # Check directories
    if not BUNDLED_PLUGINS_DIR.exists():
        issues.append(f"Bundled plugins directory missing: {BUNDLED_PLUGINS_DIR}")
    if not INSTALLED_PLUGINS_DIR.exists():
        issues.append(f"Installed plugins directory missing: {INSTALLED_PLUGINS_DIR}")

    # Check state file
    if PLUGIN_STATE_FILE.exists():
        try:
            with open(PLUGIN_STATE_FILE) as f:
                json.load(f)
        except json.JSONDecodeError as e:
            issues.append(f"Plugin state file has invalid JSON: {e}")

    # Validate every definition file
    services = build_services()
    definitions = services.discovery.discover_all()
    known_ids = set()
    for definition in definitions:
        try:
            record = build_record({"id": definition.name, **definition.data})
        except ValueError as e:
            issues.append(f"{definition.path}: {e}")
            continue
        known_ids.add(record.id)
        if record.runtime_type not in RUNTIMES:
            issues.append(f"Plugin '{record.name}': runtime '{record.runtime_type.value}' is not executable")
        if record.runtime_type == RuntimeType.PYTHON and not record.manifest.code:
            issues.append(f"Plugin '{record.name}': script runtime without code")

    # Check state that refers to unknown plugins
    state = services.config_service
    for plugin_id in state.configured_plugin_ids():
        if plugin_id not in known_ids:
            issues.append(f"Config stored for unknown plugin '{plugin_id}'")
    for assistant_id, entries in state.all_assignments().items():
        for entry in entries:
            if entry["plugin_id"] not in known_ids:
                issues.append(f"Assistant '{assistant_id}' is assigned unknown plugin '{entry['plugin_id']}'")

    if issues:
        print(f"Found {len(issues)} issue(s):")
        for i, issue in enumerate(issues, 1):
            print(f"  {i}. {issue}")
        sys.exit(1)
    else:
        print(f"All checks passed. {len(definitions)} plugin definition(s) found.")


def main():
    parser = argparse.ArgumentParser(description="Skillbox Plugin Manager")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # list
    subparsers.add_parser("list", help="List all plugins")

    # info
    info_parser = subparsers.add_parser("info", help="Show plugin details")
    info_parser.add_argument("plugin", help="Plugin name or ID")

    # sync
    subparsers.add_parser("sync", help="Sync definition files with the registry")

    # enable
    enable_parser = subparsers.add_parser("enable", help="Enable a plugin")
    enable_parser.add_argument("plugin", help="Plugin name or ID")

    # disable
    disable_parser = subparsers.add_parser("disable", help="Disable a plugin")
    disable_parser.add_argument("plugin", help="Plugin name or ID")

    # config
    config_parser = subparsers.add_parser("config", help="Show or set plugin configuration")
    config_parser.add_argument("plugin", help="Plugin name or ID")
    config_parser.add_argument("values", nargs="*", help="Settings as key=value (JSON values allowed)")
    config_parser.add_argument("--user", help="User ID (default: global config)")

    # assign
    assign_parser = subparsers.add_parser("assign", help="Assign a plugin to an assistant")
    assign_parser.add_argument("assistant_id", help="Assistant ID")
    assign_parser.add_argument("plugin", help="Plugin name or ID")
    assign_parser.add_argument("--order", type=int, default=0, help="Sort order")
    assign_parser.add_argument("--disabled", action="store_true", help="Assign but keep disabled")
    assign_parser.add_argument("--remove", action="store_true", help="Remove the assignment")

    # doctor
    subparsers.add_parser("doctor", help="Run health checks")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "list": cmd_list,
        "info": cmd_info,
        "sync": cmd_sync,
        "enable": cmd_enable,
        "disable": cmd_disable,
        "config": cmd_config,
        "assign": cmd_assign,
        "doctor": cmd_doctor,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
