"""
Config tool: CLI subapp only. Implementation in standing_orders.config.
"""

import typer

from standing_orders import config as config_module

config_app = typer.Typer(help="Default book, decision API endpoint and saved-progress settings.")


@config_app.command("show")
def _show() -> None:
    """Show config values and resolved paths."""
    data = config_module.get_config()
    cf = data.get("_config_file", "")
    if data.get("_no_file"):
        typer.echo(f"Config file: {cf} (not found; using defaults)")
    elif data.get("_load_error"):
        typer.echo(f"Config file: {cf} (unreadable; using defaults)")
    else:
        typer.echo(f"Config file: {cf}")
    typer.echo(f"Book: {data.get('_resolved_book_path')}")
    typer.echo(f"Decision API: {data.get('api_base_url')}")
    typer.echo(f"API token set: {data.get('_has_api_token')}")
    typer.echo(f"State file: {data.get('_resolved_state_path')}")
    typer.echo(f"Excerpt radius: {data.get('excerpt_radius')}")


@config_app.command("set")
def _set(
    key: str = typer.Argument(..., help=f"One of: {', '.join(config_module.CONFIG_KEYS)}"),
    value: str = typer.Argument(..., help="New value (paths relative to the config file dir)"),
) -> None:
    """Set one config value and save the config file."""
    result = config_module.set_value(key, value)
    if not result["ok"]:
        typer.echo(result["error"], err=True)
        raise typer.Exit(1)
    shown = "***" if key == "api_token" else value
    typer.echo(f"{key} set to: {shown}")


@config_app.command("path")
def _path() -> None:
    """Print the config file path in use."""
    typer.echo(config_module.get_config_path())
