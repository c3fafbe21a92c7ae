"""
wecom-robot CLI, `wecom-robot` command.

Commands:
  wecom-robot serve              Run the MCP stdio server
  wecom-robot tools              Print tool descriptors as JSON
  wecom-robot send <content>     One-shot markdown message
  wecom-robot send-file <path>   Upload and send a file
  wecom-robot send-image         Send an image from --path or --url
"""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console

from wecom_robot.config import Settings
from wecom_robot.logs import configure_logging
from wecom_robot.tools import TOOLS

console = Console()


def _settings(**overrides: object) -> Settings:
    return Settings.from_env(**overrides)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
def main():
    """WeCom group robot: MCP server and one-shot sender."""


@main.command("serve")
@click.option("--log-level", default=None, help="Log level (default: $WECOM_LOG_LEVEL or INFO)")
@click.option("--base-url", default=None, help="Webhook base URL")
def serve_cmd(log_level: Optional[str], base_url: Optional[str]):
    """Run the MCP server on stdin/stdout."""
    from wecom_robot.server import run_stdio

    settings = _settings(log_level=log_level, base_url=base_url)
    configure_logging(settings.log_level)
    try:
        _run(run_stdio(settings))
    except KeyboardInterrupt:
        pass


@main.command("tools")
def tools_cmd():
    """Print the tool descriptors."""
    click.echo(json.dumps([t.to_dict() for t in TOOLS], indent=2, ensure_ascii=False))


# Register subcommands from separate modules
from wecom_robot.cli.send import send_cmd, send_file_cmd, send_image_cmd

main.add_command(send_cmd)
main.add_command(send_file_cmd)
main.add_command(send_image_cmd)


if __name__ == "__main__":
    main()
