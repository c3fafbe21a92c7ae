"""CLI: wecom-robot send, send-file, send-image"""

from typing import Any, Optional

import click
from rich.console import Console
from rich.syntax import Syntax

from wecom_robot.models.tool import ToolResult
from wecom_robot.tools import ToolDispatcher

console = Console()

key_option = click.option(
    "--key", "webhook_key", default=None, envvar="WECOM_WEBHOOK_KEY", help="Webhook key (default: $WECOM_WEBHOOK_KEY)",
)


def _invoke(name: str, arguments: dict[str, Any]) -> None:
    from wecom_robot.cli.main import _run, _settings

    dispatcher = ToolDispatcher(_settings())
    result: ToolResult = _run(dispatcher.invoke(name, arguments))
    text = result.content[0].text
    if result.is_error:
        console.print("[red]Failed[/red]")
        console.print(Syntax(text, "json"))
        raise SystemExit(1)
    console.print("[green]Sent[/green]")
    console.print(Syntax(text, "json"))


def _args(webhook_key: Optional[str], **fields: Optional[str]) -> dict[str, Any]:
    args = {k: v for k, v in fields.items() if v is not None}
    if webhook_key:
        args["webhook_key"] = webhook_key
    return args


@click.command("send")
@click.argument("content")
@key_option
def send_cmd(content: str, webhook_key: Optional[str]):
    """Send a Markdown V2 message."""
    _invoke("send_message", _args(webhook_key, content=content))


@click.command("send-file")
@click.argument("file_path", type=click.Path(dir_okay=False))
@key_option
def send_file_cmd(file_path: str, webhook_key: Optional[str]):
    """Upload a file and send it."""
    _invoke("send_file", _args(webhook_key, file_path=file_path))


@click.command("send-image")
@click.option("--path", "image_path", default=None, type=click.Path(dir_okay=False), help="Local JPG/PNG")
@click.option("--url", "image_url", default=None, help="Image URL")
@key_option
def send_image_cmd(image_path: Optional[str], image_url: Optional[str], webhook_key: Optional[str]):
    """Send an image from a local path or a URL."""
    _invoke("send_image", _args(webhook_key, image_path=image_path, image_url=image_url))
