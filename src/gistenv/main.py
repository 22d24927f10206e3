"""
gistenv CLI - sync sectioned environment variables between a Gist and .env files

Main entry point for the gistenv command-line tool.
"""

import functools
import logging
import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .core.config import Config, ConfigError, load_config
from .core.crypto import DecryptionError
from .core.envfile import WriteMode, render_variables, write_env_file
from .core.gist import GistClient, GistError, GistFile
from .core.lexer import (
    Variable,
    diagnostics,
    encrypt_content,
    filter_by_keys,
    filter_by_section,
    get_keys,
    get_sections,
    group_by_section,
    parse_variables,
    tokenize,
)
from .core.sections import has_section, remove_section, upsert_section


log = logging.getLogger(__name__)

console = Console()

MODE_CHOICES = [mode.value for mode in WriteMode]


def reports_errors(func):
    """Print known failures in red and exit with status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (GistError, ConfigError, DecryptionError, OSError) as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            sys.exit(1)
    return wrapper


def fetch_env_file(config: Config) -> GistFile:
    """Fetch the Gist's env file, logging any lines the parser will skip."""
    gist_file = GistClient.from_config(config).fetch()
    for line_no, raw in diagnostics(tokenize(gist_file.content)):
        log.debug("Skipping line %d of %s: %r", line_no, gist_file.filename, raw)
    return gist_file


def fetch_variables(config: Config) -> list[Variable]:
    """Fetch and parse the Gist, decrypting values when a key is configured."""
    return read_variables(config, fetch_env_file(config).content)


def read_variables(config: Config, content: str) -> list[Variable]:
    return parse_variables(
        content,
        decrypt=config.encryption_available,
        encryption_key=config.encryption_key,
    )


def update_env_file(config: Config, filename: str, content: str) -> None:
    GistClient.from_config(config).update(filename, content)


def prompt_mode(mode: str | None) -> WriteMode:
    if mode is None:
        mode = click.prompt(
            "How to add variables",
            type=click.Choice(MODE_CHOICES),
            default=WriteMode.APPEND.value,
        )
    return WriteMode(mode)


def require_encryption(config: Config) -> None:
    if not config.encryption_available:
        raise ConfigError(
            "Encryption key not set or shorter than 16 characters. Set "
            "GISTENV_ENCRYPTION_KEY or ENCRYPTION_KEY in your .gistenv or environment."
        )


mode_option = click.option(
    '--mode',
    type=click.Choice(MODE_CHOICES),
    default=None,
    help='Append to or replace the output file (prompts if omitted)')

output_option = click.option(
    '-o', '--output',
    default=".env",
    show_default=True,
    help='Local env file to write')


@click.group()
@click.version_option(__version__, prog_name="gistenv")
@click.option('--project-root', default=".", help='Directory to look for .gistenv in')
@click.option('-d', '--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, project_root, debug):
    """
    gistenv - copy environment variables between a GitHub Gist and .env files
    """
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    if ctx.obj is None:
        ctx.obj = load_config(project_root)


@cli.command()
@click.pass_obj
@reports_errors
def sections(config: Config):
    """List all available sections in the Gist."""
    names = get_sections(fetch_variables(config))
    if not names:
        console.print("[yellow]No sections found in your Gist.[/yellow]")
        return

    console.print("\n[bold]Available sections:[/bold]")
    for name in names:
        console.print(f"[cyan]- {escape(name)}[/cyan]")


@cli.command()
@click.pass_obj
@reports_errors
def keys(config: Config):
    """List all available keys in the Gist."""
    names = get_keys(fetch_variables(config))
    if not names:
        console.print("[yellow]No keys found in your Gist.[/yellow]")
        return

    console.print("\n[bold]Available keys:[/bold]")
    for name in names:
        console.print(f"[green]- {escape(name)}[/green]")


@cli.command(name="list")
@click.pass_obj
@reports_errors
def list_variables(config: Config):
    """List all variables in the Gist, grouped by section."""
    variables = fetch_variables(config)
    if not variables:
        console.print("[yellow]No variables found in your Gist.[/yellow]")
        return

    table = Table(title="Environment Variables", box=box.ROUNDED)
    table.add_column("Section", style="cyan", no_wrap=True)
    table.add_column("Key", style="green", no_wrap=True)
    table.add_column("Value", style="white")

    for section, group in group_by_section(variables):
        label = section if section is not None else "No Section"
        for i, var in enumerate(group):
            table.add_row(escape(label) if i == 0 else "", escape(var.key), escape(var.value))
        table.add_section()

    console.print(table)


@cli.command(name="copy-section")
@click.argument('name', required=False)
@mode_option
@output_option
@click.pass_obj
@reports_errors
def copy_section(config: Config, name, mode, output):
    """
    Copy all variables from a section to a local .env file.

    Prompts for the section and write mode when they aren't given.
    """
    gist_file = fetch_env_file(config)
    variables = read_variables(config, gist_file.content)
    names = get_sections(variables)

    if name is not None and name not in names and has_section(gist_file.content, name):
        console.print(f"[yellow]Section '{escape(name)}' has no variables[/yellow]")
        return

    if not names:
        console.print("[yellow]No sections found in your Gist.[/yellow]")
        return

    if name is None:
        name = click.prompt("Select section to copy", type=click.Choice(names))
    elif name not in names:
        console.print(f"[red]Error: Section '{escape(name)}' not found in your Gist[/red]")
        console.print(f"[dim]Available sections: {escape(', '.join(names))}[/dim]")
        sys.exit(1)

    section_variables = filter_by_section(variables, name)
    write_mode = prompt_mode(mode)
    write_env_file(section_variables, output, write_mode)

    console.print(
        f"[green]✓ Copied {len(section_variables)} variables from section "
        f"'{escape(name)}' to {escape(output)}[/green]"
    )


@cli.command(name="copy-keys")
@click.argument('selected', nargs=-1)
@mode_option
@output_option
@click.pass_obj
@reports_errors
def copy_keys(config: Config, selected, mode, output):
    """
    Copy selected keys from the Gist to a local .env file.

    Every occurrence of a key is copied, one per section it appears in.
    """
    variables = fetch_variables(config)
    available = get_keys(variables)
    if not available:
        console.print("[yellow]No keys found in your Gist.[/yellow]")
        return

    if not selected:
        console.print(f"[dim]Available keys: {escape(', '.join(available))}[/dim]")
        answer = click.prompt("Keys to copy (comma separated)")
        selected = [key.strip() for key in answer.split(",") if key.strip()]

    missing = [key for key in selected if key not in available]
    if missing:
        console.print(f"[yellow]⚠ Not in your Gist: {escape(', '.join(missing))}[/yellow]")

    selected_variables = filter_by_keys(variables, selected)
    if not selected_variables:
        console.print("[red]Error: None of the selected keys exist in your Gist[/red]")
        sys.exit(1)

    write_mode = prompt_mode(mode)
    write_env_file(selected_variables, output, write_mode)

    console.print(f"[green]✓ Copied {len(selected_variables)} variables to {escape(output)}[/green]")


@cli.command(name="delete-section")
@click.argument('name')
@click.option('-y', '--yes', is_flag=True, help='Skip the confirmation prompt')
@click.pass_obj
@reports_errors
def delete_section(config: Config, name, yes):
    """Remove a section and all of its variables from the Gist."""
    gist_file = fetch_env_file(config)
    if not has_section(gist_file.content, name):
        console.print(f"[yellow]Section '{escape(name)}' not found in your Gist[/yellow]")
        return

    if not yes and not click.confirm(f"Delete section '{name}' from the Gist?"):
        console.print("[dim]Aborted.[/dim]")
        return

    updated = remove_section(gist_file.content, name)
    update_env_file(config, gist_file.filename, updated)

    console.print(f"[green]✓ Deleted section '{escape(name)}'[/green]")


@cli.command()
@click.argument('name')
@click.option(
    '-i', '--input', 'input_path',
    type=click.Path(dir_okay=False, path_type=Path),
    default=".env",
    show_default=True,
    help='Local env file to upload')
@click.option('--encrypt/--no-encrypt', default=None,
              help='Encrypt values before upload (default: when a key is configured)')
@click.pass_obj
@reports_errors
def push(config: Config, name, input_path, encrypt):
    """
    Upload a local .env file to the Gist as a section.

    An existing section with the same name is replaced.
    """
    if encrypt is None:
        encrypt = config.encryption_available
    elif encrypt:
        require_encryption(config)

    local_variables = parse_variables(input_path.read_text())
    if not local_variables:
        console.print(f"[yellow]No variables found in {escape(str(input_path))}[/yellow]")
        return

    body = render_variables(Variable(key=var.key, value=var.value) for var in local_variables)
    if encrypt:
        body = encrypt_content(body, config.encryption_key)

    gist_file = fetch_env_file(config)
    replaced = has_section(gist_file.content, name)
    updated = upsert_section(gist_file.content, name, body)
    update_env_file(config, gist_file.filename, updated)

    action = "Replaced" if replaced else "Added"
    suffix = " (encrypted)" if encrypt else ""
    console.print(
        f"[green]✓ {action} section '{escape(name)}' with "
        f"{len(local_variables)} variables{suffix}[/green]"
    )


@cli.command()
@click.pass_obj
@reports_errors
def encrypt(config: Config):
    """Encrypt every plaintext value in the Gist."""
    require_encryption(config)

    gist_file = fetch_env_file(config)
    updated = encrypt_content(gist_file.content, config.encryption_key)
    if updated == gist_file.content:
        console.print("[dim]Nothing to encrypt - all values are already encrypted.[/dim]")
        return

    update_env_file(config, gist_file.filename, updated)
    console.print("[green]✓ Encrypted all values in your Gist[/green]")


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
