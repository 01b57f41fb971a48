"""
Main CLI entry point for tokenmeter.

Provides the command-line interface using Click. Every command reads plain
UTF-8 text (from a file or stdin) and counts, encodes or decodes it with
the configured TokenCounter.
"""

import json as _json
import logging as _logging
import sys as _sys
import typing as _typing

import click as _click
import pydantic as _pydantic
import rich.console as _rich_console
import rich.syntax as _rich_syntax
import rich.table as _rich_table
import yaml as _yaml

import tokenmeter
import tokenmeter.config as config
import tokenmeter.tokenizers as tokenizers

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _configure_logging(level: int) -> None:
    """Attach a stderr handler (if none exists) and set the package log level."""
    _logging.basicConfig(format=LOG_FORMAT)
    _logging.getLogger("tokenmeter").setLevel(level)


def _get_counter(ctx: _click.Context) -> tokenizers.TokenCounter:
    counter: tokenizers.TokenCounter = ctx.obj["counter"]
    return counter


def _read_source(source: _typing.TextIO) -> str:
    try:
        return source.read()
    except UnicodeDecodeError as e:
        raise _click.ClickException(f"{source.name} is not valid UTF-8 text: {e}") from None


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(tokenmeter.__version__, "-v", "--version", prog_name="tokenmeter")
@_click.option(
    "--verbose",
    is_flag=True,
    help="Enable debug logging (encoder loads, cache hits, fallbacks)",
)
@_click.pass_context
def cli(ctx: _click.Context, verbose: bool) -> None:
    """tokenmeter - count tokens the way a model would.

    OpenAI-family models are counted exactly with their tiktoken encoding.
    Llama-family models (llama, mistral, mixtral, ...) get an approximate
    count. Unknown models are counted with the default model's encoding.
    """
    try:
        settings = config.Settings()
    except (config.ConfigFileError, _pydantic.ValidationError) as e:
        raise _click.ClickException(f"Invalid configuration: {e}") from None

    _configure_logging(_logging.DEBUG if verbose else settings.log_level)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["counter"] = tokenizers.TokenCounter.from_settings(settings)


@cli.command()
@_click.argument("source", type=_click.File("r", encoding="utf-8"), default="-")
@_click.option(
    "-m",
    "--model",
    "models",
    multiple=True,
    help="Model to count for (repeatable). Default: models.default from config.",
)
@_click.option(
    "--exact",
    "mode",
    flag_value="exact",
    help="Force exact counting with each model's encoding",
)
@_click.option(
    "--approximate",
    "mode",
    flag_value="approximate",
    help="Force the Llama-family approximation",
)
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def count(
    ctx: _click.Context,
    source: _typing.TextIO,
    models: tuple[str, ...],
    mode: str | None,
    as_json: bool,
) -> None:
    """Count tokens in SOURCE (a file, or - for stdin).

    Examples:
        tokenmeter count notes.md
        tokenmeter count data.json -m gpt-4o -m llama-3-8b
        cat prompt.txt | tokenmeter count --json
    """
    counter = _get_counter(ctx)
    text = _read_source(source)
    if not models:
        models = (counter.routing.default_model,)

    rows: list[dict[str, _typing.Any]] = []
    for model in models:
        if mode == "exact":
            result = counter.count_exact(text, model)
        elif mode == "approximate":
            result = counter.count_approximate(text, model)
        else:
            result = counter.count_auto(text, model)
        rows.append(
            {
                "model": model,
                "family": counter.classify(model).value,
                "characters": len(text),
                **result.to_dict(),
            }
        )

    if as_json:
        _click.echo(_json.dumps(rows, indent=2))
        return

    table = _rich_table.Table(title=f"Token counts for {source.name}")
    table.add_column("Model")
    table.add_column("Family")
    table.add_column("Method")
    table.add_column("Tokens", justify="right")
    table.add_column("Time (ms)", justify="right")
    for row in rows:
        table.add_row(
            row["model"],
            row["family"],
            row["method"],
            f"{row['token_count']:,}",
            f"{row['elapsed_ms']:.2f}",
        )
    _rich_console.Console().print(table)


@cli.command()
@_click.argument("source", type=_click.File("r", encoding="utf-8"), default="-")
@_click.option("-m", "--model", default=None, help="Model whose encoding to count with")
@_click.pass_context
def chat(ctx: _click.Context, source: _typing.TextIO, model: str | None) -> None:
    """Count tokens for a JSON list of {"role", "content"} messages.

    The total includes per-message and per-conversation overhead.
    """
    counter = _get_counter(ctx)
    try:
        messages = _json.loads(_read_source(source))
    except _json.JSONDecodeError as e:
        raise _click.ClickException(f"{source.name} is not valid JSON: {e}") from None
    if not isinstance(messages, list):
        raise _click.ClickException("Expected a JSON list of messages")

    try:
        total = counter.count_chat_tokens(messages, model)
    except tokenizers.EncoderLoadError as e:
        raise _click.ClickException(str(e)) from None
    except ValueError as e:
        raise _click.ClickException(f"Cannot count messages: {e}") from None

    _click.echo(str(total))


@cli.command(context_settings={"ignore_unknown_options": True})
@_click.argument("tokens", nargs=-1, type=int, required=True)
@_click.option("-m", "--model", default=None, help="Model whose encoding to decode with")
@_click.pass_context
def decode(ctx: _click.Context, tokens: tuple[int, ...], model: str | None) -> None:
    """Decode TOKENS (integer ids) back to text.

    Negative ids are accepted as arguments and decode to an empty string.
    """
    counter = _get_counter(ctx)
    _click.echo(counter.decode(tokens, model or counter.routing.default_model))


@cli.command()
@_click.argument("source", type=_click.File("r", encoding="utf-8"), default="-")
@_click.option("-m", "--model", default=None, help="Model whose encoding to check")
@_click.pass_context
def roundtrip(ctx: _click.Context, source: _typing.TextIO, model: str | None) -> None:
    """Check that SOURCE survives encode → decode unchanged.

    Exits with status 1 if the decoded text differs.
    """
    counter = _get_counter(ctx)
    model = model or counter.routing.default_model
    if counter.verify_roundtrip(_read_source(source), model):
        _click.echo(f"OK: {source.name} round-trips with {model}")
        return
    _click.echo(f"FAILED: {source.name} does not round-trip with {model}", err=True)
    ctx.exit(1)


@cli.command()
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def encodings(ctx: _click.Context, as_json: bool) -> None:
    """List the model → encoding table in effect."""
    counter = _get_counter(ctx)
    table_data = {model: scheme.value for model, scheme in sorted(counter.cache.table.items())}

    if as_json:
        _click.echo(_json.dumps(table_data, indent=2))
        return

    for model, encoding in table_data.items():
        _click.echo(f"{model:<28} {encoding}")
    _click.echo(f"{'(anything else)':<28} {tokenizers.DEFAULT_ENCODING.value}")


@cli.command(name="config")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def config_cmd(ctx: _click.Context, as_json: bool) -> None:
    """Show the effective configuration from all sources."""
    settings: config.Settings = ctx.obj["settings"]
    data = settings.to_dict()

    if as_json:
        _click.echo(_json.dumps(data, indent=2))
    else:
        yaml_text = _yaml.dump(data, default_flow_style=False, sort_keys=False)
        _print_yaml(yaml_text, color=_sys.stdout.isatty())

    unknown = settings.get_unknown_fields()
    if unknown:
        _click.echo(
            "Warning: unrecognised config keys: " + ", ".join(sorted(unknown)),
            err=True,
        )


def _print_yaml(yaml_text: str, *, color: bool) -> None:
    """Print YAML text, with syntax highlighting when writing to a terminal."""
    if not color:
        _click.echo(yaml_text)
        return
    syntax = _rich_syntax.Syntax(
        yaml_text,
        "yaml",
        theme="monokai",
        background_color="default",
    )
    _rich_console.Console().print(syntax)


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="tokenmeter")


if __name__ == "__main__":
    main()
