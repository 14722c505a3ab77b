"""bin/descriptor — Inspect how the engine sees statement descriptors.

Normalizes and fingerprints descriptors, and classifies expense natures
one at a time or from a JSONL file. Used by humans to check table changes
before they ship.
"""

from __future__ import annotations

import json
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.table import Table

from descriptor_engine.lib.classifier import ClassificationInput, ExpenseNatureClassifier
from descriptor_engine.lib.fingerprint import FingerprintGenerator, MerchantTables
from descriptor_engine.lib.logging_setup import configure_logging
from descriptor_engine.lib.nature import ExpenseNature
from descriptor_engine.lib.normalizer import Normalizer, NormalizerTables
from descriptor_engine.lib.recurrence import TransactionHistoryEntry
from descriptor_engine.lib.rules import NatureRuleTable
from descriptor_engine.lib.tables import TableError, table_versions

console = Console()

_NATURE_STYLES = {
    ExpenseNature.FIXED: "blue",
    ExpenseNature.VARIABLE: "yellow",
    ExpenseNature.EVENTUAL: "magenta",
    ExpenseNature.UNKNOWN: "dim",
}


def read_jsonl(path: Path) -> list[dict]:
    """Parse a JSONL file of objects, skipping blank lines."""
    records = []
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise click.BadParameter(f"{path}:{lineno}: {e}") from e
            if not isinstance(record, dict):
                raise click.BadParameter(f"{path}:{lineno}: expected a JSON object")
            records.append(record)
    return records


def load_overrides(path: Path | None) -> dict[str, str]:
    """Overrides YAML: a mapping of override key -> nature."""
    if path is None:
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path}: expected a mapping of key -> nature")
    return {str(k): str(v) for k, v in data.items()}


def load_history(path: Path | None) -> list[TransactionHistoryEntry] | None:
    if path is None:
        return None
    try:
        return [TransactionHistoryEntry.from_dict(r) for r in read_jsonl(path)]
    except (KeyError, ArithmeticError) as e:
        raise click.BadParameter(f"{path}: invalid history record ({e!r})") from e


@click.group()
@click.option("--tables", "tables_dir", type=click.Path(exists=True, file_okay=False),
              default=None, help="Directory with replacement YAML tables")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
@click.pass_context
def main(ctx: click.Context, tables_dir: str | None, log_level: str | None) -> None:
    """descriptor — normalize, fingerprint and classify statement lines."""
    configure_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["tables_dir"] = tables_dir


def _normalizer(ctx: click.Context) -> Normalizer:
    if "normalizer" not in ctx.obj:
        ctx.obj["normalizer"] = Normalizer(NormalizerTables.load(ctx.obj["tables_dir"]))
    return ctx.obj["normalizer"]


def _classifier(ctx: click.Context) -> ExpenseNatureClassifier:
    return ExpenseNatureClassifier(rules=NatureRuleTable.load(ctx.obj["tables_dir"]))


@main.command()
@click.argument("descriptor")
@click.pass_context
def normalize(ctx: click.Context, descriptor: str) -> None:
    """Print the normalized key of DESCRIPTOR."""
    click.echo(_normalizer(ctx).normalize(descriptor))


@main.command("merchant-name")
@click.argument("descriptor")
@click.pass_context
def merchant_name(ctx: click.Context, descriptor: str) -> None:
    """Print the display merchant name of DESCRIPTOR."""
    click.echo(_normalizer(ctx).extract_merchant_name(descriptor))


@main.command()
@click.argument("a")
@click.argument("b")
@click.pass_context
def similar(ctx: click.Context, a: str, b: str) -> None:
    """Exit 0 if descriptors A and B match by key, 1 otherwise."""
    normalizer = _normalizer(ctx)
    matched = normalizer.similar(a, b)
    click.echo(f"{normalizer.normalize(a)!r} vs {normalizer.normalize(b)!r}: "
               f"{'similar' if matched else 'different'}")
    if not matched:
        raise SystemExit(1)


@main.command()
@click.argument("descriptors", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Emit one JSON object per line")
@click.pass_context
def fingerprint(ctx: click.Context, descriptors: tuple[str, ...], as_json: bool) -> None:
    """Show strong/weak fingerprints for each DESCRIPTOR."""
    generator = FingerprintGenerator(
        tables=MerchantTables.load(ctx.obj["tables_dir"]),
        normalizer=_normalizer(ctx),
    )
    results = [(d, generator.fingerprint(d)) for d in descriptors]
    if as_json:
        for _, fp in results:
            click.echo(fp.to_json())
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Descriptor", width=36)
    table.add_column("Strong", width=18)
    table.add_column("Weak", width=36)
    table.add_column("Merchant", width=14)
    for descriptor, fp in results:
        table.add_row(descriptor, fp.strong or "-", fp.weak or "-", fp.merchant_canon or "-")
    console.print(table)


@main.command()
@click.argument("category_id")
@click.argument("subcategory_id", required=False)
@click.option("--merchant", "merchant_key", default=None, help="Merchant key for overrides")
@click.option("--overrides", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="YAML mapping of override key -> nature")
@click.option("--history", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="JSONL transaction history")
@click.pass_context
def classify(
    ctx: click.Context,
    category_id: str,
    subcategory_id: str | None,
    merchant_key: str | None,
    overrides: Path | None,
    history: Path | None,
) -> None:
    """Classify the expense nature of CATEGORY_ID [SUBCATEGORY_ID]."""
    item = ClassificationInput(category_id, subcategory_id, merchant_key)
    result = _classifier(ctx).classify(item, load_overrides(overrides), load_history(history))
    click.echo(result.to_json())


@main.command("classify-file")
@click.argument("inputs", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--overrides", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="YAML mapping of override key -> nature")
@click.option("--history", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="JSONL transaction history")
@click.pass_context
def classify_file(
    ctx: click.Context, inputs: Path, overrides: Path | None, history: Path | None
) -> None:
    """Classify every JSONL record in INPUTS and show a summary table."""
    try:
        items = [ClassificationInput.from_dict(r) for r in read_jsonl(inputs)]
    except ArithmeticError as e:
        raise click.BadParameter(f"{inputs}: invalid input record ({e!r})") from e
    classifier = _classifier(ctx)
    results = classifier.classify_batch(items, load_overrides(overrides), load_history(history))

    if not results:
        console.print("[green]Nothing to classify.[/green]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Key", width=44)
    table.add_column("Nature", width=10)
    table.add_column("Source", width=13)
    table.add_column("Conf.", width=6, justify="right")
    table.add_column("Reason")
    for key, result in results.items():
        table.add_row(
            key,
            classifier.rules.badge(result.nature),
            result.source.value,
            f"{result.confidence:.2f}",
            result.reason,
            style=_NATURE_STYLES[result.nature],
        )
    console.print(table)

    unknown = sum(1 for r in results.values() if r.nature is ExpenseNature.UNKNOWN)
    if unknown:
        console.print(f"\n[yellow]{unknown} expense(s) could not be classified.[/yellow]")


@main.command()
@click.pass_context
def tables(ctx: click.Context) -> None:
    """Show the version of each reference table in use."""
    try:
        versions = table_versions(ctx.obj["tables_dir"])
    except TableError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    for name, version in versions.items():
        click.echo(f"{name}: {version}")


if __name__ == "__main__":
    main()
