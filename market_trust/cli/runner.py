# market_trust/cli/runner.py

"""Headless operator commands over the trust engine."""

import json
import logging
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from rich.console import Console
from rich.table import Table

from market_trust.filters.community_validator import validate_submission
from market_trust.filters.proximity_matcher import (
    NearbySupplier,
    ProximityMatcher,
)
from market_trust.models.price_record import (
    PriceRecord,
    SourceKind,
)
from market_trust.services.demand_aggregator import (
    DemandAggregator,
    rank_activity,
)
from market_trust.services.market_signals import (
    MarketSignalReader,
    SignalQuery,
)
from market_trust.services.price_lifecycle import PriceLifecycleManager
from market_trust.storage.interaction_store import InteractionStore
from market_trust.storage.price_store import PriceStore
from market_trust.storage.supplier_directory import load_profiles

logger = logging.getLogger("market_trust.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _record_to_dict(record: PriceRecord) -> dict[str, object]:
    """Serialise a price record to plain JSON-friendly values."""
    return {
        "id": record.record_id,
        "supplier_id": record.supplier_id,
        "price_per_unit": str(record.price_per_unit),
        "min_quantity": record.min_quantity,
        "product_type": record.product_type,
        "source_kind": record.source_kind.value,
        "observed_at": record.observed_at.isoformat(timespec="seconds"),
        "expires_at": record.expiry.isoformat(timespec="seconds"),
        "is_valid": record.is_valid,
        "note": record.note,
    }


def _emit_json(payload: object) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _print_records(title: str, records: list[PriceRecord]) -> None:
    """Render price records as a Rich table on stdout."""
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Supplier", style="bold")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Kind", style="magenta")
    table.add_column("Observed")
    table.add_column("Expires")
    table.add_column("Freshness", justify="center")
    for r in records:
        table.add_row(
            str(r.record_id or "-"),
            r.supplier_id,
            f"${r.price_per_unit}",
            r.source_kind.value,
            r.observed_at.strftime("%Y-%m-%d %H:%M"),
            r.expiry.strftime("%Y-%m-%d %H:%M"),
            PriceLifecycleManager.staleness(r).value,
        )
    Console().print(table)


def run_add_price(
    supplier_id: str,
    price: str,
    source_kind: str = SourceKind.MANUAL.value,
    min_quantity: int = 150,
    note: str = "",
    db_path: Path | None = None,
) -> int:
    """Append a price observation.  Returns 1 on a sanity-band violation."""
    try:
        record = PriceRecord(
            supplier_id=supplier_id,
            price_per_unit=Decimal(price),
            observed_at=datetime.now(),
            source_kind=SourceKind(source_kind),
            min_quantity=min_quantity,
            note=note,
        )
    except (InvalidOperation, ValueError) as exc:
        # PriceOutOfRangeError and unknown source kinds land here
        logger.error("Rejected price for %s: %s", supplier_id, exc)
        _err.print(f"[red]Rejected: {exc}[/red]")
        return 1

    store = PriceStore(db_path)
    try:
        stored = store.add(record)
    finally:
        store.close()
    _err.print(
        f"[green]✓ Recorded ${stored.price_per_unit} for {supplier_id}"
        f" (id={stored.record_id})[/green]"
    )
    _emit_json(_record_to_dict(stored))
    return 0


def run_current(
    supplier_ids: list[str],
    output_format: str = "json",
    db_path: Path | None = None,
) -> int:
    """Show current displayable prices (auto-heal applies)."""
    store = PriceStore(db_path)
    try:
        prices = PriceLifecycleManager(store).current_prices(supplier_ids)
    finally:
        store.close()

    missing = [sid for sid in supplier_ids if sid not in prices]
    for sid in missing:
        _err.print(f"[yellow]No current price for {sid}[/yellow]")
    if not prices:
        return 1

    records = [prices[sid] for sid in supplier_ids if sid in prices]
    if output_format == "table":
        _print_records("Current Prices", records)
    else:
        _emit_json([_record_to_dict(r) for r in records])
    return 0


def run_signals(
    lookback_hours: int,
    output_format: str = "json",
    db_path: Path | None = None,
) -> int:
    """Internal market-signal dump (includes aggregator signals)."""
    store = PriceStore(db_path)
    try:
        records = MarketSignalReader(store).market_signals(
            SignalQuery(lookback_hours=lookback_hours)
        )
    finally:
        store.close()

    _err.print(
        f"[dim]{len(records)} signal records in the last "
        f"{lookback_hours}h (internal use only)[/dim]"
    )
    if output_format == "table":
        _print_records("Market Signals", records)
    else:
        _emit_json([_record_to_dict(r) for r in records])
    return 0


def run_invalidate(
    record_id: int, db_path: Path | None = None,
) -> int:
    """Operator flip: mark a price record invalid."""
    store = PriceStore(db_path)
    try:
        changed = store.set_validity(record_id, False)
    finally:
        store.close()
    if not changed:
        _err.print(f"[red]No price record with id {record_id}[/red]")
        return 1
    _err.print(f"[green]✓ Record {record_id} marked invalid[/green]")
    return 0


def _nearby_to_dict(match: NearbySupplier) -> dict[str, object]:
    return {
        "supplier_id": match.profile.supplier_id,
        "name": match.profile.name,
        "score": match.score,
        "price_per_unit": str(match.price.price_per_unit),
        "observed_at": match.price.observed_at.isoformat(
            timespec="seconds"
        ),
    }


def run_nearby(
    supplier_id: str,
    directory_path: Path,
    limit: int = 5,
    output_format: str = "json",
    db_path: Path | None = None,
) -> int:
    """List comparable nearby suppliers from a JSON directory file."""
    try:
        profiles = load_profiles(directory_path)
    except (OSError, ValueError) as exc:
        logger.error("Could not load directory %s: %s", directory_path, exc)
        _err.print(f"[red]Could not load directory: {exc}[/red]")
        return 1

    target = next(
        (p for p in profiles if p.supplier_id == supplier_id), None,
    )
    if target is None:
        _err.print(f"[red]Unknown supplier: {supplier_id}[/red]")
        return 1

    store = PriceStore(db_path)
    try:
        PriceLifecycleManager(store).attach_current_prices(profiles)
    finally:
        store.close()

    matches = ProximityMatcher().find_nearby(target, profiles, limit)
    if not matches:
        _err.print("[yellow]No comparable suppliers nearby.[/yellow]")
        return 1

    if output_format == "table":
        table = Table(
            title=f"Nearby: {target.name or supplier_id}",
            show_lines=True,
            title_style="bold cyan",
        )
        table.add_column("#", style="dim", width=4)
        table.add_column("Supplier", style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Price", justify="right", style="green")
        table.add_column("Observed")
        for idx, m in enumerate(matches, 1):
            table.add_row(
                str(idx),
                m.profile.name or m.profile.supplier_id,
                str(m.score),
                f"${m.price.price_per_unit}",
                m.price.observed_at.strftime("%Y-%m-%d"),
            )
        Console().print(table)
    else:
        _emit_json([_nearby_to_dict(m) for m in matches])
    return 0


def run_check_submission(
    price: str,
    quantity: float,
    market_price: str | None = None,
) -> int:
    """Dry-run the community plausibility check."""
    try:
        outcome = validate_submission(price, quantity, market_price)
    except InvalidOperation:
        _err.print("[red]Price values must be numbers[/red]")
        return 1
    _emit_json({
        "rounded_price": str(outcome.rounded_price),
        "bucket": outcome.bucket.value,
        "status": outcome.status.value,
        "reason": outcome.reason,
        "deviation": (
            round(outcome.deviation, 4)
            if outcome.deviation is not None
            else None
        ),
    })
    return 0


def run_ranks(
    counts_path: Path | None = None,
    db_path: Path | None = None,
) -> int:
    """Print activity bands from a counts JSON file or the interaction DB."""
    if counts_path is not None:
        try:
            with open(counts_path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            _err.print(f"[red]Could not read counts: {exc}[/red]")
            return 1
        if not isinstance(raw, dict):
            _err.print("[red]Counts file must be a JSON object[/red]")
            return 1
        try:
            counts = {str(k): int(v) for k, v in raw.items()}
        except (TypeError, ValueError):
            _err.print("[red]Counts must be whole numbers[/red]")
            return 1
        rank = rank_activity(counts)
    else:
        interactions = InteractionStore(db_path)
        try:
            rank = DemandAggregator(
                interactions.counts_by_supplier
            ).activity_ranks()
        finally:
            interactions.close()

    _err.print(
        f"[dim]{len(rank.bands)} suppliers ranked, "
        f"{rank.total_interactions} interactions in window[/dim]"
    )
    _emit_json({sid: band.value for sid, band in rank.bands.items()})
    return 0
