"""Command-line VAT verification.

Usage::

    python -m vatcheck.cli verify ESB12345678
    python -m vatcheck.cli verify B12345678 --country ES --json
    python -m vatcheck.cli verify DE123456789 --provider vies_rest
    python -m vatcheck.cli providers
    python -m vatcheck.cli from-file vat_numbers.txt

``verify`` and ``from-file`` go through the full service (fast cache,
SQLite store, provider fallback).  ``--provider`` calls one registered
provider directly and bypasses both cache layers.

Results go to stdout; logs go to stderr, at WARNING and above when
``--json`` is given so the output stays machine-readable.

Exit codes: 0 on success (including a VAT reported invalid), 1 when a
verification could not be completed or the input was unusable.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from vatcheck.config.loader import load_settings
from vatcheck.config.settings import Settings
from vatcheck.main import build_provider_manager, build_service
from vatcheck.models.verification import ServiceResponse, VerificationResult
from vatcheck.services.provider_manager import VatProviderManager
from vatcheck.utils.errors import VatVerificationError
from vatcheck.utils.logging import configure_from_settings
from vatcheck.utils.vat_normalizer import split_vat_code, strip_country_prefix

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_response(response: ServiceResponse) -> str:
    lines = [
        f"VAT:      {response.vat_code}",
        f"Valid:    {'yes' if response.is_valid else 'no'}",
    ]
    if response.company_name:
        lines.append(f"Name:     {response.company_name}")
    if response.company_address:
        lines.append(f"Address:  {response.company_address}")
    lines.append(f"Source:   {response.api_source} ({response.cache_status.value})")
    return "\n".join(lines)


def _format_result(result: VerificationResult) -> str:
    lines = [
        f"VAT:      {result.country_code}{result.vat_number}",
        f"Valid:    {'yes' if result.valid else 'no'}",
    ]
    if result.name:
        lines.append(f"Name:     {result.name}")
    if result.address:
        lines.append(f"Address:  {result.address}")
    lines.append(f"Source:   {result.api_source}")
    return "\n".join(lines)


def _provider_rows(manager: VatProviderManager) -> list[dict[str, object]]:
    return [
        {
            "key": key,
            "name": provider.get_provider_name(),
            "free": provider.is_free(),
            "available": provider.is_available(),
        }
        for key, provider in manager.get_providers().items()
    ]


def _parse_vat_input(vat_input: str, country: str | None) -> tuple[str, str]:
    """Return ``(vat_number, country_code)``; raises ValueError on bad input."""
    if country:
        country_code = country.strip().upper()
        if len(country_code) != 2 or not country_code.isalpha():
            msg = f"Invalid country code: {country!r}"
            raise ValueError(msg)
        vat_number = strip_country_prefix(vat_input, country_code)
        if not vat_number:
            msg = f"Missing VAT number in {vat_input!r}"
            raise ValueError(msg)
        return vat_number, country_code
    country_code, vat_number = split_vat_code(vat_input)
    return vat_number, country_code


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_verify(args: argparse.Namespace, app_settings: Settings) -> int:
    try:
        vat_number, country_code = _parse_vat_input(args.vat, args.country)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.provider:
        return await _verify_with_provider(args, app_settings, vat_number, country_code)

    service = build_service(app_settings)
    try:
        if service.store is not None:
            await service.store.initialize()
        response = await service.verify_vat_number(vat_number, country_code)
    except VatVerificationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await service.provider_manager.aclose()

    if args.json:
        print(json.dumps(response.model_dump(mode="json"), indent=2))
    else:
        print(_format_response(response))
    return 0


async def _verify_with_provider(
    args: argparse.Namespace,
    app_settings: Settings,
    vat_number: str,
    country_code: str,
) -> int:
    manager = build_provider_manager(app_settings)
    try:
        provider = manager.get_provider(args.provider.lower())
        if provider is None:
            registered = ", ".join(sorted(manager.get_providers()))
            print(
                f"Error: Provider {args.provider!r} is not registered. Registered: {registered}",
                file=sys.stderr,
            )
            return 1
        result = await provider.verify(vat_number, country_code)
    except VatVerificationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await manager.aclose()

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        print(_format_result(result))
    return 0


async def _handle_providers(args: argparse.Namespace, app_settings: Settings) -> int:
    manager = build_provider_manager(app_settings)
    try:
        rows = _provider_rows(manager)
        order = manager.get_provider_order()
    finally:
        await manager.aclose()

    if args.json:
        print(json.dumps({"order": order, "providers": rows}, indent=2))
        return 0

    print(f"Order: {' -> '.join(order)}")
    print()
    for row in rows:
        tier = "FREE" if row["free"] else "PAID"
        status = "available" if row["available"] else "unavailable"
        print(f"  {row['key']:<10} {row['name']:<10} {tier:<5} {status}")
    return 0


def _read_entries(path: Path) -> list[tuple[str, str]]:
    """Return ``(vat_code, description)`` pairs, skipping blanks and comments."""
    entries: list[tuple[str, str]] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        vat_code, _, description = line.partition(" ")
        entries.append((vat_code, description.strip()))
    return entries


async def _handle_from_file(args: argparse.Namespace, app_settings: Settings) -> int:
    path = Path(args.path)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return 1

    entries = _read_entries(path)
    if not entries:
        print(f"Error: No VAT numbers found in {path}", file=sys.stderr)
        return 1

    service = build_service(app_settings)
    results: list[dict[str, object]] = []
    failures = 0
    try:
        if service.store is not None:
            await service.store.initialize()
        for vat_code, description in entries:
            item: dict[str, object] = {"input": vat_code, "description": description or None}
            try:
                vat_number, country_code = _parse_vat_input(vat_code, None)
                response = await service.verify_vat_number(vat_number, country_code)
            except (ValueError, VatVerificationError) as exc:
                failures += 1
                item["error"] = str(exc)
            else:
                item["response"] = response.model_dump(mode="json")
            results.append(item)
    finally:
        await service.provider_manager.aclose()

    if args.json:
        print(json.dumps(results, indent=2))
    else:
        for item in results:
            label = f"{item['input']}" + (f"  ({item['description']})" if item["description"] else "")
            if "error" in item:
                print(f"FAILED   {label}: {item['error']}")
                continue
            response = item["response"]
            verdict = "VALID" if response["is_valid"] else "INVALID"
            print(f"{verdict:<8} {label}  [{response['api_source']}, {response['cache_status']}]")
        print()
        print(f"{len(results)} checked, {failures} failed")

    return 1 if failures else 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the vatcheck CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m vatcheck.cli",
        description="Verify EU VAT numbers against VIES and fallback registries.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="YAML configuration file (default: config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- verify --
    verify_parser = subparsers.add_parser("verify", help="Verify a single VAT number")
    verify_parser.add_argument("vat", help="VAT number, e.g. ESB12345678")
    verify_parser.add_argument("--country", help="Country code; strips a matching prefix from VAT")
    verify_parser.add_argument("--provider", help="Use one provider directly (bypasses the cache)")
    verify_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # -- providers --
    providers_parser = subparsers.add_parser("providers", help="List registered providers")
    providers_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # -- from-file --
    file_parser = subparsers.add_parser("from-file", help="Verify every VAT number listed in a file")
    file_parser.add_argument("path", help="Text file with one 'CCVAT [description]' per line")
    file_parser.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point; exits with the handler's exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    handlers = {
        "verify": _handle_verify,
        "providers": _handle_providers,
        "from-file": _handle_from_file,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    # Settings and provider wiring fail with ConfigurationError before any
    # verification starts; report those like any other failure.
    try:
        app_settings = load_settings(args.config)
        configure_from_settings(app_settings, quiet=args.json)
        exit_code = asyncio.run(handler(args, app_settings))
    except VatVerificationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
