"""Unit tests for the vatcheck command-line interface (vatcheck.cli.verify)."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vatcheck.cli.verify import _parse_vat_input, _read_entries, main
from vatcheck.config.settings import Settings
from vatcheck.models.verification import CacheStatus, ServiceResponse, VerificationResult
from vatcheck.utils.errors import ApiUnavailableError

# ======================================================================
# Shared helpers
# ======================================================================


def _response(valid: bool = True, vat_code: str = "ESB12345678") -> ServiceResponse:
    return ServiceResponse(
        is_valid=valid,
        vat_code=vat_code,
        country_code=vat_code[:2],
        company_name="ACME SOLUCIONES SL" if valid else None,
        api_source="VIES_SOAP",
        cache_status=CacheStatus.FRESH,
    )


def _service(response=None, error=None) -> MagicMock:
    service = MagicMock()
    service.store.initialize = AsyncMock()
    service.verify_vat_number = AsyncMock(return_value=response, side_effect=error)
    service.provider_manager.aclose = AsyncMock()
    return service


def _run(argv: list[str], settings: Settings | None = None, service: MagicMock | None = None) -> int:
    with (
        patch("vatcheck.cli.verify.load_settings", return_value=settings or Settings(app_env="test")),
        patch("vatcheck.cli.verify.configure_from_settings"),
        patch("vatcheck.cli.verify.build_service", return_value=service or _service(_response())),
    ):
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
    return exc_info.value.code


# ======================================================================
# Input parsing
# ======================================================================


class TestParseVatInput:
    def test_prefix_gives_country(self) -> None:
        assert _parse_vat_input("esb12345678", None) == ("B12345678", "ES")

    def test_country_strips_matching_prefix(self) -> None:
        assert _parse_vat_input("ESB12345678", "es") == ("B12345678", "ES")
        assert _parse_vat_input("B12345678", "ES") == ("B12345678", "ES")

    @pytest.mark.parametrize(("vat", "country"), [("123", None), ("B123", "ESP"), ("ES", "ES")])
    def test_bad_input(self, vat: str, country: str | None) -> None:
        with pytest.raises(ValueError):
            _parse_vat_input(vat, country)


class TestReadEntries:
    def test_skips_blanks_and_comments(self, tmp_path) -> None:
        path = tmp_path / "vats.txt"
        path.write_text("# customers\n\nESB12345678 Acme Madrid\n  DE123456789\n", encoding="utf-8")

        assert _read_entries(path) == [("ESB12345678", "Acme Madrid"), ("DE123456789", "")]


# ======================================================================
# verify
# ======================================================================


class TestVerifyCommand:
    def test_no_command_prints_help(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1
        assert "verify" in capsys.readouterr().out

    def test_text_output(self, capsys) -> None:
        service = _service(_response())

        assert _run(["verify", "ESB12345678"], service=service) == 0

        out = capsys.readouterr().out
        assert "ESB12345678" in out
        assert "Valid:    yes" in out
        assert "VIES_SOAP (fresh)" in out
        service.store.initialize.assert_awaited_once()
        service.verify_vat_number.assert_awaited_once_with("B12345678", "ES")
        service.provider_manager.aclose.assert_awaited_once()

    def test_json_output(self, capsys) -> None:
        assert _run(["verify", "B12345678", "--country", "es", "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["is_valid"] is True
        assert data["vat_code"] == "ESB12345678"
        assert data["cache_status"] == "fresh"
        assert data["cached"] is False

    def test_invalid_vat_still_exits_zero(self, capsys) -> None:
        assert _run(["verify", "ESB00000000"], service=_service(_response(valid=False))) == 0
        assert "Valid:    no" in capsys.readouterr().out

    def test_bad_input_exits_one(self, capsys) -> None:
        assert _run(["verify", "12"]) == 1
        assert "Error" in capsys.readouterr().err

    def test_unavailable_exits_one(self, capsys) -> None:
        service = _service(error=ApiUnavailableError("VIES_REST", RuntimeError("down")))

        assert _run(["verify", "ESB12345678"], service=service) == 1

        assert "currently unavailable" in capsys.readouterr().err
        service.provider_manager.aclose.assert_awaited_once()

    def test_single_provider_bypasses_service(self, capsys) -> None:
        result = VerificationResult(valid=True, vat_number="B12345678", country_code="ES", api_source="ISVAT")
        service = _service(_response())

        with patch(
            "vatcheck.providers.vat.isvat_provider.IsvatProvider.verify",
            new=AsyncMock(return_value=result),
        ):
            assert _run(["verify", "ESB12345678", "--provider", "ISVAT"], service=service) == 0

        assert "Source:   ISVAT" in capsys.readouterr().out
        service.verify_vat_number.assert_not_awaited()

    def test_unknown_provider_exits_one(self, capsys) -> None:
        assert _run(["verify", "ESB12345678", "--provider", "vatlayer"]) == 1
        assert "not registered" in capsys.readouterr().err


# ======================================================================
# providers
# ======================================================================


class TestProvidersCommand:
    def test_json_listing(self, capsys) -> None:
        settings = Settings(app_env="test", vatlayer_api_key="key", providers_order="vies_rest,vatlayer")

        assert _run(["providers", "--json"], settings=settings) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["order"] == ["vies_rest", "vatlayer"]
        rows = {row["key"]: row for row in data["providers"]}
        assert rows["vatlayer"]["free"] is False
        assert rows["vatlayer"]["available"] is True
        assert rows["vies_soap"]["name"] == "VIES_SOAP"
        assert rows["vies_soap"]["free"] is True

    def test_text_listing(self, capsys) -> None:
        assert _run(["providers"]) == 0
        out = capsys.readouterr().out
        assert "Order: vies_soap -> vies_rest -> isvat" in out
        assert "FREE" in out


# ======================================================================
# from-file
# ======================================================================


class TestFromFileCommand:
    def test_all_entries_verified(self, tmp_path, capsys) -> None:
        path = tmp_path / "vats.txt"
        path.write_text("ESB12345678 Acme\n# skip\nDE123456789\n", encoding="utf-8")
        service = _service(_response())

        assert _run(["from-file", str(path)], service=service) == 0

        out = capsys.readouterr().out
        assert "2 checked, 0 failed" in out
        assert service.verify_vat_number.await_count == 2
        service.verify_vat_number.assert_any_await("123456789", "DE")

    def test_bad_entry_makes_exit_code_one(self, tmp_path, capsys) -> None:
        path = tmp_path / "vats.txt"
        path.write_text("ESB12345678\n12\n", encoding="utf-8")

        assert _run(["from-file", str(path), "--json"]) == 1

        data = json.loads(capsys.readouterr().out)
        assert data[0]["response"]["is_valid"] is True
        assert "error" in data[1]

    def test_missing_file_exits_one(self, tmp_path, capsys) -> None:
        assert _run(["from-file", str(tmp_path / "missing.txt")]) == 1
        assert "File not found" in capsys.readouterr().err


# ======================================================================
# Configuration errors
# ======================================================================


class TestConfigurationErrors:
    @pytest.mark.parametrize("command", [["verify", "ESB12345678"], ["providers"]])
    def test_empty_provider_order_exits_one(self, command: list[str], capsys) -> None:
        settings = Settings(app_env="test", providers_order=" , ")

        with (
            patch("vatcheck.cli.verify.load_settings", return_value=settings),
            patch("vatcheck.cli.verify.configure_from_settings"),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(command)

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert err.startswith("Error: ")
        assert "PROVIDERS_ORDER" in err

    def test_invalid_yaml_exits_one(self, tmp_path, capsys) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("providers:\n  order: [vies_soap\n", encoding="utf-8")

        with patch("vatcheck.cli.verify.configure_from_settings") as configure:
            with pytest.raises(SystemExit) as exc_info:
                main(["--config", str(config), "providers"])

        assert exc_info.value.code == 1
        assert "Invalid YAML" in capsys.readouterr().err
        configure.assert_not_called()
