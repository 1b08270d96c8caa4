"""
Tests for kernel configuration loading.
"""

import logging

import pytest

from sales_kernel.config import KernelConfig, load_config


@pytest.fixture(autouse=True)
def _no_database_env(monkeypatch):
    monkeypatch.delenv("SALES_KERNEL_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


class TestKernelConfig:

    def test_defaults(self):
        config = KernelConfig()
        assert config.default_payment_terms_days == 30
        assert config.invoice_numbers_include_year is True
        assert config.max_sequence == 99_999
        assert config.log_level_value == logging.INFO

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"database_url": ""},
            {"default_payment_terms_days": -1},
            {"max_sequence": 0},
            {"max_sequence": 100_000},
            {"log_level": "CHATTY"},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            KernelConfig(**kwargs)

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError, match="money_places"):
            KernelConfig.from_dict({"money_places": 2})


class TestLoadConfig:

    def test_no_path_gives_defaults(self):
        assert load_config() == KernelConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "sales_kernel.yaml"
        path.write_text(
            "database_url: sqlite:///orders.db\n"
            "default_payment_terms_days: 45\n"
            "invoice_numbers_include_year: false\n"
            "log_level: debug\n"
        )
        config = load_config(path)
        assert config.database_url == "sqlite:///orders.db"
        assert config.default_payment_terms_days == 45
        assert config.invoice_numbers_include_year is False
        assert config.log_level_value == logging.DEBUG

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == KernelConfig()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "sales_kernel.yaml"
        path.write_text("database_url: sqlite:///from_file.db\n")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///generic.db")
        monkeypatch.setenv("SALES_KERNEL_DATABASE_URL", "sqlite:///specific.db")
        assert load_config(path).database_url == "sqlite:///specific.db"

    def test_generic_database_url(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///generic.db")
        assert load_config().database_url == "sqlite:///generic.db"
