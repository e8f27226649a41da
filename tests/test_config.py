"""Tests for configuration loading."""

import json
import os
import tempfile
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError as PydanticValidationError

from workbench_core.config import CommandConfig, Config, substitute_env_vars


class TestEnvSubstitution:
    """Tests for environment variable substitution."""

    def test_substitute_string(self):
        """Test substituting a string value."""
        os.environ["TEST_VAR"] = "hello"
        result = substitute_env_vars("${TEST_VAR}")
        assert result == "hello"

    def test_substitute_in_dict(self):
        """Test substituting values in a dictionary."""
        os.environ["TEST_WORKDIR"] = "/tmp/sandboxes"
        data = {"workdir": "${TEST_WORKDIR}", "backend": "local"}
        result = substitute_env_vars(data)
        assert result == {"workdir": "/tmp/sandboxes", "backend": "local"}

    def test_substitute_in_list(self):
        """Test substituting values in a list."""
        os.environ["TEST_ITEM"] = "item1"
        data = ["${TEST_ITEM}", "item2"]
        result = substitute_env_vars(data)
        assert result == ["item1", "item2"]

    def test_missing_env_var_raises(self):
        """Test that missing env vars raise ValueError."""
        if "NONEXISTENT_VAR" in os.environ:
            del os.environ["NONEXISTENT_VAR"]
        with pytest.raises(ValueError, match="NONEXISTENT_VAR"):
            substitute_env_vars("${NONEXISTENT_VAR}")

    def test_partial_substitution(self):
        """Test substituting part of a string."""
        os.environ["PREFIX"] = "prod"
        result = substitute_env_vars("${PREFIX}-project")
        assert result == "prod-project"


class TestConfigLoading:
    """Tests for configuration loading."""

    def test_from_dict(self, sample_config_dict):
        """Test loading config from dictionary."""
        config = Config.from_dict(sample_config_dict)
        assert config.project.name == "test-project"
        assert config.project.seed == "empty"
        assert config.sandbox.backend == "mock"
        assert config.sync.max_retries == 0

    def test_from_yaml_file(self, sample_config_dict):
        """Test loading config from YAML file."""
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".yaml", delete=False
        ) as f:
            yaml.dump(sample_config_dict, f)
            f.flush()

            config = Config.from_file(f.name)
            assert config.project.name == "test-project"

            Path(f.name).unlink()

    def test_from_json_file(self, sample_config_dict, tmp_path):
        """Test loading config from JSON file."""
        path = tmp_path / "workbench.json"
        path.write_text(json.dumps(sample_config_dict))

        config = Config.from_file(path)
        assert config.sandbox.backend == "mock"

    def test_empty_yaml_file(self, tmp_path):
        """An empty file yields the defaults."""
        path = tmp_path / "workbench.yaml"
        path.write_text("")

        config = Config.from_file(path)
        assert config.sandbox.backend == "local"

    def test_defaults(self):
        """Test that defaults are applied."""
        config = Config.from_dict({})
        assert config.project.seed == "starter"
        assert config.sandbox.backend == "local"
        assert config.pipeline.install.display() == "npm install"
        assert config.pipeline.dev.display() == "npm run dev"
        assert config.sync.max_retries == 2
        assert config.logging.format == "json"
        assert config.server.port == 8080

    def test_custom_pipeline(self):
        """Test overriding the install and dev commands."""
        config = Config.from_dict({
            "pipeline": {
                "install": {"program": "pnpm", "args": ["install", "--frozen-lockfile"]},
                "dev": {"program": "pnpm", "args": ["dev"]},
            },
        })
        assert config.pipeline.install.display() == "pnpm install --frozen-lockfile"
        assert config.pipeline.dev.program == "pnpm"

    def test_negative_retries_rejected(self):
        """Test that sync retries must not be negative."""
        with pytest.raises(PydanticValidationError):
            Config.from_dict({"sync": {"max_retries": -1}})

    def test_sandbox_options_substituted(self):
        """Test env vars inside backend options."""
        os.environ["TEST_SANDBOX_TOKEN"] = "abc"
        config = Config.from_dict({"sandbox": {"options": {"token": "${TEST_SANDBOX_TOKEN}"}}})
        assert config.sandbox.options == {"token": "abc"}


class TestCommandConfig:
    """Tests for CommandConfig."""

    def test_display_without_args(self):
        assert CommandConfig(program="vite").display() == "vite"

    def test_display_with_args(self):
        assert CommandConfig(program="npm", args=["run", "dev"]).display() == "npm run dev"
