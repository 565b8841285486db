"""
Unit tests for the starknet CLI wrappers
"""

import os
from unittest.mock import AsyncMock, patch

import pytest

from starknet_devkit.core.wrapper import (
    DEFAULT_DOCKER_IMAGE_TAG,
    DockerWrapper,
    ProcessResult,
    VenvWrapper,
)
from starknet_devkit.utils.exceptions import ConfigurationError


class TestVenvWrapper:
    """Test running the CLI from a virtualenv or PATH"""

    def test_path_lookup(self):
        wrapper = VenvWrapper()
        assert wrapper.prepare_command("starknet", ["call", "--address", "0x1"], []) == [
            "starknet", "call", "--address", "0x1"
        ]

    def test_active_means_path(self):
        assert VenvWrapper("active").bin_dir is None

    def test_venv_bin(self, tmp_path):
        (tmp_path / "bin").mkdir()
        wrapper = VenvWrapper(str(tmp_path))
        argv = wrapper.prepare_command("starknet", ["deploy"], ["/some/file.json"])
        assert argv == [str(tmp_path / "bin" / "starknet"), "deploy"]

    def test_invalid_venv(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            VenvWrapper(str(tmp_path / "nope"))
        assert exc_info.value.details["field"] == "starknet.venv"

    @pytest.mark.parametrize("url,expected", [
        ("http://localhost:5000/", "http://localhost:5000"),
        ("https://alpha4.starknet.io", "https://alpha4.starknet.io"),
    ])
    def test_urls_unchanged(self, url, expected):
        assert VenvWrapper().adapt_url(url) == expected


class TestDockerWrapper:
    """Test running the CLI inside the cairo-cli image"""

    def test_default_image(self):
        assert DockerWrapper.from_version().image == f"shardlabs/cairo-cli:{DEFAULT_DOCKER_IMAGE_TAG}"
        assert DEFAULT_DOCKER_IMAGE_TAG == "0.8.1"

    def test_command(self, tmp_path):
        abi = tmp_path / "contract_abi.json"
        wrapper = DockerWrapper("shardlabs/cairo-cli:0.8.0")

        argv = wrapper.prepare_command("starknet", ["call", "--abi", str(abi)], [str(abi)])

        assert argv == [
            "docker", "run", "--rm",
            "--add-host", "host.docker.internal:host-gateway",
            "-v", f"{abi}:{abi}:ro",
            "shardlabs/cairo-cli:0.8.0",
            "starknet", "call", "--abi", str(abi),
        ]

    def test_relative_paths_become_absolute(self):
        wrapper = DockerWrapper.from_version()
        argv = wrapper.prepare_command("starknet", ["deploy", "--contract", "artifacts/c.json"], ["artifacts/c.json"])

        absolute = os.path.abspath("artifacts/c.json")
        assert f"{absolute}:{absolute}:ro" in argv
        assert argv[-1] == absolute

    @pytest.mark.parametrize("url,expected", [
        ("http://localhost:5000", "http://host.docker.internal:5000"),
        ("http://127.0.0.1:5000/", "http://host.docker.internal:5000"),
        ("http://localhost", "http://host.docker.internal"),
        ("https://alpha4.starknet.io", "https://alpha4.starknet.io"),
        ("http://localhostess.io", "http://localhostess.io"),
    ])
    def test_adapt_url(self, url, expected):
        assert DockerWrapper.from_version().adapt_url(url) == expected


class TestRunCommand:
    """Test process execution"""

    @pytest.mark.asyncio
    async def test_output_and_status(self):
        process = AsyncMock()
        process.communicate.return_value = (b"Transaction hash: 0x1\n", b"")
        process.returncode = 0

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as create:
            result = await VenvWrapper().run_command("starknet", ["tx_status", "--hash", "0x1"])

        assert result == ProcessResult(0, "Transaction hash: 0x1\n", "")
        assert result.ok
        assert create.await_args.args == ("starknet", "tx_status", "--hash", "0x1")

    @pytest.mark.asyncio
    async def test_failure(self):
        process = AsyncMock()
        process.communicate.return_value = (b"", b"Error: \xff bad")
        process.returncode = 2

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            result = await VenvWrapper().run_command("starknet", ["call"])

        assert result.status_code == 2
        assert not result.ok
        assert result.stderr.startswith("Error: ")

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("starknet"))):
            result = await VenvWrapper().run_command("starknet", ["call"])

        assert result.status_code == 127
        assert result.stdout == ""
